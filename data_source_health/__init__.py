"""
Data Source Health Module.

============================================================
RESPONSIBILITY
============================================================

- RateLimiter: local per-endpoint quota windows
- HealthTracker: EWMA success rate and latency per endpoint

Health is observational; only the rate limiter refuses requests.

============================================================
USAGE
============================================================

```python
from data_source_health import HealthTracker, RateLimiter

limiter = RateLimiter(clock)
if limiter.check_rate_limit(endpoint):
    ...
tracker.record_outcome(endpoint.id, success=True, response_time_ms=120.0)
```

============================================================
"""

from data_source_health.models import (
    EndpointHealthRecord,
    HealthState,
    LastFailure,
    RateLimitTracker,
)
from data_source_health.rate_limiter import RateLimiter
from data_source_health.tracker import HealthTracker

__all__ = [
    "EndpointHealthRecord",
    "HealthState",
    "LastFailure",
    "RateLimitTracker",
    "RateLimiter",
    "HealthTracker",
]
