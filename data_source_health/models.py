"""
Data Source Health - Data Models.

============================================================
CORE DATA STRUCTURES
============================================================

- HealthState: Derived state of an endpoint
- LastFailure: Most recent failure of an endpoint
- EndpointHealthRecord: EWMA success rate and latency per endpoint
- RateLimitTracker: Request count inside the current quota window

============================================================
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from core.constants import (
    DEGRADED_SUCCESS_RATE,
    INITIAL_SUCCESS_RATE,
    UNAVAILABLE_SUCCESS_RATE,
)


# =============================================================
# ENUMS
# =============================================================


class HealthState(str, Enum):
    """
    Health state of an endpoint.

    Monitoring only; the pipeline never refuses a source
    because of its state.
    """
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


# =============================================================
# DATA CLASSES
# =============================================================


@dataclass(frozen=True)
class LastFailure:
    """Most recent failure of an endpoint."""
    timestamp: datetime
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "message": self.message}


@dataclass
class EndpointHealthRecord:
    """
    Health record for one endpoint.

    success_rate and average_response_time_ms are exponentially
    weighted moving averages; success_rate stays within [0, 100].
    """
    endpoint_id: str
    success_rate: float = INITIAL_SUCCESS_RATE
    average_response_time_ms: float = 0.0
    last_success_at: Optional[datetime] = None
    last_failure: Optional[LastFailure] = None
    total_requests: int = 0
    total_failures: int = 0
    consecutive_failures: int = 0

    @property
    def state(self) -> HealthState:
        if self.total_requests == 0:
            return HealthState.UNKNOWN
        if self.success_rate >= DEGRADED_SUCCESS_RATE:
            return HealthState.HEALTHY
        if self.success_rate >= UNAVAILABLE_SUCCESS_RATE:
            return HealthState.DEGRADED
        return HealthState.UNAVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "endpoint_id": self.endpoint_id,
            "success_rate": round(self.success_rate, 2),
            "average_response_time_ms": round(self.average_response_time_ms, 2),
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_failure": self.last_failure.to_dict() if self.last_failure else None,
            "total_requests": self.total_requests,
            "total_failures": self.total_failures,
            "consecutive_failures": self.consecutive_failures,
            "state": self.state.value,
        }


@dataclass
class RateLimitTracker:
    """
    Requests counted in the current quota window.

    The window resets lazily: a check at a moment strictly after
    reset_at zeroes the count and opens a new window.
    """
    endpoint_id: str
    count: int
    reset_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint_id": self.endpoint_id,
            "count": self.count,
            "reset_at": self.reset_at.isoformat(),
        }
