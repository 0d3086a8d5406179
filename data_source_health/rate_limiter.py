"""
Data Source Health - Rate Limiter.

Local, per-endpoint quota enforcement. A permitted check consumes a
slot, so callers check exactly once per outgoing request.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.clock import ClockProtocol, SystemClock
from data_source_health.models import RateLimitTracker
from data_sources.models import EndpointDescriptor


logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Per-endpoint fixed-window rate limiter.

    Endpoints without a declared quota are never limited.
    """

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock or SystemClock()
        self._trackers: Dict[str, RateLimitTracker] = {}

    def _current_tracker(self, endpoint: EndpointDescriptor) -> RateLimitTracker:
        now = self._clock.now()
        window = timedelta(seconds=endpoint.rate_limit.window_seconds)
        tracker = self._trackers.get(endpoint.id)

        if tracker is None:
            tracker = RateLimitTracker(endpoint.id, 0, now + window)
            self._trackers[endpoint.id] = tracker
        elif now > tracker.reset_at:
            tracker.count = 0
            tracker.reset_at = now + window

        return tracker

    def check_rate_limit(self, endpoint: EndpointDescriptor) -> bool:
        """
        Check and consume one request slot.

        Returns:
            True if the request may proceed, False if the quota for the
            current window is used up
        """
        if endpoint.rate_limit is None:
            return True

        tracker = self._current_tracker(endpoint)
        if tracker.count >= endpoint.rate_limit.count:
            logger.warning(
                f"[{endpoint.id}] Rate limit reached "
                f"({tracker.count}/{endpoint.rate_limit.count} per "
                f"{endpoint.rate_limit.period.value}), resets at {tracker.reset_at.isoformat()}"
            )
            return False

        tracker.count += 1
        return True

    def remaining(self, endpoint: EndpointDescriptor) -> Optional[int]:
        """Slots left in the current window; None if unlimited."""
        if endpoint.rate_limit is None:
            return None
        tracker = self._current_tracker(endpoint)
        return max(0, endpoint.rate_limit.count - tracker.count)

    def reset_at(self, endpoint_id: str) -> Optional[datetime]:
        tracker = self._trackers.get(endpoint_id)
        return tracker.reset_at if tracker else None

    def get_tracker(self, endpoint_id: str) -> Optional[RateLimitTracker]:
        return self._trackers.get(endpoint_id)

    def reset(self, endpoint_id: Optional[str] = None) -> None:
        """Forget window state for one endpoint, or all of them."""
        if endpoint_id is None:
            self._trackers.clear()
        else:
            self._trackers.pop(endpoint_id, None)
