"""
Data Source Health - Health Tracker.

============================================================
RESPONSIBILITY
============================================================
Records the outcome of every live fetch per endpoint.

- success_rate: EWMA of 100/0 samples, alpha 0.1
- average_response_time_ms: first sample, then EWMA
- last success / last failure timestamps

Monitoring only: nothing here gates requests.

============================================================
"""

import logging
from typing import Dict, List, Optional

from core.clock import ClockProtocol, SystemClock
from core.constants import HEALTH_EWMA_ALPHA
from data_source_health.models import EndpointHealthRecord, HealthState, LastFailure


logger = logging.getLogger(__name__)


class HealthTracker:
    """Per-endpoint EWMA health bookkeeping."""

    def __init__(
        self,
        clock: Optional[ClockProtocol] = None,
        alpha: float = HEALTH_EWMA_ALPHA,
    ) -> None:
        if not 0 < alpha <= 1:
            raise ValueError("alpha must be in (0, 1]")
        self._clock = clock or SystemClock()
        self._alpha = alpha
        self._records: Dict[str, EndpointHealthRecord] = {}

    def _record_for(self, endpoint_id: str) -> EndpointHealthRecord:
        record = self._records.get(endpoint_id)
        if record is None:
            record = EndpointHealthRecord(endpoint_id=endpoint_id)
            self._records[endpoint_id] = record
        return record

    def record_outcome(
        self,
        endpoint_id: str,
        success: bool,
        response_time_ms: float,
        error: Optional[str] = None,
    ) -> EndpointHealthRecord:
        """
        Fold one fetch outcome into the endpoint's record.

        Args:
            endpoint_id: Endpoint the request went to
            success: Whether the fetch produced a usable response
            response_time_ms: Wall time of the fetch
            error: Failure message, recorded when success is False

        Returns:
            The updated record
        """
        record = self._record_for(endpoint_id)
        previous_state = record.state
        now = self._clock.now()

        sample = 100.0 if success else 0.0
        record.success_rate = (1 - self._alpha) * record.success_rate + self._alpha * sample
        record.success_rate = min(100.0, max(0.0, record.success_rate))

        if record.total_requests == 0:
            record.average_response_time_ms = response_time_ms
        else:
            record.average_response_time_ms = (
                (1 - self._alpha) * record.average_response_time_ms
                + self._alpha * response_time_ms
            )

        record.total_requests += 1
        if success:
            record.last_success_at = now
            record.consecutive_failures = 0
        else:
            record.total_failures += 1
            record.consecutive_failures += 1
            record.last_failure = LastFailure(timestamp=now, message=error or "unknown error")

        if record.state != previous_state and previous_state != HealthState.UNKNOWN:
            logger.info(
                f"[{endpoint_id}] Health {previous_state.value} -> {record.state.value} "
                f"(success_rate={record.success_rate:.1f})"
            )

        return record

    def get(self, endpoint_id: str) -> Optional[EndpointHealthRecord]:
        return self._records.get(endpoint_id)

    def all_records(self) -> List[EndpointHealthRecord]:
        return list(self._records.values())

    def reset(self, endpoint_id: str) -> None:
        """Operator reset: forget everything recorded for an endpoint."""
        if self._records.pop(endpoint_id, None) is not None:
            logger.info(f"[{endpoint_id}] Health record reset")

    def get_health_status(self) -> Dict[str, Dict]:
        """Health snapshot keyed by endpoint id."""
        return {rid: record.to_dict() for rid, record in self._records.items()}
