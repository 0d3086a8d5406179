"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the failure taxonomy for the ingestion pipeline.

- Every failure carries a FailureKind for diagnostics
- Classification drives retry and fallback decisions
- Context is for debugging and never holds raw payloads

============================================================
EXCEPTION HIERARCHY
============================================================
IngestionError (base)
├── ConfigurationError
├── StorageError
├── DisallowedHost
├── SizeLimitExceeded
├── RateLimitExceeded
├── TransportError
│   ├── NetworkError
│   ├── CORSError
│   ├── HTTPStatusError
│   └── Aborted
├── ParseError
├── ValidationError
└── AllStrategiesExhausted

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================
# FAILURE KINDS
# ============================================================

class FailureKind(str, Enum):
    """Failure kinds surfaced in fetch outcomes and diagnostics."""

    DISALLOWED_HOST = "DisallowedHost"
    SIZE_LIMIT_EXCEEDED = "SizeLimitExceeded"
    RATE_LIMIT_EXCEEDED = "RateLimitExceeded"
    NETWORK_ERROR = "NetworkError"
    CORS_ERROR = "CORSError"
    HTTP_STATUS_ERROR = "HTTPStatusError"
    ABORTED = "Aborted"
    PARSE_ERROR = "ParseError"
    VALIDATION_ERROR = "ValidationError"
    ALL_STRATEGIES_EXHAUSTED = "AllStrategiesExhausted"
    CONFIGURATION_ERROR = "ConfigurationError"
    STORAGE_ERROR = "StorageError"
    UNEXPECTED = "Unexpected"


class ErrorClassification(Enum):
    """Classification of error recoverability."""

    TRANSIENT = "transient"
    """Temporary error, retry on the same strategy may succeed."""

    SKIP_STRATEGY = "skip_strategy"
    """Strategy is unusable for this request, move down the chain."""

    NON_RECOVERABLE = "non_recoverable"
    """Terminal for the request, no retry and no fallback."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class IngestionError(Exception):
    """
    Base exception for all ingestion pipeline errors.

    All exceptions carry:
    - kind: the FailureKind reported in diagnostics
    - classification: for retry/fallback decisions
    - source_name: endpoint or source id, when known
    - context: for debugging
    - timestamp: when the error occurred
    """

    kind: FailureKind = FailureKind.UNEXPECTED
    default_classification: ErrorClassification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.source_name = source_name
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_retryable(self) -> bool:
        """Check if the same strategy may be retried."""
        return self.classification == ErrorClassification.TRANSIENT

    @property
    def is_terminal(self) -> bool:
        """Check if the request must stop without fallback."""
        return self.classification == ErrorClassification.NON_RECOVERABLE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/diagnostics."""
        return {
            "type": type(self).__name__,
            "kind": self.kind.value,
            "message": self.message,
            "source_name": self.source_name,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{type(self).__name__}: {self.message}"]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.cause:
            parts.append(f"(caused by: {self.cause})")
        return " ".join(parts)


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(IngestionError):
    """Error in configuration."""

    kind = FailureKind.CONFIGURATION_ERROR

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", None) or {}
        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]
        super().__init__(message, context=context, **kwargs)


# ============================================================
# GATE ERRORS
# ============================================================

class DisallowedHost(IngestionError):
    """Target URL rejected by the security gate."""

    kind = FailureKind.DISALLOWED_HOST

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", None) or {}
        if url:
            context["url"] = url
        super().__init__(message, context=context, **kwargs)
        self.url = url


class SizeLimitExceeded(IngestionError):
    """Response body exceeds the configured byte ceiling."""

    kind = FailureKind.SIZE_LIMIT_EXCEEDED

    def __init__(
        self,
        message: str,
        limit_bytes: int = 0,
        observed_bytes: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", None) or {}
        context["limit_bytes"] = limit_bytes
        if observed_bytes is not None:
            context["observed_bytes"] = observed_bytes
        super().__init__(message, context=context, **kwargs)
        self.limit_bytes = limit_bytes
        self.observed_bytes = observed_bytes


class RateLimitExceeded(IngestionError):
    """Local quota for an endpoint is exhausted."""

    kind = FailureKind.RATE_LIMIT_EXCEEDED

    def __init__(self, message: str, reset_at: Optional[datetime] = None, **kwargs):
        context = kwargs.pop("context", None) or {}
        if reset_at:
            context["reset_at"] = reset_at.isoformat()
        super().__init__(message, context=context, **kwargs)
        self.reset_at = reset_at


# ============================================================
# TRANSPORT ERRORS
# ============================================================

class TransportError(IngestionError):
    """Base for failures of a single transport attempt."""

    default_classification = ErrorClassification.TRANSIENT

    def __init__(self, message: str, strategy: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.strategy = strategy
        if strategy:
            self.context["strategy"] = strategy


class NetworkError(TransportError):
    """Connection-level failure (DNS, reset, refused)."""

    kind = FailureKind.NETWORK_ERROR


class CORSError(TransportError):
    """Opaque or blocked response; the strategy cannot reach the target."""

    kind = FailureKind.CORS_ERROR
    default_classification = ErrorClassification.SKIP_STRATEGY


class HTTPStatusError(TransportError):
    """Non-2xx response status."""

    kind = FailureKind.HTTP_STATUS_ERROR

    def __init__(self, message: str, status_code: int, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.context["status_code"] = status_code

    def is_server_error(self) -> bool:
        """Check if error is server-side."""
        return 500 <= self.status_code < 600

    def is_client_error(self) -> bool:
        """Check if error is client-side."""
        return 400 <= self.status_code < 500


class Aborted(TransportError):
    """Attempt timed out or was cancelled."""

    kind = FailureKind.ABORTED
    default_classification = ErrorClassification.SKIP_STRATEGY


# ============================================================
# PAYLOAD ERRORS
# ============================================================

class ParseError(IngestionError):
    """Payload failed the well-formedness check for its format."""

    kind = FailureKind.PARSE_ERROR

    def __init__(self, message: str, format: str, reason: str, **kwargs):
        super().__init__(message, **kwargs)
        self.format = format
        self.reason = reason
        self.context["format"] = format
        self.context["reason"] = reason


class ValidationError(IngestionError):
    """Payload did not match the shape a normalizer expects."""

    kind = FailureKind.VALIDATION_ERROR

    def __init__(self, message: str, errors: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
        self.context["errors"] = self.errors


class AllStrategiesExhausted(IngestionError):
    """Every strategy in the fallback chain failed."""

    kind = FailureKind.ALL_STRATEGIES_EXHAUSTED

    def __init__(
        self,
        message: str,
        failures: Optional[List[IngestionError]] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.failures = failures or []
        self.context["attempts"] = [
            {"kind": f.kind.value, "message": f.message} for f in self.failures
        ]


# ============================================================
# STORAGE ERRORS
# ============================================================

class StorageError(IngestionError):
    """Persisted key/value store could not be read or written."""

    kind = FailureKind.STORAGE_ERROR
    default_classification = ErrorClassification.TRANSIENT

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        if operation:
            self.context["operation"] = operation
