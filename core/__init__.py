"""
Core Module Package.

Infrastructure shared by every pipeline component.

Components:
- clock: Unified time abstraction
- config: Environment-driven configuration
- constants: Pipeline-wide defaults
- exceptions: Failure taxonomy
- logging_config: Root logger setup for the CLI
"""

from core.clock import ClockProtocol, MockClock, SystemClock
from core.config import IngestionConfig
from core.exceptions import FailureKind, IngestionError

__all__ = [
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "IngestionConfig",
    "FailureKind",
    "IngestionError",
]
