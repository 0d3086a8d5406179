"""
Data Ingestion Package.

This package turns remote sources into normalized items.
No business logic - only data acquisition.

Sub-packages:
- fetching: Transport, fallback strategies, retrying fetcher
- parsers: Format sniffing and per-format parsers
- normalizers: Per-source normalizer plugins and registry

Main service:
- ingestion_service: Orchestrates ingestion passes
"""

from data_ingestion.ingestion_service import IngestionService, merge_items
from data_ingestion.pipeline import SourcePipeline
from data_ingestion.security import IngestionPolicy, SecurityGate, looks_like_feed_url, validate
from data_ingestion.types import (
    ContentTier,
    DiagnosticStatus,
    FetchFailure,
    FetchOutcome,
    FetchRequest,
    FetchSuccess,
    IngestionReport,
    NormalizedItem,
    PayloadFormat,
    Priority,
    SourceDiagnostic,
)

__all__ = [
    "IngestionService",
    "merge_items",
    "SourcePipeline",
    "IngestionPolicy",
    "SecurityGate",
    "looks_like_feed_url",
    "validate",
    "ContentTier",
    "DiagnosticStatus",
    "FetchFailure",
    "FetchOutcome",
    "FetchRequest",
    "FetchSuccess",
    "IngestionReport",
    "NormalizedItem",
    "PayloadFormat",
    "Priority",
    "SourceDiagnostic",
]
