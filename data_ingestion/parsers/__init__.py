"""
Parsers - Format sniffing and per-format parsers.
"""

from data_ingestion.parsers.base import FeedEntry, ParsedPayload
from data_ingestion.parsers.redaction import redact
from data_ingestion.parsers.sniffer import parse, sniff

__all__ = [
    "FeedEntry",
    "ParsedPayload",
    "parse",
    "redact",
    "sniff",
]
