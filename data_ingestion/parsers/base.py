"""
Parsers - Shared result types.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from data_ingestion.types import PayloadFormat


@dataclass
class FeedEntry:
    """One entry extracted from a feed-like payload (RSS, Atom, HTML, text)."""
    title: str = ""
    link: str = ""
    published: Optional[str] = None
    description: str = ""
    guid: Optional[str] = None
    author: str = ""
    categories: List[str] = field(default_factory=list)


@dataclass
class ParsedPayload:
    """
    A payload whose structure has been checked.

    data holds the decoded document for JSON payloads; entries holds
    feed-like entries for every format that has them.
    """
    format: PayloadFormat
    source_url: str = ""
    data: Any = None
    entries: List[FeedEntry] = field(default_factory=list)
    title: Optional[str] = None
    unwrapped: int = 0
    """How many proxy envelopes were peeled off before parsing."""
