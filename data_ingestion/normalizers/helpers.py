"""
Normalizers - Field coercion helpers.

Shared by every plugin so that ids, timestamps and text are
produced the same way regardless of source.
"""

import hashlib
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from core.constants import ID_DIGEST_LENGTH, MAX_DESCRIPTION_LENGTH


_WHITESPACE = re.compile(r"\s+")

# Epoch values above this are milliseconds (year 5138 in seconds)
_EPOCH_MS_THRESHOLD = 1e11


def digest(*parts: Any) -> str:
    """Short sha1 over the joined string form of parts."""
    joined = "|".join("" if p is None else str(p) for p in parts)
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()[:ID_DIGEST_LENGTH]


def stable_id(prefix: str, source_id: Any = None, *fallback: Any) -> str:
    """
    Build an item id that survives re-fetches.

    The source's own id is used when present, otherwise a digest of
    the fallback fields (guid, link, title...).
    """
    if source_id not in (None, ""):
        return f"{prefix}-{source_id}"
    return f"{prefix}-{digest(*fallback)}"


def _from_epoch(value: float) -> Optional[datetime]:
    if value > _EPOCH_MS_THRESHOLD:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def coerce_timestamp(value: Any, fallback: datetime) -> datetime:
    """
    Coerce a source timestamp into an aware UTC datetime.

    Accepts datetimes, epoch seconds or milliseconds (numbers or
    numeric strings) and anything dateutil can parse. Missing or
    unparseable values become the fallback (the ingestion time).
    """
    result: Optional[datetime] = None

    if isinstance(value, datetime):
        result = value
    elif isinstance(value, bool) or value is None:
        result = None
    elif isinstance(value, (int, float)):
        result = _from_epoch(float(value))
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            result = _from_epoch(float(text))
        except ValueError:
            try:
                result = date_parser.parse(text)
            except (ValueError, OverflowError):
                result = None

    if result is None:
        result = fallback
    if result.tzinfo is None:
        return result.replace(tzinfo=timezone.utc)
    return result.astimezone(timezone.utc)


def collapse(text: Any) -> str:
    return _WHITESPACE.sub(" ", str(text or "")).strip()


def strip_html(text: Any, limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    """Plain text of an HTML fragment, whitespace collapsed and truncated."""
    raw = str(text or "")
    if "<" in raw and ">" in raw:
        raw = BeautifulSoup(raw, "html.parser").get_text(" ")
    plain = collapse(raw)
    if limit and len(plain) > limit:
        return plain[: limit - 3].rstrip() + "..."
    return plain


def first_of(mapping: dict, keys: Iterable[str], default: Any = None) -> Any:
    """First non-empty value among keys."""
    for key in keys:
        value = mapping.get(key)
        if value not in (None, "", [], {}):
            return value
    return default


def unique(values: Iterable[Any]) -> list:
    """Drop empties and duplicates, keeping first-seen order."""
    seen = []
    for value in values:
        if value in (None, ""):
            continue
        text = str(value)
        if text not in seen:
            seen.append(text)
    return seen
