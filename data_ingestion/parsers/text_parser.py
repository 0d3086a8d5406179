"""
Parsers - Plain text.

One entry per non-empty line. A line holding a URL links to it.
"""

import re

from core.constants import MAX_TEXT_LINES
from core.exceptions import ParseError
from data_ingestion.parsers.base import FeedEntry, ParsedPayload
from data_ingestion.parsers.redaction import redact
from data_ingestion.types import PayloadFormat


_URL = re.compile(r"https?://\S+")


def parse_text(body: str, source_url: str = "", max_lines: int = MAX_TEXT_LINES) -> ParsedPayload:
    """
    Split a text body into entries.

    Raises:
        ParseError: "binary content" for NUL bytes, "too many lines"
            past max_lines
    """
    if "\x00" in body:
        raise ParseError(
            "Text body contains NUL bytes",
            format=PayloadFormat.TEXT.value,
            reason="binary content",
            context={"digest": redact(body)},
        )

    lines = [line.strip() for line in body.splitlines() if line.strip()]
    if len(lines) > max_lines:
        raise ParseError(
            f"Text body has {len(lines)} lines, limit is {max_lines}",
            format=PayloadFormat.TEXT.value,
            reason="too many lines",
            context={"digest": redact(body)},
        )

    entries = []
    for line in lines:
        match = _URL.search(line)
        link = match.group(0).rstrip(".,;)") if match else ""
        title = _URL.sub("", line).strip(" -|:\t") or link
        entries.append(FeedEntry(title=title, link=link or source_url))

    return ParsedPayload(format=PayloadFormat.TEXT, source_url=source_url, entries=entries)
