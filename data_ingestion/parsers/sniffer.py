"""
Parsers - Format sniffing and dispatch.

============================================================
RESPONSIBILITY
============================================================
Decides what a body really is. Servers and proxies mislabel
payloads, so the declared content type is only a tie-breaker
when the body itself carries no structural signal.

Order of checks:
1. XML declaration or feed root (<rss, <feed, <rdf:RDF, <channel)
2. HTML doctype, <html or a common HTML element
3. Leading { or [ means JSON
4. data:<type>;base64, payloads are decoded and sniffed again
5. JSON envelopes with a string "contents" field are unwrapped
   and sniffed again
6. No signal: text/plain goes to the text parser, otherwise XML is
   tried; a body without markup that fails XML is plain text

============================================================
"""

import base64
import binascii
import logging
import re
from typing import Any, Optional

from core.constants import MAX_UNWRAP_DEPTH
from core.exceptions import ParseError
from data_ingestion.parsers.base import ParsedPayload
from data_ingestion.parsers.html_parser import parse_html
from data_ingestion.parsers.json_parser import load_json, parse_json
from data_ingestion.parsers.redaction import redact
from data_ingestion.parsers.text_parser import parse_text
from data_ingestion.parsers.xml_parser import parse_xml
from data_ingestion.types import PayloadFormat


logger = logging.getLogger(__name__)

_FEED_ROOT = re.compile(r"<(rss|feed|rdf:rdf|channel)[\s>/]")
_HTML_ELEMENT = re.compile(
    r"<(head|body|div|p|article|section|main|table|span|a|ul|h[1-6])[\s>/]"
)
_DATA_URL = re.compile(r"^data:([\w.+-]+/[\w.+-]+)?(;[\w-]+=[\w-]+)*;base64,", re.IGNORECASE)


def sniff(body: str) -> Optional[PayloadFormat]:
    """Return the format the body's structure indicates, or None."""
    text = body.lstrip()
    head = text[:1024].lower()

    if head.startswith("<?xml"):
        if _FEED_ROOT.search(head):
            return PayloadFormat.XML
        if "<html" in head or "<!doctype html" in head:
            return PayloadFormat.HTML
        return PayloadFormat.XML
    if _FEED_ROOT.match(head):
        return PayloadFormat.XML
    if head.startswith("<!doctype html") or head.startswith("<html") or _HTML_ELEMENT.match(head):
        return PayloadFormat.HTML
    if head[:1] in ("{", "["):
        return PayloadFormat.JSON
    return None


def decode_data_url(body: str) -> Optional[str]:
    """Decode a ``data:...;base64,`` body; None if it is not one."""
    text = body.strip()
    match = _DATA_URL.match(text[:256])
    if not match:
        return None
    try:
        raw = base64.b64decode(text[match.end():], validate=False)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise ParseError(
            "Undecodable data URL payload",
            format=PayloadFormat.TEXT.value,
            reason="encoding error",
            context={"digest": redact(body)},
            cause=e,
        )


def envelope_contents(data: Any) -> Optional[str]:
    """Inner document of an allorigins-style ``{"contents": "..."}`` envelope."""
    if isinstance(data, dict) and isinstance(data.get("contents"), str):
        return data["contents"]
    return None


def _has_markup(body: str) -> bool:
    return "<" in body and ">" in body


def parse(
    raw_body: str,
    declared_content_type: str = "",
    source_url: str = "",
) -> ParsedPayload:
    """
    Sniff, unwrap and parse a body.

    Args:
        raw_body: Decoded response body
        declared_content_type: Content-Type header, used only without a body signal
        source_url: Origin of the body, used to resolve relative links

    Returns:
        ParsedPayload of the innermost document

    Raises:
        ParseError: If the detected format fails its well-formedness check
    """
    body = raw_body
    declared = (declared_content_type or "").lower()

    for depth in range(MAX_UNWRAP_DEPTH + 1):
        can_unwrap = depth < MAX_UNWRAP_DEPTH

        decoded = decode_data_url(body)
        if decoded is not None:
            if not can_unwrap:
                break
            logger.debug(f"Decoded data URL payload from {source_url}")
            body = decoded
            declared = ""
            continue

        detected = sniff(body)

        if detected == PayloadFormat.JSON:
            data = load_json(body)
            inner = envelope_contents(data)
            if inner is not None:
                if not can_unwrap:
                    break
                logger.debug(f"Unwrapped proxy envelope from {source_url}")
                body = inner
                declared = ""
                continue
            payload = parse_json(data, source_url)
        elif detected == PayloadFormat.XML:
            payload = parse_xml(body, source_url)
        elif detected == PayloadFormat.HTML:
            payload = parse_html(body, source_url)
        elif "text/plain" in declared:
            payload = parse_text(body, source_url)
        else:
            try:
                payload = parse_xml(body, source_url)
            except ParseError:
                if _has_markup(body):
                    raise
                payload = parse_text(body, source_url)

        if declared and detected and detected.value not in declared:
            logger.debug(
                f"Declared {declared_content_type!r} but body is {detected.value} ({source_url})"
            )
        payload.unwrapped = depth
        return payload

    raise ParseError(
        f"Payload nested deeper than {MAX_UNWRAP_DEPTH} envelopes",
        format=PayloadFormat.JSON.value,
        reason="too deeply nested",
        context={"digest": redact(raw_body)},
    )
