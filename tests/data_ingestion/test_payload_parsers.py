"""
Tests for format sniffing and the per-format parsers.

============================================================
PURPOSE
============================================================
TEST PRINCIPLES:
- The body decides the format, the header only breaks ties
- Proxy envelopes and data URLs are peeled before parsing
- Malformed documents fail with a named reason
- Active HTML content never survives parsing

============================================================
"""

import base64
import json

import pytest

from core.exceptions import ParseError
from data_ingestion.parsers import parse, redact, sniff
from data_ingestion.parsers.html_parser import parse_html
from data_ingestion.parsers.text_parser import parse_text
from data_ingestion.types import PayloadFormat


RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Security Wire</title>
    <item>
      <title>Patch now</title>
      <link>https://example.com/patch-now</link>
      <guid>wire-1</guid>
      <pubDate>Wed, 15 Jan 2025 10:00:00 GMT</pubDate>
      <description>Vendor ships fix</description>
      <category>security</category>
    </item>
    <item>
      <title>Second</title>
      <link>https://example.com/second</link>
    </item>
  </channel>
</rss>"""

ATOM = """<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Wire</title>
  <entry>
    <title>Atom entry</title>
    <link href="https://example.com/atom-1"/>
    <id>urn:atom:1</id>
    <updated>2025-01-15T09:00:00Z</updated>
  </entry>
</feed>"""


# ============================================================
# SNIFFING
# ============================================================

class TestSniff:
    """Tests for sniff()."""

    @pytest.mark.parametrize("body,expected", [
        ('<?xml version="1.0"?><rss/>', PayloadFormat.XML),
        ("  <feed xmlns='x'>", PayloadFormat.XML),
        ("<!DOCTYPE html><html></html>", PayloadFormat.HTML),
        ("<div>hi</div>", PayloadFormat.HTML),
        ('{"a": 1}', PayloadFormat.JSON),
        ("[1, 2]", PayloadFormat.JSON),
        ("just words", None),
    ])
    def test_structural_signal(self, body, expected):
        assert sniff(body) == expected


# ============================================================
# DISPATCH
# ============================================================

class TestParseDispatch:
    """Tests for parse()."""

    def test_xml_labelled_as_json_parsed_as_xml(self):
        payload = parse(RSS, "application/json", "https://example.com/rss")

        assert payload.format == PayloadFormat.XML
        assert payload.title == "Security Wire"
        assert [e.title for e in payload.entries] == ["Patch now", "Second"]
        first = payload.entries[0]
        assert first.guid == "wire-1"
        assert first.link == "https://example.com/patch-now"
        assert first.categories == ["security"]
        assert first.published

    def test_atom_feed(self):
        payload = parse(ATOM, "text/html")

        assert payload.format == PayloadFormat.XML
        assert payload.entries[0].link == "https://example.com/atom-1"
        assert payload.entries[0].guid == "urn:atom:1"

    def test_proxy_envelope_unwrapped(self):
        envelope = json.dumps({"contents": RSS, "status": {"http_code": 200}})

        payload = parse(envelope, "application/json")

        assert payload.format == PayloadFormat.XML
        assert payload.unwrapped == 1
        assert len(payload.entries) == 2

    def test_data_url_decoded(self):
        encoded = base64.b64encode(json.dumps({"x": 1}).encode()).decode()

        payload = parse(f"data:application/json;base64,{encoded}")

        assert payload.format == PayloadFormat.JSON
        assert payload.data == {"x": 1}
        assert payload.unwrapped == 1

    def test_data_url_inside_envelope(self):
        encoded = base64.b64encode(RSS.encode()).decode()
        envelope = json.dumps({"contents": f"data:application/rss+xml;base64,{encoded}"})

        payload = parse(envelope)

        assert payload.format == PayloadFormat.XML
        assert payload.unwrapped == 2

    def test_nesting_limit(self):
        body = json.dumps({"a": 1})
        for _ in range(5):
            body = json.dumps({"contents": body})

        with pytest.raises(ParseError) as exc_info:
            parse(body)
        assert exc_info.value.reason == "too deeply nested"

    def test_json_feed_items_become_entries(self):
        body = json.dumps({
            "version": "https://jsonfeed.org/version/1.1",
            "title": "JSON Wire",
            "items": [
                {"id": 7, "title": "Hello", "url": "https://example.com/7", "tags": ["a"]},
                {"id": 8},
            ],
        })

        payload = parse(body, "application/feed+json")

        assert payload.title == "JSON Wire"
        assert len(payload.entries) == 1
        assert payload.entries[0].guid == "7"
        assert payload.entries[0].categories == ["a"]

    def test_plain_text_by_declared_type(self):
        payload = parse("line one\nline two", "text/plain", "https://example.com/t.txt")

        assert payload.format == PayloadFormat.TEXT
        assert len(payload.entries) == 2

    def test_no_signal_without_markup_is_text(self):
        payload = parse("Breaking: something happened")
        assert payload.format == PayloadFormat.TEXT


# ============================================================
# MALFORMED DOCUMENTS
# ============================================================

class TestMalformed:
    """Tests for named parse failures."""

    def test_mismatched_xml_tag(self):
        with pytest.raises(ParseError) as exc_info:
            parse("<rss><channel><title>x</channel></rss>")
        assert exc_info.value.format == "xml"
        assert exc_info.value.reason == "mismatched tag"

    def test_truncated_json(self):
        with pytest.raises(ParseError) as exc_info:
            parse('{"items": [1, 2')
        assert exc_info.value.format == "json"
        assert exc_info.value.reason == "unexpected end of input"

    def test_bad_json_token(self):
        with pytest.raises(ParseError) as exc_info:
            parse('{"items": }')
        assert exc_info.value.reason == "unexpected token"

    def test_error_context_is_redacted(self):
        secret = '{"token": "abc123", '
        with pytest.raises(ParseError) as exc_info:
            parse(secret)
        assert "abc123" not in str(exc_info.value.context)
        assert exc_info.value.context["digest"].startswith("sha256:")

    def test_text_with_nul_bytes(self):
        with pytest.raises(ParseError) as exc_info:
            parse_text("a\x00b")
        assert exc_info.value.reason == "binary content"

    def test_text_line_limit(self):
        with pytest.raises(ParseError) as exc_info:
            parse_text("x\n" * 11, max_lines=10)
        assert exc_info.value.reason == "too many lines"

    def test_html_without_elements(self):
        with pytest.raises(ParseError) as exc_info:
            parse_html("nothing here")
        assert exc_info.value.reason == "no elements"


# ============================================================
# HTML
# ============================================================

class TestHtml:
    """Tests for HTML sanitizing and extraction."""

    def test_articles_extracted_and_sanitized(self):
        body = """<!DOCTYPE html><html><head><title>Wire</title>
        <script>steal()</script>
        <meta http-equiv="refresh" content="0;url=https://evil.example">
        </head><body>
        <article>
          <h2><a href="/a/1" onclick="steal()">First story</a></h2>
          <time datetime="2025-01-15T08:00:00Z">today</time>
          <p>Summary text</p>
        </article>
        <article><h2><a href="javascript:steal()">Bad link</a></h2></article>
        </body></html>"""

        payload = parse(body, "text/html", "https://example.com/news/")

        assert payload.format == PayloadFormat.HTML
        assert payload.title == "Wire"
        first, second = payload.entries
        assert first.title == "First story"
        assert first.link == "https://example.com/a/1"
        assert first.published == "2025-01-15T08:00:00Z"
        assert first.description == "Summary text"
        assert "javascript" not in second.link

    def test_rss_served_as_html(self):
        body = """<html><body><item><title>Item A</title><link>https://example.com/a</link>
        <description>desc</description></item></body></html>"""

        payload = parse_html(body)

        assert payload.entries[0].title == "Item A"
        assert payload.entries[0].link == "https://example.com/a"


# ============================================================
# TEXT
# ============================================================

class TestText:
    """Tests for the plain text parser."""

    def test_lines_with_urls(self):
        payload = parse_text(
            "Headline one - https://example.com/1.\n\n   \nSecond line",
            source_url="https://example.com/list.txt",
        )

        first, second = payload.entries
        assert first.title == "Headline one"
        assert first.link == "https://example.com/1"
        assert second.title == "Second line"
        assert second.link == "https://example.com/list.txt"


# ============================================================
# REDACTION
# ============================================================

class TestRedact:
    """Tests for redact()."""

    def test_digest_format(self):
        digest = redact("private payload")
        assert digest.startswith("sha256:")
        assert digest.endswith("len=15")
        assert "private" not in digest

    def test_same_payload_same_digest(self):
        assert redact("a") == redact(b"a")
        assert redact("a") != redact("b")

    def test_non_string_payload(self):
        assert redact({"k": "v"}).startswith("sha256:")
