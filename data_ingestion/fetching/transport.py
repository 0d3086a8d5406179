"""
Fetch Transport - One HTTP exchange.

The transport performs a single GET and returns the raw response.
It follows redirects itself, checking each target host against the
gate, enforces the byte ceiling while reading and maps client-library
failures onto the pipeline's transport errors. Status codes are
classified by the fetcher, not here.
"""

import asyncio
import codecs
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urljoin

import aiohttp

from core.constants import MAX_REDIRECTS, USER_AGENT
from core.exceptions import Aborted, NetworkError, ParseError
from data_ingestion.security import SecurityGate


logger = logging.getLogger(__name__)

DEFAULT_ACCEPT = (
    "application/xml, text/xml, application/rss+xml, application/atom+xml, "
    "application/json, text/html, text/plain, */*"
)
CHUNK_SIZE = 8192
_REDIRECT_STATUSES = (301, 302, 303, 307, 308)


@dataclass
class RawResponse:
    """Bytes and metadata of one HTTP exchange."""
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def charset(self) -> Optional[str]:
        for part in self.content_type.split(";")[1:]:
            name, _, value = part.strip().partition("=")
            if name.lower() == "charset" and value:
                return value.strip("\"'")
        return None

    def text(self) -> str:
        """
        Decode the body with the declared charset, else UTF-8.

        Raises:
            ParseError: reason "encoding error" if the bytes do not decode
        """
        encoding = self.charset or "utf-8"
        try:
            codecs.lookup(encoding)
        except LookupError:
            encoding = "utf-8"
        try:
            text = self.body.decode(encoding)
        except UnicodeDecodeError as e:
            raise ParseError(
                f"Body is not valid {encoding}",
                format="text",
                reason="encoding error",
                cause=e,
            )
        return text.lstrip("\ufeff")


class Transport(ABC):
    """A single network exchange."""

    @abstractmethod
    async def send(
        self,
        url: str,
        timeout: float,
        gate: SecurityGate,
        headers: Optional[Dict[str, str]] = None,
    ) -> RawResponse:
        """
        GET a URL.

        Raises:
            SizeLimitExceeded: Declared or streamed size over the gate's ceiling
            DisallowedHost: Redirect to a host the gate rejects
            Aborted: Timeout
            NetworkError: Connection-level failure
        """
        pass

    async def close(self) -> None:
        """Release resources."""


class AiohttpTransport(Transport):
    """
    aiohttp-backed transport.

    Uses a borrowed session when one is passed, otherwise creates and
    owns one lazily.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None) -> None:
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._get_default_headers())
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> Dict[str, str]:
        return {
            "Accept": DEFAULT_ACCEPT,
            "User-Agent": USER_AGENT,
            "Cache-Control": "no-cache",
        }

    async def send(
        self,
        url: str,
        timeout: float,
        gate: SecurityGate,
        headers: Optional[Dict[str, str]] = None,
    ) -> RawResponse:
        """
        GET a URL, following redirects by hand.

        Every Location is checked against the gate before it is
        requested, so a redirect never reaches a private host. Size
        limits apply to the final response.
        """
        session = await self._get_session()
        current = url
        try:
            for _ in range(MAX_REDIRECTS + 1):
                async with session.get(
                    current,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=timeout),
                    allow_redirects=False,
                ) as response:
                    location = response.headers.get("Location")
                    if response.status in _REDIRECT_STATUSES and location:
                        target = urljoin(current, location)
                        gate.check_url(target, enforce_allow_list=False)
                        logger.debug(f"Redirect {response.status} {current} -> {target}")
                        current = target
                        continue
                    return await self._read(response, current, gate)
        except asyncio.TimeoutError as e:
            raise Aborted(f"Timed out after {timeout}s", cause=e)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Request failed: {e}", cause=e)

        raise NetworkError(f"More than {MAX_REDIRECTS} redirects from {url}")

    @staticmethod
    async def _read(
        response: aiohttp.ClientResponse,
        url: str,
        gate: SecurityGate,
    ) -> RawResponse:
        gate.check_declared_length(response.headers.get("Content-Length"), url)

        chunks = []
        received = 0
        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
            received += len(chunk)
            gate.check_observed_length(received, url)
            chunks.append(chunk)

        return RawResponse(
            status_code=response.status,
            body=b"".join(chunks),
            headers=dict(response.headers),
            url=url,
        )

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AiohttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
