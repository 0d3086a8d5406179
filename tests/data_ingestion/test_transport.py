"""
Tests for the aiohttp transport against a local server.

============================================================
PURPOSE
============================================================
TEST PRINCIPLES:
- The byte ceiling holds with and without a Content-Length header
- Every redirect target passes the gate before it is requested
- Client-library failures surface as transport errors

============================================================
"""

import socket

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from core.constants import MAX_REDIRECTS
from core.exceptions import DisallowedHost, NetworkError, SizeLimitExceeded
from data_ingestion.fetching.transport import AiohttpTransport
from data_ingestion.security import IngestionPolicy, SecurityGate


CEILING = 2500


async def stream_body(request):
    """Chunked body with no Content-Length."""
    response = web.StreamResponse()
    response.enable_chunked_encoding()
    await response.prepare(request)
    for _ in range(5):
        await response.write(b"x" * 1000)
    await response.write_eof()
    return response


async def large_body(request):
    return web.Response(body=b"x" * 5000)


async def small_body(request):
    return web.Response(text="ok", content_type="text/plain")


async def to_metadata_host(request):
    raise web.HTTPFound("http://169.254.169.254/latest/meta-data/")


async def to_small(request):
    raise web.HTTPMovedPermanently("/small")


async def loop_forever(request):
    raise web.HTTPFound("/loop")


def build_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/stream", stream_body)
    app.router.add_get("/large", large_body)
    app.router.add_get("/small", small_body)
    app.router.add_get("/metadata", to_metadata_host)
    app.router.add_get("/old", to_small)
    app.router.add_get("/loop", loop_forever)
    return app


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def open_gate():
    # The local server lives on 127.0.0.1
    return SecurityGate(IngestionPolicy(block_private_networks=False, max_content_length_bytes=CEILING))


@pytest.fixture
def strict_gate():
    return SecurityGate(IngestionPolicy(max_content_length_bytes=CEILING))


# ============================================================
# SIZE CEILING
# ============================================================

class TestSizeCeiling:
    """Tests for the byte ceiling on real responses."""

    @pytest.mark.asyncio
    async def test_chunked_body_over_ceiling(self, open_gate):
        async with TestServer(build_app()) as server, AiohttpTransport() as transport:
            with pytest.raises(SizeLimitExceeded) as exc_info:
                await transport.send(str(server.make_url("/stream")), 5, open_gate)

        assert "while streaming" in exc_info.value.message
        assert exc_info.value.limit_bytes == CEILING

    @pytest.mark.asyncio
    async def test_declared_length_over_ceiling(self, open_gate):
        async with TestServer(build_app()) as server, AiohttpTransport() as transport:
            with pytest.raises(SizeLimitExceeded) as exc_info:
                await transport.send(str(server.make_url("/large")), 5, open_gate)

        assert exc_info.value.message.startswith("Declared length 5000")

    @pytest.mark.asyncio
    async def test_body_under_ceiling(self, open_gate):
        async with TestServer(build_app()) as server, AiohttpTransport() as transport:
            response = await transport.send(str(server.make_url("/small")), 5, open_gate)

        assert response.status_code == 200
        assert response.body == b"ok"
        assert response.content_type.startswith("text/plain")


# ============================================================
# REDIRECTS
# ============================================================

class TestRedirects:
    """Tests for manual redirect handling."""

    @pytest.mark.asyncio
    async def test_redirect_to_blocked_host_not_followed(self, strict_gate):
        async with TestServer(build_app()) as server, AiohttpTransport() as transport:
            with pytest.raises(DisallowedHost) as exc_info:
                await transport.send(str(server.make_url("/metadata")), 5, strict_gate)

        assert "169.254.169.254" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_relative_redirect_followed(self, open_gate):
        async with TestServer(build_app()) as server, AiohttpTransport() as transport:
            response = await transport.send(str(server.make_url("/old")), 5, open_gate)
            expected = str(server.make_url("/small"))

        assert response.status_code == 200
        assert response.body == b"ok"
        assert response.url == expected

    @pytest.mark.asyncio
    async def test_redirect_loop_bounded(self, open_gate):
        async with TestServer(build_app()) as server, AiohttpTransport() as transport:
            with pytest.raises(NetworkError) as exc_info:
                await transport.send(str(server.make_url("/loop")), 5, open_gate)

        assert f"More than {MAX_REDIRECTS} redirects" in exc_info.value.message


# ============================================================
# CONNECTION FAILURES
# ============================================================

class TestConnectionFailures:
    """Tests for client error mapping."""

    @pytest.mark.asyncio
    async def test_refused_connection(self, open_gate):
        url = f"http://127.0.0.1:{unused_port()}/feed.xml"

        async with AiohttpTransport() as transport:
            with pytest.raises(NetworkError) as exc_info:
                await transport.send(url, 5, open_gate)

        assert exc_info.value.is_retryable
        assert exc_info.value.context["cause_type"].startswith("Client")
