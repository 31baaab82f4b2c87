"""
Tests for fileward.file_operations.fetch.

This module tests:
- Downloads through the aiohttp and requests strategies
- Redirect limits and non-2xx handling
- Timeouts and incomplete bodies leaving nothing behind
- Target validation inside the confined root
"""

import asyncio
from contextlib import asynccontextmanager

import pytest
from aiohttp import web

from fileward.exceptions import ErrorKind
from fileward.file_operations.capabilities import CapabilityProfile
from fileward.file_operations.config import FileManagerConfig
from fileward.file_operations.core import FileManagerTools
from fileward.file_operations.data_models import Outcome
from fileward.file_operations.fetch import AiohttpFetchStrategy, FetchResponse

PAYLOAD = b"0123456789" * 1000


# =============================================================================
# Fixtures and Helpers
# =============================================================================

@pytest.fixture
def root(tmp_path):
    root = tmp_path / "root"
    (root / "downloads").mkdir(parents=True)
    return root.resolve()


def make_profile(aiohttp_client=True, requests_client=True):
    return CapabilityProfile(
        has_native_archive=True,
        has_shell_exec=False,
        has_outbound_http=requests_client,
        has_http_client=aiohttp_client,
        is_posix=True,
    )


def make_tools(root, profile=None, **config_overrides):
    config = FileManagerConfig(root_directory=root, allow_shell_exec=False, **config_overrides)
    return FileManagerTools(config, profile=profile or make_profile())


def build_app(seen_headers):
    async def file_handler(request):
        seen_headers.append(dict(request.headers))
        return web.Response(body=PAYLOAD, content_type="application/octet-stream")

    async def missing_handler(request):
        return web.Response(status=404, text="nope")

    async def hop_handler(request):
        raise web.HTTPFound("/files/data.bin")

    async def double_hop_handler(request):
        raise web.HTTPFound("/hop")

    async def slow_handler(request):
        await asyncio.sleep(2)
        return web.Response(body=b"late")

    app = web.Application()
    app.router.add_get("/files/data.bin", file_handler)
    app.router.add_get("/missing.bin", missing_handler)
    app.router.add_get("/hop", hop_handler)
    app.router.add_get("/double-hop", double_hop_handler)
    app.router.add_get("/slow.bin", slow_handler)
    return app


@asynccontextmanager
async def serve(seen_headers=None):
    """Run the test application on an ephemeral localhost port."""
    runner = web.AppRunner(build_app(seen_headers if seen_headers is not None else []), shutdown_timeout=0.5)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        await runner.cleanup()


def visible(directory):
    return sorted(p.name for p in directory.iterdir())


# =============================================================================
# aiohttp Strategy Tests
# =============================================================================

class TestAiohttpFetch:

    @pytest.mark.asyncio
    async def test_download(self, root):
        tools = make_tools(root)
        seen = []

        async with serve(seen) as base:
            result = await tools.fetch(f"{base}/files/data.bin", "downloads")

        target = root / "downloads" / "data.bin"
        assert result.outcome == Outcome.SUCCESS
        assert result.strategy_used == "aiohttp"
        assert result.output_path == target
        assert result.message == "File downloaded: data.bin"
        assert target.read_bytes() == PAYLOAD
        assert visible(root / "downloads") == ["data.bin"]
        assert seen[0]["Accept-Encoding"] == "identity"
        assert seen[0]["User-Agent"].startswith("fileward")

    @pytest.mark.asyncio
    async def test_default_destination_is_root(self, root):
        tools = make_tools(root)

        async with serve() as base:
            result = await tools.fetch(f"{base}/files/data.bin", suggested_name="copy.bin")

        assert result.succeeded
        assert (root / "copy.bin").read_bytes() == PAYLOAD

    @pytest.mark.asyncio
    async def test_replaces_existing_file(self, root):
        (root / "downloads" / "data.bin").write_bytes(b"old")
        tools = make_tools(root)

        async with serve() as base:
            result = await tools.fetch(f"{base}/files/data.bin", "downloads")

        assert result.succeeded
        assert (root / "downloads" / "data.bin").read_bytes() == PAYLOAD

    @pytest.mark.asyncio
    async def test_http_error(self, root):
        tools = make_tools(root)

        async with serve() as base:
            result = await tools.fetch(f"{base}/missing.bin", "downloads")

        assert result.outcome == Outcome.FAILURE
        assert result.error_kind == ErrorKind.NETWORK_ERROR
        assert "404" in result.message
        assert visible(root / "downloads") == []

    @pytest.mark.asyncio
    async def test_redirect_followed(self, root):
        tools = make_tools(root, max_redirects=1)

        async with serve() as base:
            result = await tools.fetch(f"{base}/hop", "downloads", suggested_name="hop.bin")

        assert result.succeeded
        assert (root / "downloads" / "hop.bin").read_bytes() == PAYLOAD
        assert any(note.startswith("Redirected to") for note in result.notes)

    @pytest.mark.asyncio
    async def test_redirect_limit(self, root):
        tools = make_tools(root, max_redirects=1)

        async with serve() as base:
            result = await tools.fetch(f"{base}/double-hop", "downloads", suggested_name="x.bin")

        assert result.error_kind == ErrorKind.NETWORK_ERROR
        assert visible(root / "downloads") == []

    @pytest.mark.asyncio
    async def test_redirects_disabled(self, root):
        tools = make_tools(root, max_redirects=0)

        async with serve() as base:
            result = await tools.fetch(f"{base}/hop", "downloads", suggested_name="x.bin")

        assert result.error_kind == ErrorKind.NETWORK_ERROR
        assert "302" in result.message

    @pytest.mark.asyncio
    async def test_timeout(self, root):
        tools = make_tools(root, fetch_timeout_seconds=0.2)

        async with serve() as base:
            result = await tools.fetch(f"{base}/slow.bin", "downloads")

        assert result.error_kind == ErrorKind.NETWORK_ERROR
        assert visible(root / "downloads") == []

    @pytest.mark.asyncio
    async def test_connection_refused(self, root):
        tools = make_tools(root)

        async with serve() as base:
            pass

        result = await tools.fetch(f"{base}/files/data.bin", "downloads")

        assert result.error_kind == ErrorKind.NETWORK_ERROR


# =============================================================================
# requests Strategy Tests
# =============================================================================

class TestRequestsFetch:

    @pytest.mark.asyncio
    async def test_download(self, root):
        tools = make_tools(root, profile=make_profile(aiohttp_client=False))
        seen = []

        async with serve(seen) as base:
            result = await tools.fetch(f"{base}/files/data.bin", "downloads")

        assert result.succeeded
        assert result.strategy_used == "requests"
        assert (root / "downloads" / "data.bin").read_bytes() == PAYLOAD
        assert seen[0]["Accept-Encoding"] == "identity"

    @pytest.mark.asyncio
    async def test_http_error(self, root):
        tools = make_tools(root, profile=make_profile(aiohttp_client=False))

        async with serve() as base:
            result = await tools.fetch(f"{base}/missing.bin", "downloads")

        assert result.error_kind == ErrorKind.NETWORK_ERROR
        assert result.strategy_used == "requests"
        assert visible(root / "downloads") == []

    @pytest.mark.asyncio
    async def test_redirect_limit(self, root):
        tools = make_tools(root, profile=make_profile(aiohttp_client=False), max_redirects=1)

        async with serve() as base:
            result = await tools.fetch(f"{base}/double-hop", "downloads", suggested_name="x.bin")

        assert result.error_kind == ErrorKind.NETWORK_ERROR


class TestRedirectPolicy:
    """Both strategies follow exactly ``max_redirects`` hops."""

    @pytest.mark.parametrize("aiohttp_client", [True, False], ids=["aiohttp", "requests"])
    @pytest.mark.asyncio
    async def test_chain_at_limit_is_followed(self, root, aiohttp_client):
        tools = make_tools(root, profile=make_profile(aiohttp_client=aiohttp_client), max_redirects=2)

        async with serve() as base:
            result = await tools.fetch(f"{base}/double-hop", "downloads", suggested_name="two.bin")

        assert result.succeeded, result.message
        assert (root / "downloads" / "two.bin").read_bytes() == PAYLOAD

    @pytest.mark.parametrize("aiohttp_client", [True, False], ids=["aiohttp", "requests"])
    @pytest.mark.asyncio
    async def test_chain_over_limit_fails(self, root, aiohttp_client):
        tools = make_tools(root, profile=make_profile(aiohttp_client=aiohttp_client), max_redirects=1)

        async with serve() as base:
            result = await tools.fetch(f"{base}/double-hop", "downloads", suggested_name="two.bin")

        assert result.error_kind == ErrorKind.NETWORK_ERROR
        assert visible(root / "downloads") == []


# =============================================================================
# Fetcher Tests
# =============================================================================

class TestFetcher:

    def test_strategy_order(self, root):
        assert make_tools(root).fetcher.select_strategy().name == "aiohttp"
        assert make_tools(root, profile=make_profile(aiohttp_client=False)).fetcher.select_strategy().name == "requests"

    @pytest.mark.asyncio
    async def test_no_strategy(self, root):
        tools = make_tools(root, profile=make_profile(aiohttp_client=False, requests_client=False))

        result = await tools.fetch("http://example.com/a.bin", "downloads")

        assert result.error_kind == ErrorKind.CAPABILITY_UNAVAILABLE
        assert result.strategy_used is None

    @pytest.mark.asyncio
    async def test_invalid_url(self, root):
        result = await make_tools(root).fetch("ftp://example.com/a.bin")

        assert result.error_kind == ErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_destination_outside_root(self, root):
        result = await make_tools(root).fetch("http://example.com/a.bin", "../elsewhere")

        assert result.error_kind == ErrorKind.OUT_OF_BOUNDS

    @pytest.mark.asyncio
    async def test_missing_destination(self, root):
        result = await make_tools(root).fetch("http://example.com/a.bin", "nowhere")

        assert result.error_kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_directory_in_the_way(self, root):
        (root / "downloads" / "a.bin").mkdir()

        result = await make_tools(root).fetch("http://example.com/a.bin", "downloads")

        assert result.error_kind == ErrorKind.ALREADY_EXISTS

    @pytest.mark.asyncio
    async def test_incomplete_body_discarded(self, root, mocker):
        async def short_download(self, url, out):
            out.write(b"abc")
            return FetchResponse(status_code=200, final_url=url, bytes_written=3, expected_length=10)

        mocker.patch.object(AiohttpFetchStrategy, "download", short_download)

        result = await make_tools(root).fetch("http://example.com/a.bin", "downloads")

        assert result.error_kind == ErrorKind.NETWORK_ERROR
        assert "Incomplete download" in result.message
        assert visible(root / "downloads") == []

    @pytest.mark.asyncio
    async def test_cancellation_discards_partial_file(self, root, mocker):
        async def stalled_download(self, url, out):
            out.write(b"partial")
            await asyncio.sleep(30)

        mocker.patch.object(AiohttpFetchStrategy, "download", stalled_download)

        result = await make_tools(root).fetch("http://example.com/a.bin", "downloads", timeout=0.2)

        assert result.error_kind == ErrorKind.TIMEOUT
        assert visible(root / "downloads") == []
