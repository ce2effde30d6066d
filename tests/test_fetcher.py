"""Tests for the retrying HTTP fetcher.

The aiohttp session is replaced with a stub whose ``get`` hands back async
context managers, so retry and failure classification run without a network.
Session setup and body decoding are checked against a local aiohttp server.
"""

import asyncio

import aiohttp
from aiohttp import web
from aiohttp import test_utils
import pytest
from unittest.mock import Mock

from pipelines.fetcher import Fetcher, FetchError, FetchErrorKind


class StubResponse:
    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body

    async def text(self, errors="strict"):
        return self.body


class StubRequest:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc

    async def __aenter__(self):
        if self.exc is not None:
            raise self.exc
        return self.response

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


def make_fetcher(*outcomes, max_retries=3):
    fetcher = Fetcher(max_retries=max_retries, retry_delay=0.0)
    fetcher.session = Mock()
    fetcher.session.get = Mock(side_effect=list(outcomes))
    return fetcher


class TestFetcher:
    """Retry policy and error classification."""

    @pytest.mark.asyncio
    async def test_success_returns_body(self):
        fetcher = make_fetcher(StubRequest(StubResponse(200, "<html>ok</html>")))
        assert await fetcher.fetch("https://a.test/") == "<html>ok</html>"
        fetcher.session.get.assert_called_once_with("https://a.test/", allow_redirects=True)

    @pytest.mark.asyncio
    async def test_timeout_retried_then_succeeds(self):
        fetcher = make_fetcher(StubRequest(exc=asyncio.TimeoutError()),
                               StubRequest(StubResponse(200, "body")))
        assert await fetcher.fetch("https://a.test/") == "body"
        assert fetcher.session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_timeout_exhausts_retries(self):
        fetcher = make_fetcher(*[StubRequest(exc=asyncio.TimeoutError()) for _ in range(4)])

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://a.test/slow")

        assert exc_info.value.kind == FetchErrorKind.TIMEOUT
        assert exc_info.value.url == "https://a.test/slow"
        assert exc_info.value.attempts == 4
        assert fetcher.session.get.call_count == 4

    @pytest.mark.asyncio
    async def test_client_not_found_not_retried(self):
        fetcher = make_fetcher(StubRequest(StubResponse(404)))

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://a.test/missing")

        assert exc_info.value.kind == FetchErrorKind.HTTP_STATUS
        assert exc_info.value.status == 404
        assert not exc_info.value.retryable
        assert fetcher.session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        fetcher = make_fetcher(*[StubRequest(StubResponse(503)) for _ in range(3)],
                               max_retries=2)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://a.test/")

        assert exc_info.value.status == 503
        assert fetcher.session.get.call_count == 3

    @pytest.mark.asyncio
    async def test_connection_error_classified(self):
        fetcher = make_fetcher(StubRequest(exc=aiohttp.ClientConnectionError("reset")),
                               max_retries=0)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://a.test/")

        assert exc_info.value.kind == FetchErrorKind.CONNECTION

    @pytest.mark.asyncio
    async def test_closed_fetcher_reports_cancelled(self):
        fetcher = Fetcher()
        await fetcher.close()

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://a.test/")

        assert exc_info.value.kind == FetchErrorKind.CANCELLED

    @pytest.mark.asyncio
    async def test_session_lifecycle(self):
        async with Fetcher(cookies={"session": "abc"}, headers={"Accept": "text/html"}) as fetcher:
            assert fetcher.session is not None
            assert fetcher.session.headers["User-Agent"] == "DocSift-Scraper/1.0.0"
            assert fetcher.session.headers["Accept"] == "text/html"
        assert fetcher.session is None

    def test_retry_delay_bounded(self):
        fetcher = Fetcher(retry_delay=1.0, max_retry_delay=5.0)
        for attempt in range(10):
            assert 0 < fetcher._calculate_retry_delay(attempt) <= 5.0

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            Fetcher(max_retries=-1)


def cookie_echo_app():
    async def echo(request):
        return web.Response(text=request.headers.get("Cookie", ""))

    async def binary(request):
        return web.Response(body=b"<p>caf\xe9 \xff</p>", content_type="text/html", charset="utf-8")

    app = web.Application()
    app.router.add_get("/echo", echo)
    app.router.add_get("/binary", binary)
    return app


class TestFetcherAgainstServer:
    """Requests against a local aiohttp server."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("follow_cookies", [True, False])
    async def test_configured_cookies_sent(self, follow_cookies):
        async with test_utils.TestServer(cookie_echo_app()) as server:
            async with Fetcher(cookies={"session": "abc"}, follow_cookies=follow_cookies) as fetcher:
                body = await fetcher.fetch(str(server.make_url("/echo")))

        assert body == "session=abc"

    @pytest.mark.asyncio
    async def test_undecodable_body_replaced(self):
        async with test_utils.TestServer(cookie_echo_app()) as server:
            async with Fetcher(max_retries=0) as fetcher:
                body = await fetcher.fetch(str(server.make_url("/binary")))

        assert body.startswith("<p>caf")
        assert "�" in body
