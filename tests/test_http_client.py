"""Tests for fetch/http_client.py"""

import httpx

from ingest_service.fetch.http_client import RateLimitedHttpClient


def _client(handler, **kwargs):
    slept: list[float] = []
    client = RateLimitedHttpClient(
        crawl_delay=0,
        user_agent="laurels-test",
        max_retries=3,
        transport=httpx.MockTransport(handler),
        sleep=slept.append,
        **kwargs,
    )
    return client, slept


class TestFetch:
    def test_ok(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text="<html>ok</html>", headers={"Content-Type": "text/html"})

        client, _ = _client(handler)
        result = client.fetch("https://en.wikipedia.org/wiki/X")
        assert result.ok
        assert result.text == "<html>ok</html>"
        assert seen[0].headers["User-Agent"] == "laurels-test"

    def test_not_found_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        client, _ = _client(handler)
        result = client.fetch("https://en.wikipedia.org/wiki/1939_Cannes_Film_Festival")
        assert result.not_found
        assert not result.ok
        assert len(calls) == 1

    def test_server_errors_retried_with_backoff(self):
        responses = iter([httpx.Response(502), httpx.Response(503), httpx.Response(200, text="fine")])
        client, slept = _client(lambda request: next(responses))
        result = client.fetch("https://en.wikipedia.org/wiki/X")
        assert result.ok
        assert slept == [1, 2]

    def test_connection_errors_exhaust_retries(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        client, slept = _client(handler)
        result = client.fetch("https://en.wikipedia.org/wiki/X")
        assert result.status_code == 0
        assert "down" in result.error
        assert slept == [1, 2]

    def test_crawl_delay_between_requests(self):
        slept: list[float] = []
        client = RateLimitedHttpClient(
            crawl_delay=10,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="x")),
            sleep=slept.append,
        )
        client.fetch("https://en.wikipedia.org/a")
        client.fetch("https://en.wikipedia.org/b")
        assert len(slept) == 1
        assert 0 < slept[0] <= 10
