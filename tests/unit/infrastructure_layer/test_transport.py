"""
Unit Tests for AmpecoTransport

Tests HTTP status classification, retry-after parsing and request shape,
against an httpx.MockTransport.
"""

import asyncio
from email.utils import format_datetime
from datetime import datetime, timezone

import httpx
import pytest

from evassist.core.exceptions import UpstreamPermanentError, UpstreamTransientError
from evassist.infrastructure.upstream.transport import AmpecoTransport, parse_retry_after


@pytest.mark.unit
class TestParseRetryAfter:
    def test_delta_seconds(self):
        assert parse_retry_after("7") == 7.0

    def test_negative_seconds_clamp_to_zero(self):
        assert parse_retry_after("-3") == 0.0

    def test_http_date(self):
        now = datetime(2026, 1, 12, 10, 0, 0, tzinfo=timezone.utc)
        header = format_datetime(datetime(2026, 1, 12, 10, 0, 30, tzinfo=timezone.utc), usegmt=True)
        assert parse_retry_after(header, now=now.timestamp()) == pytest.approx(30.0)

    @pytest.mark.parametrize("value", [None, "", "soon"])
    def test_missing_or_garbage(self, value):
        assert parse_retry_after(value) is None


@pytest.mark.unit
class TestRequestShape:
    async def test_bearer_token_and_json_body_are_sent(self, upstream, transport):
        upstream.add("/api/v1/stations/35/reset", json={"data": {"accepted": True}})

        payload = await transport.request("POST", "/api/v1/stations/35/reset", json_body={"type": "soft"})

        request = upstream.requests[0]
        assert payload == {"data": {"accepted": True}}
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.content == b'{"type":"soft"}'

    async def test_query_params_are_sent(self, upstream, transport):
        upstream.add("/api/v1/sessions", json={"data": []})

        await transport.request("GET", "/api/v1/sessions", params={"userId": "u1", "limit": 5})

        assert upstream.requests[0].url.params["userId"] == "u1"
        assert upstream.requests[0].url.params["limit"] == "5"

    async def test_empty_body_decodes_to_empty_dict(self, upstream, transport):
        upstream.add("/api/v1/evses/9/unlock", status_code=204)
        assert await transport.request("POST", "/api/v1/evses/9/unlock") == {}


@pytest.mark.unit
class TestStatusClassification:
    async def test_429_is_transient_with_retry_after(self, upstream, transport):
        upstream.add("/x", status_code=429, headers={"Retry-After": "4"})

        with pytest.raises(UpstreamTransientError) as exc_info:
            await transport.request("GET", "/x")

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 4.0

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    async def test_5xx_is_transient(self, upstream, transport, status):
        upstream.add("/x", status_code=status)
        with pytest.raises(UpstreamTransientError):
            await transport.request("GET", "/x")

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    async def test_4xx_is_permanent(self, upstream, transport, status):
        upstream.add("/x", status_code=status, json={"message": "nope"})
        with pytest.raises(UpstreamPermanentError) as exc_info:
            await transport.request("GET", "/x")
        assert exc_info.value.status_code == status

    async def test_malformed_json_is_permanent(self, upstream, transport):
        upstream._responses["/x"] = [lambda request: httpx.Response(200, content=b"<html>")]
        with pytest.raises(UpstreamPermanentError):
            await transport.request("GET", "/x")

    async def test_connection_error_is_transient(self, upstream, transport):
        upstream.fail_with("/x", httpx.ConnectError("refused"))
        with pytest.raises(UpstreamTransientError):
            await transport.request("GET", "/x")

    async def test_timeout_is_transient(self, upstream):
        async def slow(request):
            await asyncio.sleep(1)
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(slow))
        transport = AmpecoTransport("https://tenant.test", api_key=None, timeout=0.01, client=client)

        with pytest.raises(UpstreamTransientError):
            await transport.request("GET", "/x")


@pytest.mark.unit
class TestConfiguration:
    async def test_unconfigured_base_url_is_permanent(self):
        transport = AmpecoTransport("", api_key=None)
        with pytest.raises(UpstreamPermanentError):
            await transport.request("GET", "/api/v1/stations/1")

    async def test_close_leaves_injected_client_open(self, transport):
        await transport.close()
        assert not transport._client.is_closed
