"""Tests for LinePushChannel (httpx MockTransport, no network)."""

import json

import httpx
import pytest

from watch_spine.core.errors import DeliveryError, NetworkError, RateLimitError
from watch_spine.notify import LinePushChannel
from watch_spine.notify.channels.line import LINE_PUSH_URL


def make_channel(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return LinePushChannel("token-123", client=client)


class TestLinePushChannel:
    """Test request shape and status mapping."""

    def test_push_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        payloads = [{"type": "text", "text": "hi"}]
        result = make_channel(handler).send("U1", payloads)

        assert result.success
        assert result.status == 200
        assert seen["url"] == LINE_PUSH_URL
        assert seen["auth"] == "Bearer token-123"
        assert seen["body"] == {"to": "U1", "messages": payloads}

    def test_rate_limited(self):
        def handler(request):
            return httpx.Response(429, json={"message": "too many"}, headers={"Retry-After": "30"})

        result = make_channel(handler).send("U1", [{"type": "text", "text": "hi"}])
        assert not result.success
        assert result.status == 429
        assert isinstance(result.error, RateLimitError)
        assert result.error.retry_after == 30

    def test_invalid_recipient(self):
        def handler(request):
            return httpx.Response(400, json={"message": "The property, 'to', in the request body is invalid"})

        result = make_channel(handler).send("bogus", [{"type": "text", "text": "hi"}])
        assert isinstance(result.error, DeliveryError)
        assert result.error.status == 400
        assert result.error.recipient == "bogus"
        assert "invalid" in result.message

    def test_server_error_is_transient(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        result = make_channel(handler).send("U1", [{"type": "text", "text": "hi"}])
        assert isinstance(result.error, NetworkError)
        assert result.error.retryable
        assert result.status == 503

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = make_channel(handler).send("U1", [{"type": "text", "text": "hi"}])
        assert not result.success
        assert isinstance(result.error, NetworkError)
        assert result.status is None

    @pytest.mark.parametrize("status", [200, 204])
    def test_success_statuses(self, status):
        result = make_channel(lambda r: httpx.Response(status)).send("U1", [])
        assert result.success
