"""
Tests for the HTTP email client using httpx.MockTransport.
"""

import json

import httpx
import pytest

from newsletter_delivery.core.delivery.models import OutcomeKind
from newsletter_delivery.core.transport import EmailContent, HttpEmailClient

CONTENT = EmailContent(title="Weekly", html="<p>hi</p>", text="hi")


def _client(handler) -> HttpEmailClient:
    return HttpEmailClient(
        base_url="https://mail.test/",
        sender="newsletter@example.com",
        auth_token="secret-token",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestHttpEmailClient:

    @pytest.mark.asyncio
    async def test_posts_postmark_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["token"] = request.headers.get("X-Postmark-Server-Token")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ErrorCode": 0})

        client = _client(handler)
        outcome = await client.send("reader@example.com", CONTENT)
        await client.aclose()

        assert outcome.is_success
        assert seen["url"] == "https://mail.test/email"
        assert seen["token"] == "secret-token"
        assert seen["body"] == {
            "From": "newsletter@example.com",
            "To": "reader@example.com",
            "Subject": "Weekly",
            "HtmlBody": "<p>hi</p>",
            "TextBody": "hi",
        }

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self):
        client = _client(lambda request: httpx.Response(503, text="maintenance"))

        outcome = await client.send("reader@example.com", CONTENT)

        assert outcome.kind == OutcomeKind.TRANSIENT_FAILURE
        assert "503" in outcome.reason

    @pytest.mark.asyncio
    async def test_rejected_address_is_permanent(self):
        client = _client(lambda request: httpx.Response(422, json={"Message": "Invalid 'To'"}))

        outcome = await client.send("bad@x", CONTENT)

        assert outcome.kind == OutcomeKind.PERMANENT_FAILURE
        assert outcome.reason.startswith("HTTP 422")

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        outcome = await _client(handler).send("reader@example.com", CONTENT)

        assert outcome.kind == OutcomeKind.TRANSIENT_FAILURE

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        outcome = await _client(handler).send("reader@example.com", CONTENT)

        assert outcome.kind == OutcomeKind.TRANSIENT_FAILURE
        assert outcome.reason.startswith("timeout")
