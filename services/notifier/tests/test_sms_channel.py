"""
Tests for the Twilio SMS channel.

Validates the Messages resource request, single-attempt semantics, and
mapping of timeouts, transport errors and Twilio rejections onto
DeliveryError.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs

import httpx
import pytest

from pp_common.errors import DeliveryError
from notifier.channels.sms_channel import TwilioSmsChannel

_SID = "AC0123456789"


def _channel(handler) -> TwilioSmsChannel:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TwilioSmsChannel(_SID, "secret", "+15550009999", client=client)


# ── successful delivery ──


class TestSmsDelivery:
    async def test_posts_form_to_messages_resource(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"sid": "SM1", "status": "queued"})

        ch = _channel(handler)
        await ch.send("+15550001111", "🚨 Pool Alert\nbody")
        await ch.close()

        (req,) = seen
        assert req.method == "POST"
        assert str(req.url) == f"https://api.twilio.com/2010-04-01/Accounts/{_SID}/Messages.json"
        form = parse_qs(req.content.decode())
        assert form == {
            "From": ["+15550009999"],
            "To": ["+15550001111"],
            "Body": ["🚨 Pool Alert\nbody"],
        }
        assert req.headers["Authorization"].startswith("Basic ")

    async def test_non_json_success_body_is_delivered(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(201, text="queued")

        await _channel(handler).send("+15550001111", "hi")
        assert calls == 1

    async def test_non_object_json_success_body_is_delivered(self) -> None:
        await _channel(lambda r: httpx.Response(200, json=["SM1"])).send("+15550001111", "hi")

    async def test_custom_base_url(self) -> None:
        ch = TwilioSmsChannel(_SID, "secret", "+1", base_url="http://localhost:8080/")
        assert ch.messages_url == f"http://localhost:8080/2010-04-01/Accounts/{_SID}/Messages.json"


# ── failures ──


class TestSmsFailures:
    async def test_rejection_raises_with_twilio_detail(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400, json={"code": 21211, "message": "Invalid 'To' Phone Number"}
            )

        ch = _channel(handler)
        with pytest.raises(DeliveryError, match="21211") as info:
            await ch.send("not-a-number", "hi")
        assert info.value.channel == "twilio_sms"

    async def test_non_json_error_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        with pytest.raises(DeliveryError, match="503"):
            await _channel(handler).send("+15550001111", "hi")

    async def test_non_object_json_error_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json=["bad request"])

        with pytest.raises(DeliveryError, match="400"):
            await _channel(handler).send("+15550001111", "hi")

    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DeliveryError, match="transport"):
            await _channel(handler).send("+15550001111", "hi")

    async def test_timeout_raises(self) -> None:
        ch = TwilioSmsChannel(_SID, "secret", "+15550009999")
        with patch.object(ch, "_get_client") as mock_gc:
            client = AsyncMock()
            client.post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
            mock_gc.return_value = client

            with pytest.raises(DeliveryError, match="timed out"):
                await ch.send("+15550001111", "hi")

        client.post.assert_awaited_once()

    async def test_single_attempt_per_message(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500, json={"message": "boom"})

        with pytest.raises(DeliveryError):
            await _channel(handler).send("+15550001111", "hi")
        assert calls == 1


class TestSmsClose:
    async def test_close_is_idempotent(self) -> None:
        ch = _channel(lambda r: httpx.Response(201, json={"sid": "SM1"}))
        await ch.close()
        await ch.close()
