"""
Twilio SMS channel for the PoolPilot notifier.

Posts messages to the Twilio Messages REST resource with basic auth.
A single attempt is made per message; any transport error, timeout or
non-2xx response becomes a :class:`~pp_common.errors.DeliveryError`
and the alert stays pending for the next run.
"""

from __future__ import annotations

import httpx
import structlog

from pp_common.errors import DeliveryError
from pp_common.logging import mask_address
from pp_common.models.alert import ContactKind

from .base import AlertChannel

logger = structlog.get_logger()

_DEFAULT_BASE_URL = "https://api.twilio.com"
_DEFAULT_TIMEOUT_S = 10.0


class TwilioSmsChannel(AlertChannel):
    """Deliver alerts as SMS through Twilio.

    Args:
        account_sid: Twilio account SID.
        auth_token: Twilio auth token.
        from_number: Twilio sender number.
        base_url: REST API base URL.
        timeout: Per-request timeout in seconds.
        client: Pre-built ``httpx.AsyncClient`` (tests inject a
                ``MockTransport`` here).
    """

    name: str = "twilio_sms"
    kind: ContactKind = ContactKind.SMS

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        base_url: str = _DEFAULT_BASE_URL,
        timeout: float = _DEFAULT_TIMEOUT_S,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"

    async def _get_client(self) -> httpx.AsyncClient:
        """Return (and lazily create) the shared ``httpx.AsyncClient``."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.account_sid, self.auth_token),
            )
        return self._client

    # ── delivery ──

    async def send(self, destination: str, body: str) -> None:
        """Send *body* to *destination* as a single SMS.

        Raises:
            DeliveryError: On transport failure or a non-2xx response.
        """
        log = logger.bind(channel=self.name, to=mask_address(destination))
        client = await self._get_client()
        try:
            resp = await client.post(
                self.messages_url,
                data={"From": self.from_number, "To": destination, "Body": body},
                auth=(self.account_sid, self.auth_token),
            )
        except httpx.TimeoutException as exc:
            log.error("sms_delivery_timeout", error=str(exc))
            raise DeliveryError(f"twilio request timed out: {exc}", channel=self.name) from exc
        except httpx.TransportError as exc:
            log.error("sms_delivery_failed", error=str(exc))
            raise DeliveryError(f"twilio transport error: {exc}", channel=self.name) from exc

        # Any 2xx means Twilio accepted the message; the body is informational.
        if resp.is_success:
            sid = _json_object(resp).get("sid")
            log.info("sms_delivered", status=resp.status_code, message_sid=sid)
            return

        detail = _twilio_error_detail(resp)
        log.error("sms_delivery_rejected", status=resp.status_code, detail=detail)
        raise DeliveryError(
            f"twilio rejected message ({resp.status_code}): {detail}",
            channel=self.name,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _json_object(resp: httpx.Response) -> dict:
    """Return the response body as a dict, or ``{}`` if it is not a JSON object."""
    try:
        payload = resp.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _twilio_error_detail(resp: httpx.Response) -> str:
    """Extract Twilio's error message, falling back to the raw body."""
    payload = _json_object(resp)
    if not payload:
        return resp.text[:200]
    code = payload.get("code")
    message = payload.get("message", "")
    return f"{code}: {message}" if code else str(message or payload)
