"""Expo push notification gateway client."""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from moments.config import Settings

logger = logging.getLogger(__name__)

# Expo rejects requests with more than 100 messages
MAX_MESSAGES_PER_REQUEST = 100


class PushGatewayError(Exception):
    """The gateway call itself failed (transport error or non-2xx status)."""


@dataclass
class PushMessage:
    to: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    sound: str = "default"
    badge: int | None = 1

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "to": self.to,
            "sound": self.sound,
            "title": self.title,
            "body": self.body,
            "data": self.data,
        }
        if self.badge is not None:
            payload["badge"] = self.badge
        return payload


@dataclass
class PushTicket:
    """Per-message delivery status returned by the gateway."""

    status: str
    id: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def error_code(self) -> str | None:
        if self.details:
            return self.details.get("error")
        return None

    @classmethod
    def from_payload(cls, item: dict[str, Any]) -> "PushTicket":
        return cls(
            status=item.get("status", "error"),
            id=item.get("id"),
            message=item.get("message"),
            details=item.get("details"),
        )


class ExpoPushService:
    """Submit batches of push messages to the Expo push API."""

    def __init__(self, settings: Settings) -> None:
        self._url = settings.expo_push_url
        self._access_token = settings.expo_access_token.get_secret_value()
        self._timeout = settings.dispatch_call_timeout_seconds

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def send_batch(self, messages: list[PushMessage]) -> list[PushTicket]:
        """Send all messages in a single request.

        Raises PushGatewayError if the request fails or the gateway answers
        with a non-2xx status. Per-message failures are reported in the
        returned tickets, one per message, in request order.
        """
        if not messages:
            return []
        if len(messages) > MAX_MESSAGES_PER_REQUEST:
            raise PushGatewayError(
                f"Batch of {len(messages)} exceeds gateway limit of {MAX_MESSAGES_PER_REQUEST}"
            )

        payload = [m.to_payload() for m in messages]
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            raise PushGatewayError(f"Expo API timed out: {e}") from e
        except httpx.HTTPError as e:
            raise PushGatewayError(f"Expo API request failed: {e}") from e

        if not response.is_success:
            raise PushGatewayError(f"Expo API error: {response.status_code} - {response.text[:500]}")

        body = response.json()
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            logger.warning("Expo response had no ticket list: %s", str(body)[:200])
            return []

        tickets = [PushTicket.from_payload(item) for item in data if isinstance(item, dict)]
        failed = [t for t in tickets if not t.ok]
        if failed:
            logger.warning(
                "Expo rejected %d of %d messages: %s",
                len(failed),
                len(tickets),
                [t.message for t in failed],
            )
        return tickets


def get_push_service(settings: Settings) -> ExpoPushService:
    return ExpoPushService(settings)
