"""Host capabilities for outbound webhooks and notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx
from pydantic import TypeAdapter

from .constants import DEFAULT_WEBHOOK_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

_PAYLOAD_ADAPTER = TypeAdapter(Dict[str, Any])


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one webhook call."""

    status_code: Optional[int] = None
    body: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
        )


WebhookDelivery = Callable[[str, Dict[str, Any]], Awaitable[DeliveryResult]]
NotificationSink = Callable[[str], Union[None, Awaitable[None]]]


class HttpWebhookDelivery:
    """Deliver webhook payloads as JSON POST requests using httpx."""

    def __init__(
        self,
        timeout: float = DEFAULT_WEBHOOK_TIMEOUT_SECONDS,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._transport = transport

    async def __call__(self, url: str, payload: Dict[str, Any]) -> DeliveryResult:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=self.headers, transport=self._transport
            ) as client:
                response = await client.post(
                    url, json=_PAYLOAD_ADAPTER.dump_python(payload, mode="json")
                )
        except httpx.HTTPError as e:
            logger.warning(f"Webhook delivery to {url} failed: {e}")
            return DeliveryResult(error=f"Webhook transport error: {e}")

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        logger.debug(f"Webhook {url} responded {response.status_code}")
        return DeliveryResult(status_code=response.status_code, body=body)


class LogNotificationSink:
    """Notification sink that writes messages to the log."""

    def __init__(self, logger_name: str = "autoflow.notifications") -> None:
        self._logger = logging.getLogger(logger_name)

    async def __call__(self, message: str) -> None:
        self._logger.info(message)


class CollectingNotificationSink:
    """Notification sink that keeps every message in memory."""

    def __init__(self) -> None:
        self.messages: List[str] = []

    async def __call__(self, message: str) -> None:
        self.messages.append(message)
