"""Notification webhook client with exponential backoff retry logic"""

import httpx
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict
from debit_gateway.config import settings
from debit_gateway.domain.exceptions import NotificationError
from debit_gateway.domain.models import Notification
from debit_gateway.infrastructure.observability.metrics import notification_latency_histogram, notification_failure_counter


def notification_payload(user_id: str, notification: Notification) -> Dict[str, Any]:
    """JSON body for the push/email dispatcher"""
    return {
        "user_id": user_id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "priority": notification.priority,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": notification.data,
    }


class NotificationClient:
    """Client for delivering user notifications to the dispatch webhook"""

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.timeout = settings.http_timeout_seconds if timeout is None else timeout
        self.transport = transport
        self.max_retries = max(1, settings.webhook_max_retries)
        self.backoff_base = settings.webhook_backoff_base

    async def notify(self, user_id: str, notification: Notification) -> None:
        """
        Deliver a notification with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^attempt)
        - Retries on 5xx errors and network failures, 4xx fails immediately
        - Tracks latency histogram and failure counter

        Raises:
            NotificationError: Delivery failed after all retries
        """
        payload = notification_payload(user_id, notification)
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return  # Success

                except httpx.HTTPStatusError as e:
                    attempt += 1
                    notification_failure_counter.inc()
                    if e.response.status_code < 500 or attempt >= self.max_retries:
                        raise NotificationError(f"Notification webhook error: {e.response.status_code}") from e

                except httpx.RequestError as e:
                    attempt += 1
                    notification_failure_counter.inc()
                    if attempt >= self.max_retries:
                        raise NotificationError(f"Notification webhook unreachable: {e}") from e

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)
