"""Outbound order status notifications over an optional webhook."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from cargolink.config import settings
from cargolink.domain.enums import OrderStatus
from cargolink.infrastructure.models import OrderModel

logger = logging.getLogger(__name__)


class Notifier:
    """Posts status changes as JSON; delivery failures never reach the caller."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout_seconds
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def order_status_changed(
        self,
        order: OrderModel,
        old_status: Optional[OrderStatus],
        new_status: OrderStatus,
    ) -> bool:
        if not self.enabled:
            return False
        payload = {
            "event": "order.status_changed",
            "order_id": order.id,
            "tracking_code": order.tracking_code,
            "old_status": old_status.value if old_status else None,
            "new_status": new_status.value,
            "receiver_phone": order.receiver_phone,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "Notification for order %s failed: %s", order.tracking_code, exc
            )
            return False
        return True


def default_notifier() -> Notifier:
    return Notifier(
        settings.notification_webhook_url, settings.notification_timeout_seconds
    )
