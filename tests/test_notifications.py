"""Webhook notifier (httpx mock transport)."""

import json

import httpx
import pytest

from cargolink.domain.enums import OrderStatus
from cargolink.infrastructure.models import OrderModel
from cargolink.services.notifications import Notifier


def _order() -> OrderModel:
    return OrderModel(id=12, tracking_code="CL261018ABCDEF", receiver_phone="0912000000")


@pytest.mark.asyncio
async def test_disabled_without_url():
    assert await Notifier(None).order_status_changed(
        _order(), OrderStatus.PENDING_PICKUP, OrderStatus.PICKED_UP
    ) is False


@pytest.mark.asyncio
async def test_posts_status_change():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(204)

    notifier = Notifier("http://hooks.test/orders", transport=httpx.MockTransport(handler))
    sent = await notifier.order_status_changed(
        _order(), OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED
    )

    assert sent is True
    assert seen == [
        {
            "event": "order.status_changed",
            "order_id": 12,
            "tracking_code": "CL261018ABCDEF",
            "old_status": "out_for_delivery",
            "new_status": "delivered",
            "receiver_phone": "0912000000",
        }
    ]


@pytest.mark.asyncio
async def test_server_error_is_reported_not_raised():
    notifier = Notifier(
        "http://hooks.test/orders",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    assert await notifier.order_status_changed(
        _order(), None, OrderStatus.PENDING_PICKUP
    ) is False
