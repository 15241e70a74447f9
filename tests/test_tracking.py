"""Unit tests for tracking codes and the public tracking view helpers."""

import re
from datetime import datetime, timedelta, timezone

from cargolink.domain.enums import OrderStatus
from cargolink.domain.tracking import (
    default_status_note,
    describe_status,
    estimated_delivery,
    generate_tracking_code,
    mask_name,
)

NOW = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


def test_tracking_code_format():
    code = generate_tracking_code("CL", NOW)
    assert re.fullmatch(r"CL261018[A-Z0-9]{6}", code)


def test_tracking_codes_differ():
    codes = {generate_tracking_code("CL", NOW) for _ in range(50)}
    assert len(codes) > 45


def test_mask_name():
    assert mask_name("Nguyen") == "N****n"
    assert mask_name("An") == "An"
    assert mask_name(None) is None


def test_describe_unknown_status():
    assert describe_status("teleported") == "Unknown status"
    assert describe_status("delivered") == "The parcel has been delivered"


def test_default_note_for_every_status():
    for status in OrderStatus:
        assert default_status_note(status)


class TestEstimatedDelivery:
    def test_pending_order_gets_estimate(self):
        assert estimated_delivery("pending_pickup", NOW, None, 3) == NOW + timedelta(days=3)

    def test_delivered_order_uses_actual_time(self):
        delivered = NOW + timedelta(days=1)
        assert estimated_delivery(OrderStatus.DELIVERED, NOW, delivered, 3) == delivered

    def test_cancelled_order_has_no_estimate(self):
        assert estimated_delivery(OrderStatus.CANCELLED, NOW, None, 3) is None
