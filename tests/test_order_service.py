"""Order workflow: creation, status changes, assignment and tracking."""

from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from cargolink.domain.enums import CodStatus, OrderStatus, PaymentStatus, VehicleStatus
from cargolink.domain.errors import (
    InvalidArgumentError,
    InvalidOperationError,
    InvalidStateTransition,
    NotFoundError,
)
from cargolink.infrastructure.repositories import CodTransactionRepository
from cargolink.services.cod import CodService
from cargolink.services.notifications import Notifier
from cargolink.services.orders import OrderService
from cargolink.services.vehicles import VehicleService
from tests.conftest import ORDER_FIELDS

DELIVERY_WALK = [
    OrderStatus.PICKED_UP,
    OrderStatus.IN_TRANSIT,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]


async def _order(service: OrderService, world, **overrides):
    fields = {**ORDER_FIELDS, "route_id": world.route_a, **overrides}
    return await service.create_order(1, **fields)


# ── Creation ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_order_defaults(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world, weight_kg=Decimal("2"))

    assert order.tracking_code.startswith("CL")
    assert order.order_status == OrderStatus.PENDING_PICKUP
    assert order.payment_status == PaymentStatus.UNPAID
    # 30000 + 2 * 5000
    assert order.shipping_fee == Decimal("40000.00")

    history = await service.get_history(order.id)
    assert len(history) == 1
    assert history[0].old_status is None
    assert history[0].new_status == "pending_pickup"


@pytest.mark.asyncio
async def test_create_cod_order_opens_transaction(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world, cod_amount=Decimal("500000"))

    # 30000 + 500000 * 1 %
    assert order.shipping_fee == Decimal("35000.00")
    txn = await CodTransactionRepository(db_session).get_by_order(order.id)
    assert txn is not None
    assert txn.cod_amount == Decimal("500000.00")
    assert txn.overall_status == CodStatus.PENDING_COLLECTION


@pytest.mark.asyncio
async def test_create_rejects_unknown_route(db_session, world, silent_notifier):
    with pytest.raises(NotFoundError):
        await _order(OrderService(db_session, notifier=silent_notifier), world, route_id=999)


@pytest.mark.asyncio
async def test_create_rejects_non_positive_weight(db_session, world, silent_notifier):
    with pytest.raises(InvalidArgumentError):
        await _order(
            OrderService(db_session, notifier=silent_notifier), world, weight_kg=Decimal("0")
        )


# ── Status workflow ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_full_delivery_walk(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world)

    for status in DELIVERY_WALK:
        order = await service.update_status(order.id, status, user_id=7)

    assert order.order_status == OrderStatus.DELIVERED
    assert order.pickup_confirmed_at is not None
    assert order.delivered_at is not None
    assert order.payment_status == PaymentStatus.PAID

    history = await service.get_history(order.id)
    assert [h.new_status for h in history] == [
        "pending_pickup",
        "picked_up",
        "in_transit",
        "out_for_delivery",
        "delivered",
    ]
    assert [h.old_status for h in history[1:]] == [h.new_status for h in history[:-1]]
    assert all(h.updated_by == 7 for h in history[1:])


@pytest.mark.asyncio
async def test_skipping_states_is_rejected_and_nothing_is_recorded(
    db_session, world, silent_notifier
):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world)

    with pytest.raises(InvalidStateTransition):
        await service.update_status(order.id, OrderStatus.DELIVERED, user_id=7)

    assert (await service.get_order(order.id)).order_status == OrderStatus.PENDING_PICKUP
    assert len(await service.get_history(order.id)) == 1


@pytest.mark.asyncio
async def test_terminal_order_cannot_move(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world)
    await service.cancel_order(order.id, user_id=1, reason="customer changed mind")

    with pytest.raises(InvalidStateTransition):
        await service.update_status(order.id, OrderStatus.PICKED_UP, user_id=1)


@pytest.mark.asyncio
async def test_cancel_fails_pending_cod(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world, cod_amount=Decimal("100000"))

    cancelled = await service.cancel_order(order.id, user_id=1, reason="duplicate")

    assert cancelled.order_status == OrderStatus.CANCELLED
    txn = await CodTransactionRepository(db_session).get_by_order(order.id)
    assert txn.overall_status == CodStatus.FAILED
    history = await service.get_history(order.id)
    assert history[-1].notes == "duplicate"


@pytest.mark.asyncio
async def test_status_photo_is_attached(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world)
    await service.update_status(
        order.id, OrderStatus.PICKED_UP, user_id=3, photo_url="https://cdn/p.jpg"
    )
    photos = await service.list_photos(order.id)
    assert len(photos) == 1
    assert photos[0].photo_url == "https://cdn/p.jpg"
    assert photos[0].photo_type.value == "before_delivery"


@pytest.mark.asyncio
async def test_status_change_notifies(db_session, world):
    notifier = Notifier(webhook_url=None)
    notifier.order_status_changed = AsyncMock(return_value=True)
    service = OrderService(db_session, notifier=notifier)
    order = await _order(service, world)

    await service.update_status(order.id, OrderStatus.PICKED_UP, user_id=3)

    notifier.order_status_changed.assert_awaited_once()
    _, old, new = notifier.order_status_changed.await_args.args
    assert (old, new) == (OrderStatus.PENDING_PICKUP, OrderStatus.PICKED_UP)


@pytest.mark.asyncio
async def test_webhook_failure_does_not_break_status_change(db_session, world):
    def boom(request):
        raise httpx.ConnectError("webhook down", request=request)

    notifier = Notifier("http://hooks.test/orders", transport=httpx.MockTransport(boom))
    service = OrderService(db_session, notifier=notifier)
    order = await _order(service, world)

    order = await service.update_status(order.id, OrderStatus.PICKED_UP, user_id=3)
    assert order.order_status == OrderStatus.PICKED_UP


# ── Assignment & vehicle load ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_assign_loads_vehicle_and_delivery_unloads(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    vehicles = VehicleService(db_session)
    order = await _order(service, world, weight_kg=Decimal("300"))

    order = await service.assign(order.id, world.driver_a, world.vehicle_a, assigned_by=1)
    assert order.driver_id == world.driver_a
    assert (await vehicles.get(world.vehicle_a)).current_weight_kg == Decimal("300")

    for status in DELIVERY_WALK:
        await service.update_status(order.id, status, user_id=1)

    vehicle = await vehicles.get(world.vehicle_a)
    assert vehicle.current_weight_kg == 0
    assert (await service.get_order(order.id)).vehicle_id == world.vehicle_a


@pytest.mark.asyncio
async def test_assign_refuses_parcel_that_does_not_fit(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world, weight_kg=Decimal("480"))
    with pytest.raises(InvalidOperationError, match="cannot accommodate"):
        await service.assign(order.id, world.driver_a, world.vehicle_c, assigned_by=1)


@pytest.mark.asyncio
async def test_assign_refuses_vehicle_in_maintenance(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    await VehicleService(db_session).set_status(world.vehicle_a, VehicleStatus.MAINTENANCE)
    order = await _order(service, world, weight_kg=Decimal("10"))
    with pytest.raises(InvalidOperationError):
        await service.assign(order.id, world.driver_a, world.vehicle_a, assigned_by=1)


@pytest.mark.asyncio
async def test_reassign_moves_weight(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    vehicles = VehicleService(db_session)
    order = await _order(service, world, weight_kg=Decimal("200"))

    await service.assign(order.id, world.driver_a, world.vehicle_a, assigned_by=1)
    await service.assign(order.id, world.driver_a, world.vehicle_c, assigned_by=1)

    assert (await vehicles.get(world.vehicle_a)).current_weight_kg == 0
    assert (await vehicles.get(world.vehicle_c)).current_weight_kg == Decimal("200")


@pytest.mark.asyncio
async def test_unassign_releases_weight(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world, weight_kg=Decimal("50"))
    await service.assign(order.id, world.driver_a, world.vehicle_a, assigned_by=1)

    order = await service.unassign(order.id, user_id=1)

    assert order.driver_id is None and order.vehicle_id is None
    assert (await VehicleService(db_session).get(world.vehicle_a)).current_weight_kg == 0


@pytest.mark.asyncio
async def test_cannot_assign_picked_up_order(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world)
    await service.update_status(order.id, OrderStatus.PICKED_UP, user_id=1)
    with pytest.raises(InvalidOperationError):
        await service.assign(order.id, world.driver_a, world.vehicle_a, assigned_by=1)


# ── Edits ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_update_recalculates_fee_and_cod(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world, cod_amount=Decimal("100000"))

    order = await service.update_order(order.id, cod_amount=Decimal("200000"), weight_kg=Decimal("1"))

    # 30000 + 1 * 5000 + 200000 * 1 %
    assert order.shipping_fee == Decimal("37000.00")
    txn = await CodTransactionRepository(db_session).get_by_order(order.id)
    assert txn.cod_amount == Decimal("200000.00")


@pytest.mark.asyncio
async def test_removing_and_readding_cod(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    repo = CodTransactionRepository(db_session)
    order = await _order(service, world, cod_amount=Decimal("100000"))

    await service.update_order(order.id, cod_amount=Decimal("0"))
    assert (await repo.get_by_order(order.id)).overall_status == CodStatus.FAILED

    await service.update_order(order.id, cod_amount=Decimal("150000"))
    txn = await repo.get_by_order(order.id)
    assert txn.overall_status == CodStatus.PENDING_COLLECTION
    assert txn.cod_amount == Decimal("150000.00")


@pytest.mark.asyncio
async def test_collected_cod_survives_order_edit(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    repo = CodTransactionRepository(db_session)
    order = await _order(service, world, cod_amount=Decimal("100000"))
    await CodService(db_session).collect(order.id, world.driver_a)

    with pytest.raises(InvalidOperationError, match="collected"):
        await service.update_order(order.id, cod_amount=Decimal("150000"))
    with pytest.raises(InvalidOperationError, match="collected"):
        await service.update_order(order.id, cod_amount=Decimal("0"))

    txn = await repo.get_by_order(order.id)
    assert txn.overall_status == CodStatus.COLLECTED
    assert txn.collected_amount == Decimal("100000.00")
    assert txn.collected_by_driver == world.driver_a


@pytest.mark.asyncio
async def test_update_after_pickup_is_refused(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world)
    await service.update_status(order.id, OrderStatus.PICKED_UP, user_id=1)
    with pytest.raises(InvalidOperationError):
        await service.update_order(order.id, receiver_name="Someone else")


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world)
    with pytest.raises(InvalidArgumentError):
        await service.update_order(order.id, order_status="delivered")


# ── Queries ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_track_masks_receiver(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(service, world)
    await service.update_status(order.id, OrderStatus.PICKED_UP, user_id=1, location="Hub 1")

    view = await service.track(order.tracking_code)

    assert view.receiver_name == "N****n"
    assert view.status == "picked_up"
    assert [e.status for e in view.events] == ["pending_pickup", "picked_up"]
    assert view.events[-1].location == "Hub 1"
    assert view.estimated_delivery is not None


@pytest.mark.asyncio
async def test_track_unknown_code(db_session, world, silent_notifier):
    with pytest.raises(NotFoundError):
        await OrderService(db_session, notifier=silent_notifier).track("CL000000XXXXXX")


@pytest.mark.asyncio
async def test_list_orders_filters_and_pages(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    for _ in range(3):
        await _order(service, world)
    other = await _order(service, world, route_id=world.route_b, receiver_name="Tran")
    await service.cancel_order(other.id, user_id=1)

    items, total = await service.list_orders(company_id=world.company_a, page_size=2)
    assert total == 3
    assert len(items) == 2

    items, total = await service.list_orders(status=OrderStatus.CANCELLED)
    assert [o.id for o in items] == [other.id]

    items, total = await service.list_orders(search="Tran")
    assert total == 1


@pytest.mark.asyncio
async def test_statistics(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    delivered = await _order(service, world)
    await _order(service, world)
    for status in DELIVERY_WALK:
        await service.update_status(delivered.id, status, user_id=1)

    stats = await service.statistics()

    assert stats["total_orders"] == 2
    assert stats["by_status"]["delivered"] == 1
    assert stats["by_status"]["pending_pickup"] == 1
    assert stats["revenue_today"] == Decimal("30000.00")
