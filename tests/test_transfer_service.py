"""Inter-company transfers: creation, decisions and expiry."""

from datetime import timedelta
from decimal import Decimal

import pytest

from cargolink.domain.enums import OrderStatus, TransferReason, TransferStatus
from cargolink.domain.errors import (
    InvalidArgumentError,
    InvalidOperationError,
    InvalidStateTransition,
    UnauthorizedError,
)
from cargolink.infrastructure.models import utcnow
from cargolink.services.orders import OrderService
from cargolink.services.partnerships import PartnershipService
from cargolink.services.transfers import EXPIRED_REASON, TransferService
from cargolink.services.vehicles import VehicleService
from tests.conftest import ORDER_FIELDS


async def _order(db_session, world, notifier, **overrides):
    fields = {**ORDER_FIELDS, "route_id": world.route_a, **overrides}
    return await OrderService(db_session, notifier=notifier).create_order(1, **fields)


async def _transfer(db_session, world, notifier, to_company=None, **order_fields):
    order = await _order(db_session, world, notifier, **order_fields)
    return await TransferService(db_session).create_transfer(
        order.id,
        world.company_b if to_company is None else to_company,
        TransferReason.VEHICLE_FULL,
        transferred_by=1,
    )


# ── Creation ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_fixes_commission(db_session, world, silent_notifier):
    transfer = await _transfer(db_session, world, silent_notifier, weight_kg=Decimal("4"))

    assert transfer.transfer_status == TransferStatus.PENDING
    assert transfer.from_company_id == world.company_a
    assert transfer.to_company_id == world.company_b
    # fee = 30000 + 4 * 5000 = 50000 ; 10 % commission
    assert transfer.transfer_fee == Decimal("50000.00")
    assert transfer.commission_paid == Decimal("5000.00")


@pytest.mark.asyncio
async def test_create_without_partnership(db_session, world, silent_notifier):
    with pytest.raises(InvalidOperationError, match="No active partnership"):
        await _transfer(db_session, world, silent_notifier, to_company=world.company_c)


@pytest.mark.asyncio
async def test_create_to_own_company(db_session, world, silent_notifier):
    with pytest.raises(InvalidArgumentError):
        await _transfer(db_session, world, silent_notifier, to_company=world.company_a)


@pytest.mark.asyncio
async def test_create_with_inactive_partnership(db_session, world, silent_notifier):
    await PartnershipService(db_session).deactivate(world.partnership_ab)
    with pytest.raises(InvalidOperationError):
        await _transfer(db_session, world, silent_notifier)


@pytest.mark.asyncio
async def test_create_when_partner_has_no_room(db_session, world, silent_notifier):
    with pytest.raises(InvalidOperationError, match="no available vehicle"):
        await _transfer(db_session, world, silent_notifier, weight_kg=Decimal("990"))


@pytest.mark.asyncio
async def test_only_one_pending_transfer_per_order(db_session, world, silent_notifier):
    transfer = await _transfer(db_session, world, silent_notifier)
    with pytest.raises(InvalidOperationError, match="pending transfer"):
        await TransferService(db_session).create_transfer(
            transfer.order_id, world.company_b, TransferReason.OTHER, transferred_by=1
        )


@pytest.mark.asyncio
async def test_in_transit_order_cannot_be_transferred(db_session, world, silent_notifier):
    service = OrderService(db_session, notifier=silent_notifier)
    order = await _order(db_session, world, silent_notifier)
    await service.update_status(order.id, OrderStatus.PICKED_UP, user_id=1)
    await service.update_status(order.id, OrderStatus.IN_TRANSIT, user_id=1)
    with pytest.raises(InvalidOperationError):
        await TransferService(db_session).create_transfer(
            order.id, world.company_b, TransferReason.EMERGENCY, transferred_by=1
        )


@pytest.mark.asyncio
async def test_create_picks_best_partner(db_session, world, silent_notifier):
    order = await _order(db_session, world, silent_notifier, weight_kg=Decimal("10"))
    transfer = await TransferService(db_session).create_transfer(
        order.id, None, TransferReason.PARTNERSHIP, transferred_by=1
    )
    assert transfer.to_company_id == world.company_b


# ── Decisions ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_accept_moves_order_and_weight(db_session, world, silent_notifier):
    orders = OrderService(db_session, notifier=silent_notifier)
    vehicles = VehicleService(db_session)
    order = await _order(db_session, world, silent_notifier, weight_kg=Decimal("100"))
    await orders.assign(order.id, world.driver_a, world.vehicle_a, assigned_by=1)
    transfer = await TransferService(db_session).create_transfer(
        order.id, world.company_b, TransferReason.VEHICLE_FULL, transferred_by=1
    )
    assert transfer.original_vehicle_id == world.vehicle_a

    transfer = await TransferService(db_session).accept(
        transfer.id, world.company_b, user_id=9, vehicle_id=world.vehicle_b
    )

    assert transfer.transfer_status == TransferStatus.ACCEPTED
    assert transfer.new_vehicle_id == world.vehicle_b
    assert transfer.decided_by == 9
    order = await orders.get_order(order.id)
    assert order.vehicle_id == world.vehicle_b
    assert order.driver_id is None
    assert (await vehicles.get(world.vehicle_a)).current_weight_kg == 0
    assert (await vehicles.get(world.vehicle_b)).current_weight_kg == Decimal("100")

    partnership = await PartnershipService(db_session).get(world.partnership_ab)
    assert partnership.total_transferred_orders == 1
    history = await orders.get_history(order.id)
    assert history[-1].notes == f"Transferred to company {world.company_b}"


@pytest.mark.asyncio
async def test_accept_by_wrong_company(db_session, world, silent_notifier):
    transfer = await _transfer(db_session, world, silent_notifier)
    with pytest.raises(UnauthorizedError):
        await TransferService(db_session).accept(transfer.id, world.company_c, user_id=9)


@pytest.mark.asyncio
async def test_accept_with_someone_elses_vehicle(db_session, world, silent_notifier):
    transfer = await _transfer(db_session, world, silent_notifier)
    with pytest.raises(UnauthorizedError):
        await TransferService(db_session).accept(
            transfer.id, world.company_b, user_id=9, vehicle_id=world.vehicle_c
        )


@pytest.mark.asyncio
async def test_decisions_are_final(db_session, world, silent_notifier):
    transfer = await _transfer(db_session, world, silent_notifier)
    service = TransferService(db_session)
    await service.reject(transfer.id, world.company_b, user_id=9, reason="no drivers")
    with pytest.raises(InvalidStateTransition):
        await service.accept(transfer.id, world.company_b, user_id=9)


@pytest.mark.asyncio
async def test_reject_requires_reason(db_session, world, silent_notifier):
    transfer = await _transfer(db_session, world, silent_notifier)
    with pytest.raises(InvalidArgumentError):
        await TransferService(db_session).reject(transfer.id, world.company_b, 9, "")


@pytest.mark.asyncio
async def test_reject_leaves_order_untouched(db_session, world, silent_notifier):
    transfer = await _transfer(db_session, world, silent_notifier)
    transfer = await TransferService(db_session).reject(
        transfer.id, world.company_b, user_id=9, reason="route closed"
    )
    assert transfer.transfer_status == TransferStatus.REJECTED
    assert transfer.rejection_reason == "route closed"
    partnership = await PartnershipService(db_session).get(world.partnership_ab)
    assert partnership.total_transferred_orders == 0


# ── Expiry & queries ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_expire_stale(db_session, world, silent_notifier):
    old = await _transfer(db_session, world, silent_notifier)
    fresh = await _transfer(db_session, world, silent_notifier)
    old.transferred_at = utcnow() - timedelta(hours=72)
    await db_session.flush()

    expired = await TransferService(db_session).expire_stale(timedelta(hours=48))

    assert expired == [old.id]
    assert old.transfer_status == TransferStatus.REJECTED
    assert old.rejection_reason == EXPIRED_REASON
    assert old.decided_by is None
    assert fresh.transfer_status == TransferStatus.PENDING


@pytest.mark.asyncio
async def test_list_by_direction(db_session, world, silent_notifier):
    transfer = await _transfer(db_session, world, silent_notifier)
    service = TransferService(db_session)

    assert [t.id for t in await service.list_for_company(world.company_a, "outgoing")] == [
        transfer.id
    ]
    assert await service.list_for_company(world.company_a, "incoming") == []
    assert [t.id for t in await service.pending_for_company(world.company_b)] == [transfer.id]
    with pytest.raises(InvalidArgumentError):
        await service.list_for_company(world.company_a, "sideways")
