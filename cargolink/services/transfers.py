"""
Inter-company order transfers
=============================

A company hands an order it cannot carry to a partner:

1. ``create_transfer`` -- originating company (the order's route company)
   proposes the hand-off; an active partnership must exist and the partner
   must have room for the parcel.  Commission is fixed at creation.
2. ``accept`` / ``reject`` -- the receiving company decides.  Accepting
   moves the parcel's weight onto the receiving vehicle.
3. ``expire_stale`` -- transfers left pending too long are rejected.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.domain.enums import (
    TRANSFERABLE_ORDER_STATUSES,
    TransferReason,
    TransferStatus,
    VehicleStatus,
)
from cargolink.domain.errors import (
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
    UnauthorizedError,
)
from cargolink.domain.fees import to_money, transfer_commission
from cargolink.domain.workflow import ORDER_WORKFLOW, TRANSFER_WORKFLOW
from cargolink.infrastructure.models import (
    OrderModel,
    OrderStatusHistoryModel,
    OrderTransferModel,
    utcnow,
)
from cargolink.infrastructure.repositories import (
    CompanyRepository,
    OrderHistoryRepository,
    OrderRepository,
    PartnershipRepository,
    TransferRepository,
    VehicleRepository,
)
from cargolink.services.partnerships import PartnershipService
from cargolink.services.vehicles import VehicleService, fits

logger = logging.getLogger(__name__)

EXPIRED_REASON = "expired"


class TransferService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.transfers = TransferRepository(session)
        self.orders = OrderRepository(session)
        self.partnerships = PartnershipRepository(session)
        self.vehicle_service = VehicleService(session)

    async def create_transfer(
        self,
        order_id: int,
        to_company_id: Optional[int],
        reason: TransferReason,
        transferred_by: int,
        original_vehicle_id: Optional[int] = None,
        admin_notes: Optional[str] = None,
    ) -> OrderTransferModel:
        order = await self.orders.get_for_update(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        status = ORDER_WORKFLOW.coerce(order.order_status)
        if status not in TRANSFERABLE_ORDER_STATUSES:
            raise InvalidOperationError(
                f"Order {order_id} is {status.value} and cannot be transferred"
            )
        from_company_id = await self.orders.company_of(order)
        if from_company_id is None:
            raise InvalidOperationError(f"Order {order_id} has no route")
        if await self.transfers.pending_for_order(order_id) is not None:
            raise InvalidOperationError(f"Order {order_id} already has a pending transfer")

        if to_company_id is None:
            partnership = await PartnershipService(self.session).best_partner(order)
            if partnership is None:
                raise InvalidOperationError(
                    f"No active partner of company {from_company_id} can take order {order_id}"
                )
            to_company_id = partnership.partner_company_id
        else:
            if to_company_id == from_company_id:
                raise InvalidArgumentError("Cannot transfer an order to its own company")
            partnership = await self.partnerships.get_pair(from_company_id, to_company_id)
            if partnership is None or not partnership.is_active:
                raise InvalidOperationError(
                    f"No active partnership between company {from_company_id} "
                    f"and company {to_company_id}"
                )

        target = await CompanyRepository(self.session).get_by_id(to_company_id)
        if target is None:
            raise NotFoundError("Company", to_company_id)
        if not target.is_active:
            raise InvalidOperationError(f"Company {to_company_id} is inactive")

        if order.weight_kg and not await self.vehicle_service.available_for_weight(
            order.weight_kg, to_company_id
        ):
            raise InvalidOperationError(
                f"Company {to_company_id} has no available vehicle for {order.weight_kg} kg"
            )

        transfer = OrderTransferModel(
            order_id=order_id,
            from_company_id=from_company_id,
            to_company_id=to_company_id,
            transfer_reason=TransferReason(reason),
            original_vehicle_id=original_vehicle_id or order.vehicle_id,
            transferred_by=transferred_by,
            transfer_fee=to_money(order.shipping_fee),
            commission_paid=transfer_commission(
                order.shipping_fee, partnership.commission_rate
            ),
            admin_notes=admin_notes,
            transfer_status=TransferStatus.PENDING,
            transferred_at=utcnow(),
        )
        await self.transfers.add(transfer)
        logger.info(
            "Transfer %s created: order %s from company %s to %s (commission %s)",
            transfer.id,
            order_id,
            from_company_id,
            to_company_id,
            transfer.commission_paid,
        )
        return transfer

    async def accept(
        self,
        transfer_id: int,
        company_id: int,
        user_id: int,
        vehicle_id: Optional[int] = None,
    ) -> OrderTransferModel:
        transfer = await self._locked(transfer_id)
        if transfer.to_company_id != company_id:
            raise UnauthorizedError(
                f"Transfer {transfer_id} is addressed to company {transfer.to_company_id}"
            )
        new_status = TRANSFER_WORKFLOW.ensure(
            transfer.transfer_status, TransferStatus.ACCEPTED
        )

        order = await self.orders.get_for_update(transfer.order_id)
        if order is None:
            raise NotFoundError("Order", transfer.order_id)
        order_status = ORDER_WORKFLOW.coerce(order.order_status)
        if order_status not in TRANSFERABLE_ORDER_STATUSES:
            raise InvalidOperationError(
                f"Order {order.id} is {order_status.value} and can no longer be transferred"
            )

        if vehicle_id is not None:
            vehicle = await VehicleRepository(self.session).get_for_update(vehicle_id)
            if vehicle is None:
                raise NotFoundError("Vehicle", vehicle_id)
            if vehicle.company_id != company_id:
                raise UnauthorizedError(
                    f"Vehicle {vehicle_id} does not belong to company {company_id}"
                )
            if VehicleStatus(vehicle.current_status) != VehicleStatus.AVAILABLE:
                raise InvalidOperationError(f"Vehicle {vehicle_id} is not available")
            if order.weight_kg and not fits(vehicle, order.weight_kg):
                raise InvalidOperationError(
                    f"Vehicle {vehicle_id} cannot accommodate {order.weight_kg} kg"
                )

        await self._move_order(order, vehicle_id)

        now = utcnow()
        transfer.transfer_status = new_status
        transfer.new_vehicle_id = vehicle_id
        transfer.decided_by = user_id
        transfer.decided_at = now

        partnership = await self.partnerships.get_pair(
            transfer.from_company_id, transfer.to_company_id
        )
        if partnership is not None:
            partnership.total_transferred_orders = (
                partnership.total_transferred_orders or 0
            ) + 1

        await OrderHistoryRepository(self.session).add(
            OrderStatusHistoryModel(
                order_id=order.id,
                old_status=order_status.value,
                new_status=order_status.value,
                updated_by=user_id,
                notes=f"Transferred to company {company_id}",
            )
        )
        await self.session.flush()
        logger.info(
            "Transfer %s accepted by company %s (user %s, vehicle %s)",
            transfer_id,
            company_id,
            user_id,
            vehicle_id,
        )
        return transfer

    async def reject(
        self, transfer_id: int, company_id: int, user_id: int, reason: str
    ) -> OrderTransferModel:
        if not reason or not reason.strip():
            raise InvalidArgumentError("Rejection reason is required")
        transfer = await self._locked(transfer_id)
        if transfer.to_company_id != company_id:
            raise UnauthorizedError(
                f"Transfer {transfer_id} is addressed to company {transfer.to_company_id}"
            )
        self._decide_rejected(transfer, user_id, reason)
        await self.session.flush()
        logger.info(
            "Transfer %s rejected by company %s: %s", transfer_id, company_id, reason
        )
        return transfer

    async def expire_stale(
        self, older_than: timedelta, now: Optional[datetime] = None
    ) -> list[int]:
        """Reject transfers still pending after *older_than*. Returns their ids."""
        cutoff = (now or utcnow()) - older_than
        expired: list[int] = []
        for transfer_id in await self.transfers.stale_pending_ids(cutoff):
            transfer = await self._locked(transfer_id)
            if not TRANSFER_WORKFLOW.can(transfer.transfer_status, TransferStatus.REJECTED):
                continue
            self._decide_rejected(transfer, None, EXPIRED_REASON)
            expired.append(transfer_id)
        await self.session.flush()
        if expired:
            logger.info("Expired %d pending transfers", len(expired))
        return expired

    # ── Queries ───────────────────────────────────────────────────────

    async def get(self, transfer_id: int) -> OrderTransferModel:
        transfer = await self.transfers.get_by_id(transfer_id)
        if transfer is None:
            raise NotFoundError("Transfer", transfer_id)
        return transfer

    async def list_for_company(
        self,
        company_id: int,
        direction: Optional[str] = None,
        status: Optional[TransferStatus] = None,
    ) -> list[OrderTransferModel]:
        if direction not in (None, "incoming", "outgoing"):
            raise InvalidArgumentError("direction must be 'incoming' or 'outgoing'")
        return await self.transfers.list_for_company(company_id, direction, status)

    async def pending_for_company(self, company_id: int) -> list[OrderTransferModel]:
        """Incoming transfers awaiting this company's decision."""
        return await self.transfers.list_for_company(
            company_id, "incoming", TransferStatus.PENDING
        )

    # ── Internals ─────────────────────────────────────────────────────

    async def _locked(self, transfer_id: int) -> OrderTransferModel:
        transfer = await self.transfers.get_for_update(transfer_id)
        if transfer is None:
            raise NotFoundError("Transfer", transfer_id)
        return transfer

    @staticmethod
    def _decide_rejected(
        transfer: OrderTransferModel, user_id: Optional[int], reason: str
    ) -> None:
        transfer.transfer_status = TRANSFER_WORKFLOW.ensure(
            transfer.transfer_status, TransferStatus.REJECTED
        )
        transfer.rejection_reason = reason
        transfer.decided_by = user_id
        transfer.decided_at = utcnow()

    async def _move_order(self, order: OrderModel, vehicle_id: Optional[int]) -> None:
        """Shift the parcel off its old vehicle and onto the receiving one."""
        if order.vehicle_id is not None and order.weight_kg:
            await self.vehicle_service.remove_weight(order.vehicle_id, order.weight_kg)
        if vehicle_id is not None and order.weight_kg:
            await self.vehicle_service.add_weight(vehicle_id, order.weight_kg)
        order.vehicle_id = vehicle_id
        # The old driver works for the originating company
        order.driver_id = None
