"""Partnerships between transport companies."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.domain.enums import (
    PARTNERSHIP_LEVEL_RANK,
    PartnershipLevel,
    TransferStatus,
)
from cargolink.domain.errors import (
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
)
from cargolink.domain.fees import to_money
from cargolink.infrastructure.models import CompanyPartnershipModel, OrderModel
from cargolink.infrastructure.repositories import (
    CompanyRepository,
    OrderRepository,
    PartnershipRepository,
    TransferRepository,
)
from cargolink.services.vehicles import VehicleService

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {
    "partnership_level",
    "commission_rate",
    "priority_order",
    "is_active",
    "notes",
}


def _preference(partnership: CompanyPartnershipModel) -> tuple[int, int, int]:
    """Sort key: level (preferred first), then priority, then age."""
    return (
        PARTNERSHIP_LEVEL_RANK[PartnershipLevel(partnership.partnership_level)],
        partnership.priority_order or 0,
        partnership.id,
    )


def _check_rate(rate) -> Decimal:
    value = to_money(rate)
    if not Decimal("0") <= value <= Decimal("100"):
        raise InvalidArgumentError("commission_rate must be between 0 and 100")
    return value


class PartnershipService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.partnerships = PartnershipRepository(session)
        self.companies = CompanyRepository(session)

    async def create(
        self,
        company_id: int,
        partner_company_id: int,
        partnership_level: PartnershipLevel = PartnershipLevel.REGULAR,
        commission_rate: Decimal = Decimal("0"),
        priority_order: int = 0,
        notes: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> CompanyPartnershipModel:
        if company_id == partner_company_id:
            raise InvalidArgumentError("A company cannot partner with itself")
        for cid in (company_id, partner_company_id):
            if await self.companies.get_by_id(cid) is None:
                raise NotFoundError("Company", cid)
        rate = _check_rate(commission_rate)
        if await self.partnerships.get_pair(company_id, partner_company_id) is not None:
            raise InvalidOperationError(
                f"Partnership {company_id} -> {partner_company_id} already exists"
            )

        partnership = CompanyPartnershipModel(
            company_id=company_id,
            partner_company_id=partner_company_id,
            partnership_level=PartnershipLevel(partnership_level),
            commission_rate=rate,
            priority_order=priority_order,
            total_transferred_orders=0,
            is_active=True,
            notes=notes,
            created_by=created_by,
        )
        await self.partnerships.add(partnership)
        logger.info(
            "Partnership %s created: %s -> %s (%s, %s%%)",
            partnership.id,
            company_id,
            partner_company_id,
            partnership.partnership_level.value,
            rate,
        )
        return partnership

    async def get(self, partnership_id: int) -> CompanyPartnershipModel:
        partnership = await self.partnerships.get_by_id(partnership_id)
        if partnership is None:
            raise NotFoundError("Partnership", partnership_id)
        return partnership

    async def list_for_company(
        self, company_id: int, active_only: bool = False
    ) -> list[CompanyPartnershipModel]:
        found = await self.partnerships.list_for_company(company_id, active_only)
        return sorted(found, key=_preference)

    async def update(self, partnership_id: int, **changes) -> CompanyPartnershipModel:
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        partnership = await self.get(partnership_id)
        if changes.get("commission_rate") is not None:
            changes["commission_rate"] = _check_rate(changes["commission_rate"])
        for name, value in changes.items():
            if value is not None:
                setattr(partnership, name, value)
        await self.session.flush()
        logger.info("Partnership %s updated", partnership_id)
        return partnership

    async def deactivate(self, partnership_id: int) -> CompanyPartnershipModel:
        partnership = await self.get(partnership_id)
        partnership.is_active = False
        await self.session.flush()
        logger.info("Partnership %s deactivated", partnership_id)
        return partnership

    async def delete(self, partnership_id: int) -> None:
        partnership = await self.get(partnership_id)
        transfers = await TransferRepository(self.session).count_between(
            partnership.company_id, partnership.partner_company_id
        )
        if transfers:
            raise InvalidOperationError(
                f"Partnership {partnership_id} has {transfers} transfers; deactivate it instead"
            )
        await self.partnerships.delete(partnership)
        logger.info("Partnership %s deleted", partnership_id)

    async def statistics(self, partnership_id: int) -> dict:
        partnership = await self.get(partnership_id)
        counts, commission = await TransferRepository(self.session).stats_between(
            partnership.company_id, partnership.partner_company_id
        )
        return {
            "partnership_id": partnership.id,
            "company_id": partnership.company_id,
            "partner_company_id": partnership.partner_company_id,
            "total_transferred_orders": partnership.total_transferred_orders,
            "transfers_by_status": {s.value: counts.get(s, 0) for s in TransferStatus},
            "total_commission": to_money(commission),
        }

    async def best_partner(
        self, order: OrderModel | int
    ) -> Optional[CompanyPartnershipModel]:
        """First active partner (by preference) with a vehicle able to take the order."""
        orders = OrderRepository(self.session)
        if isinstance(order, int):
            order_id = order
            order = await orders.get_by_id(order_id)
            if order is None:
                raise NotFoundError("Order", order_id)
        company_id = await orders.company_of(order)
        if company_id is None:
            raise InvalidOperationError(f"Order {order.id} has no route")

        vehicles = VehicleService(self.session)
        for partnership in await self.list_for_company(company_id, active_only=True):
            partner = await self.companies.get_by_id(partnership.partner_company_id)
            if partner is None or not partner.is_active:
                continue
            if not order.weight_kg:
                return partnership
            if await vehicles.available_for_weight(
                order.weight_kg, partnership.partner_company_id
            ):
                return partnership
        return None
