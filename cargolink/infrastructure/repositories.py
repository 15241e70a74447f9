"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Common CRUD lives on :class:`Repository`.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Generic, Iterable, Optional, Sequence, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .database import Base
from .models import (
    CodSubmissionModel,
    CodTransactionModel,
    CompanyPartnershipModel,
    DriverModel,
    OrderModel,
    OrderPhotoModel,
    OrderStatusHistoryModel,
    OrderTransferModel,
    RouteModel,
    TransportCompanyModel,
    VehicleModel,
)
from cargolink.domain.enums import (
    CodStatus,
    OrderStatus,
    PaymentStatus,
    TransferStatus,
    VehicleStatus,
)

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, entity_id: int) -> Optional[ModelT]:
        return await self.session.get(self.model, entity_id)

    async def get_for_update(self, entity_id: int) -> Optional[ModelT]:
        """SELECT ... FOR UPDATE; reloads the row if already in the session."""
        return await self.session.get(
            self.model, entity_id, with_for_update=True, populate_existing=True
        )

    async def add(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self.session.delete(entity)
        await self.session.flush()

    async def list_all(self) -> list[ModelT]:
        result = await self.session.execute(select(self.model).order_by(self.model.id))
        return list(result.scalars().all())


class CompanyRepository(Repository[TransportCompanyModel]):
    model = TransportCompanyModel


class DriverRepository(Repository[DriverModel]):
    model = DriverModel

    async def list_for_company(self, company_id: int) -> list[DriverModel]:
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.company_id == company_id)
            .order_by(DriverModel.id)
        )
        return list(result.scalars().all())


class RouteRepository(Repository[RouteModel]):
    model = RouteModel


# ── Orders ────────────────────────────────────────────────────────────


class OrderRepository(Repository[OrderModel]):
    model = OrderModel

    async def get_by_tracking_code(self, code: str) -> Optional[OrderModel]:
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.tracking_code == code)
        )
        return result.scalar_one_or_none()

    async def tracking_code_exists(self, code: str) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(OrderModel)
            .where(OrderModel.tracking_code == code)
        )
        return (result.scalar() or 0) > 0

    async def search(
        self,
        *,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        customer_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        company_id: Optional[int] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[OrderModel], int]:
        """Filtered, newest-first page of orders plus the total match count."""
        query = select(OrderModel)
        if status is not None:
            query = query.where(OrderModel.order_status == status)
        if payment_status is not None:
            query = query.where(OrderModel.payment_status == payment_status)
        if customer_id is not None:
            query = query.where(OrderModel.customer_id == customer_id)
        if driver_id is not None:
            query = query.where(OrderModel.driver_id == driver_id)
        if company_id is not None:
            query = query.join(RouteModel, RouteModel.id == OrderModel.route_id).where(
                RouteModel.company_id == company_id
            )
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    OrderModel.tracking_code.ilike(pattern),
                    OrderModel.receiver_name.ilike(pattern),
                    OrderModel.receiver_phone.ilike(pattern),
                )
            )

        total = await self.session.execute(
            select(func.count()).select_from(query.subquery())
        )
        result = await self.session.execute(
            query.order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total.scalar() or 0

    async def count_by_status(self) -> dict[OrderStatus, int]:
        result = await self.session.execute(
            select(OrderModel.order_status, func.count()).group_by(
                OrderModel.order_status
            )
        )
        return {OrderStatus(status): count for status, count in result.all()}

    async def count_created_since(self, since: datetime) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(OrderModel)
            .where(OrderModel.created_at >= since)
        )
        return result.scalar() or 0

    async def delivered_revenue_since(self, since: datetime) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(OrderModel.shipping_fee), 0)).where(
                OrderModel.order_status == OrderStatus.DELIVERED,
                OrderModel.delivered_at >= since,
            )
        )
        return Decimal(str(result.scalar() or 0))

    async def company_of(self, order: OrderModel) -> Optional[int]:
        """The originating company is the company owning the order's route."""
        if order.route_id is None:
            return None
        route = await self.session.get(RouteModel, order.route_id)
        return route.company_id if route else None


class OrderHistoryRepository(Repository[OrderStatusHistoryModel]):
    model = OrderStatusHistoryModel

    async def for_order(self, order_id: int) -> list[OrderStatusHistoryModel]:
        result = await self.session.execute(
            select(OrderStatusHistoryModel)
            .where(OrderStatusHistoryModel.order_id == order_id)
            .order_by(OrderStatusHistoryModel.id)
        )
        return list(result.scalars().all())


class OrderPhotoRepository(Repository[OrderPhotoModel]):
    model = OrderPhotoModel

    async def for_order(self, order_id: int) -> list[OrderPhotoModel]:
        result = await self.session.execute(
            select(OrderPhotoModel)
            .where(OrderPhotoModel.order_id == order_id)
            .order_by(OrderPhotoModel.id)
        )
        return list(result.scalars().all())


# ── COD ───────────────────────────────────────────────────────────────


class CodTransactionRepository(Repository[CodTransactionModel]):
    model = CodTransactionModel

    async def get_by_order(
        self, order_id: int, *, for_update: bool = False
    ) -> Optional[CodTransactionModel]:
        query = select(CodTransactionModel).where(
            CodTransactionModel.order_id == order_id
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_many_for_update(
        self, ids: Iterable[int]
    ) -> dict[int, CodTransactionModel]:
        result = await self.session.execute(
            select(CodTransactionModel)
            .where(CodTransactionModel.id.in_(list(ids)))
            .order_by(CodTransactionModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {txn.id: txn for txn in result.scalars().all()}

    async def for_submission(self, submission_id: int) -> list[CodTransactionModel]:
        result = await self.session.execute(
            select(CodTransactionModel)
            .where(CodTransactionModel.submission_id == submission_id)
            .order_by(CodTransactionModel.id)
        )
        return list(result.scalars().all())

    async def search(
        self,
        *,
        status: Optional[CodStatus] = None,
        driver_id: Optional[int] = None,
        company_id: Optional[int] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[CodTransactionModel]:
        query = select(CodTransactionModel)
        if status is not None:
            query = query.where(CodTransactionModel.overall_status == status)
        if driver_id is not None:
            query = query.where(CodTransactionModel.collected_by_driver == driver_id)
        if company_id is not None:
            query = (
                query.join(OrderModel, OrderModel.id == CodTransactionModel.order_id)
                .join(RouteModel, RouteModel.id == OrderModel.route_id)
                .where(RouteModel.company_id == company_id)
            )
        result = await self.session.execute(
            query.order_by(CodTransactionModel.id.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all())

    async def collected_not_submitted(
        self, driver_id: int
    ) -> list[CodTransactionModel]:
        result = await self.session.execute(
            select(CodTransactionModel)
            .where(
                CodTransactionModel.collected_by_driver == driver_id,
                CodTransactionModel.overall_status == CodStatus.COLLECTED,
            )
            .order_by(CodTransactionModel.collected_at)
        )
        return list(result.scalars().all())

    async def awaiting_payout(self, company_id: int) -> list[CodTransactionModel]:
        """Cash handed in by the company's drivers and not yet paid out."""
        result = await self.session.execute(
            select(CodTransactionModel)
            .join(DriverModel, DriverModel.id == CodTransactionModel.collected_by_driver)
            .where(
                DriverModel.company_id == company_id,
                CodTransactionModel.overall_status.in_(
                    [CodStatus.SUBMITTED_TO_COMPANY, CodStatus.RECEIVED_BY_COMPANY]
                ),
            )
            .order_by(CodTransactionModel.submitted_at)
        )
        return list(result.scalars().all())

    async def collected_by_driver_between(
        self, company_id: int, start: datetime, end: datetime
    ) -> dict[int, tuple[int, Decimal]]:
        result = await self.session.execute(
            select(
                CodTransactionModel.collected_by_driver,
                func.count(),
                func.coalesce(func.sum(CodTransactionModel.collected_amount), 0),
            )
            .join(DriverModel, DriverModel.id == CodTransactionModel.collected_by_driver)
            .where(
                DriverModel.company_id == company_id,
                CodTransactionModel.collected_at >= start,
                CodTransactionModel.collected_at < end,
            )
            .group_by(CodTransactionModel.collected_by_driver)
        )
        return {
            driver: (count, Decimal(str(total))) for driver, count, total in result.all()
        }

    async def submitted_by_driver_between(
        self, company_id: int, start: datetime, end: datetime
    ) -> dict[int, tuple[int, Decimal]]:
        result = await self.session.execute(
            select(
                CodTransactionModel.collected_by_driver,
                func.count(),
                func.coalesce(func.sum(CodTransactionModel.submitted_amount), 0),
            )
            .join(DriverModel, DriverModel.id == CodTransactionModel.collected_by_driver)
            .where(
                DriverModel.company_id == company_id,
                CodTransactionModel.submitted_at >= start,
                CodTransactionModel.submitted_at < end,
            )
            .group_by(CodTransactionModel.collected_by_driver)
        )
        return {
            driver: (count, Decimal(str(total))) for driver, count, total in result.all()
        }

    async def totals_by_status(
        self, company_id: Optional[int] = None
    ) -> dict[CodStatus, tuple[int, Decimal]]:
        query = select(
            CodTransactionModel.overall_status,
            func.count(),
            func.coalesce(func.sum(CodTransactionModel.cod_amount), 0),
        )
        if company_id is not None:
            query = (
                query.join(OrderModel, OrderModel.id == CodTransactionModel.order_id)
                .join(RouteModel, RouteModel.id == OrderModel.route_id)
                .where(RouteModel.company_id == company_id)
            )
        result = await self.session.execute(
            query.group_by(CodTransactionModel.overall_status)
        )
        return {
            CodStatus(status): (count, Decimal(str(total)))
            for status, count, total in result.all()
        }

    async def total_paid_out(self, company_id: Optional[int] = None) -> Decimal:
        query = select(func.coalesce(func.sum(CodTransactionModel.payout_amount), 0))
        if company_id is not None:
            query = (
                query.join(OrderModel, OrderModel.id == CodTransactionModel.order_id)
                .join(RouteModel, RouteModel.id == OrderModel.route_id)
                .where(RouteModel.company_id == company_id)
            )
        result = await self.session.execute(
            query.where(CodTransactionModel.overall_status == CodStatus.COMPLETED)
        )
        return Decimal(str(result.scalar() or 0))


class CodSubmissionRepository(Repository[CodSubmissionModel]):
    model = CodSubmissionModel

    async def get_by_idempotency_key(self, key: str) -> Optional[CodSubmissionModel]:
        result = await self.session.execute(
            select(CodSubmissionModel).where(CodSubmissionModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()


# ── Partnerships & transfers ──────────────────────────────────────────


class PartnershipRepository(Repository[CompanyPartnershipModel]):
    model = CompanyPartnershipModel

    async def get_pair(
        self, company_id: int, partner_company_id: int
    ) -> Optional[CompanyPartnershipModel]:
        result = await self.session.execute(
            select(CompanyPartnershipModel).where(
                CompanyPartnershipModel.company_id == company_id,
                CompanyPartnershipModel.partner_company_id == partner_company_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_company(
        self, company_id: int, active_only: bool = False
    ) -> list[CompanyPartnershipModel]:
        query = select(CompanyPartnershipModel).where(
            CompanyPartnershipModel.company_id == company_id
        )
        if active_only:
            query = query.where(CompanyPartnershipModel.is_active.is_(True))
        result = await self.session.execute(
            query.order_by(
                CompanyPartnershipModel.priority_order, CompanyPartnershipModel.id
            )
        )
        return list(result.scalars().all())


class TransferRepository(Repository[OrderTransferModel]):
    model = OrderTransferModel

    async def pending_for_order(self, order_id: int) -> Optional[OrderTransferModel]:
        result = await self.session.execute(
            select(OrderTransferModel).where(
                OrderTransferModel.order_id == order_id,
                OrderTransferModel.transfer_status == TransferStatus.PENDING,
            )
        )
        return result.scalars().first()

    async def list_for_company(
        self,
        company_id: int,
        direction: Optional[str] = None,
        status: Optional[TransferStatus] = None,
    ) -> list[OrderTransferModel]:
        if direction == "incoming":
            query = select(OrderTransferModel).where(
                OrderTransferModel.to_company_id == company_id
            )
        elif direction == "outgoing":
            query = select(OrderTransferModel).where(
                OrderTransferModel.from_company_id == company_id
            )
        else:
            query = select(OrderTransferModel).where(
                or_(
                    OrderTransferModel.to_company_id == company_id,
                    OrderTransferModel.from_company_id == company_id,
                )
            )
        if status is not None:
            query = query.where(OrderTransferModel.transfer_status == status)
        result = await self.session.execute(
            query.order_by(OrderTransferModel.transferred_at.desc(), OrderTransferModel.id.desc())
        )
        return list(result.scalars().all())

    async def stale_pending_ids(self, cutoff: datetime) -> list[int]:
        result = await self.session.execute(
            select(OrderTransferModel.id)
            .where(
                OrderTransferModel.transfer_status == TransferStatus.PENDING,
                OrderTransferModel.transferred_at < cutoff,
            )
            .order_by(OrderTransferModel.id)
        )
        return list(result.scalars().all())

    async def count_between(self, from_company_id: int, to_company_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(OrderTransferModel)
            .where(
                OrderTransferModel.from_company_id == from_company_id,
                OrderTransferModel.to_company_id == to_company_id,
            )
        )
        return result.scalar() or 0

    async def stats_between(
        self, from_company_id: int, to_company_id: int
    ) -> tuple[dict[TransferStatus, int], Decimal]:
        """Transfer counts per status and the commission total on accepted ones."""
        result = await self.session.execute(
            select(OrderTransferModel.transfer_status, func.count())
            .where(
                OrderTransferModel.from_company_id == from_company_id,
                OrderTransferModel.to_company_id == to_company_id,
            )
            .group_by(OrderTransferModel.transfer_status)
        )
        counts = {TransferStatus(status): count for status, count in result.all()}
        commission = await self.session.execute(
            select(func.coalesce(func.sum(OrderTransferModel.commission_paid), 0)).where(
                OrderTransferModel.from_company_id == from_company_id,
                OrderTransferModel.to_company_id == to_company_id,
                OrderTransferModel.transfer_status == TransferStatus.ACCEPTED,
            )
        )
        return counts, Decimal(str(commission.scalar() or 0))


# ── Vehicles ──────────────────────────────────────────────────────────


class VehicleRepository(Repository[VehicleModel]):
    model = VehicleModel

    async def get_by_plate(self, license_plate: str) -> Optional[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).where(VehicleModel.license_plate == license_plate)
        )
        return result.scalar_one_or_none()

    async def search(
        self,
        *,
        company_id: Optional[int] = None,
        statuses: Optional[Sequence[VehicleStatus]] = None,
    ) -> list[VehicleModel]:
        query = select(VehicleModel)
        if company_id is not None:
            query = query.where(VehicleModel.company_id == company_id)
        if statuses:
            query = query.where(VehicleModel.current_status.in_(list(statuses)))
        result = await self.session.execute(query.order_by(VehicleModel.id))
        return list(result.scalars().all())

    async def available(self, company_id: Optional[int] = None) -> list[VehicleModel]:
        """Available vehicles, least-loaded first."""
        query = select(VehicleModel).where(
            VehicleModel.current_status == VehicleStatus.AVAILABLE
        )
        if company_id is not None:
            query = query.where(VehicleModel.company_id == company_id)
        result = await self.session.execute(
            query.order_by(VehicleModel.capacity_percentage, VehicleModel.id)
        )
        return list(result.scalars().all())

    async def count_by_status(
        self, company_id: Optional[int] = None
    ) -> dict[VehicleStatus, int]:
        query = select(VehicleModel.current_status, func.count())
        if company_id is not None:
            query = query.where(VehicleModel.company_id == company_id)
        result = await self.session.execute(query.group_by(VehicleModel.current_status))
        return {VehicleStatus(status): count for status, count in result.all()}
