"""
COD settlement pipeline
=======================

pending_collection -> collected -> submitted_to_company
                   -> received_by_company -> completed
(failed reachable from pending_collection and collected)

1. **collect**  -- driver takes cash from the receiver.
2. **submit**   -- driver hands a batch of collected transactions to the
   company.  Guarded by a per-driver Redis lock, row locks and an
   idempotency key so a retried request never double-submits.
3. **receive**  -- company confirms the cash and takes its COD fee.
4. **transfer_to_sender** -- payout = collected - fee + adjustment.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional, Sequence

import redis.asyncio as aioredis
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.config import settings
from cargolink.domain.enums import (
    CodCollectionStatus,
    CodStatus,
    PayoutMethod,
)
from cargolink.domain.errors import (
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
    UnauthorizedError,
)
from cargolink.domain.fees import company_cod_fee, sender_payout, to_money
from cargolink.domain.workflow import COD_WORKFLOW
from cargolink.infrastructure.locks import DistributedLock
from cargolink.infrastructure.models import (
    CodSubmissionModel,
    CodTransactionModel,
    utcnow,
)
from cargolink.infrastructure.repositories import (
    CodSubmissionRepository,
    CodTransactionRepository,
    DriverRepository,
    OrderRepository,
)

logger = logging.getLogger(__name__)


# ── Result types ──────────────────────────────────────────────────────


@dataclass
class SubmissionResult:
    submission: CodSubmissionModel
    transactions: list[CodTransactionModel]
    replayed: bool = False


@dataclass
class DriverPendingCod:
    driver_id: int
    transactions: list[CodTransactionModel]
    transaction_count: int
    total_amount: Decimal


@dataclass
class DriverReconciliation:
    driver_id: int
    collected_count: int = 0
    collected_amount: Decimal = Decimal("0.00")
    submitted_count: int = 0
    submitted_amount: Decimal = Decimal("0.00")

    @property
    def variance(self) -> Decimal:
        return to_money(self.collected_amount - self.submitted_amount)


@dataclass
class CodReconciliation:
    company_id: int
    day: date
    drivers: list[DriverReconciliation] = field(default_factory=list)

    @property
    def total_collected(self) -> Decimal:
        return to_money(sum((d.collected_amount for d in self.drivers), Decimal(0)))

    @property
    def total_submitted(self) -> Decimal:
        return to_money(sum((d.submitted_amount for d in self.drivers), Decimal(0)))

    @property
    def total_variance(self) -> Decimal:
        return to_money(self.total_collected - self.total_submitted)


# ── Service ───────────────────────────────────────────────────────────


class CodService:
    def __init__(
        self,
        session: AsyncSession,
        redis: Optional[aioredis.Redis] = None,
        company_fee_rate: Optional[float] = None,
    ):
        self.session = session
        self.redis = redis
        self.company_fee_rate = (
            settings.company_cod_fee_rate if company_fee_rate is None else company_fee_rate
        )
        self.transactions = CodTransactionRepository(session)
        self.submissions = CodSubmissionRepository(session)
        self.orders = OrderRepository(session)
        self.drivers = DriverRepository(session)

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def create(self, order_id: int, notes: Optional[str] = None) -> CodTransactionModel:
        order = await self.orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if to_money(order.cod_amount) <= 0:
            raise InvalidOperationError(f"Order {order_id} has no COD amount")
        if await self.transactions.get_by_order(order_id) is not None:
            raise InvalidOperationError(
                f"COD transaction for order {order_id} already exists"
            )

        txn = CodTransactionModel(
            order_id=order_id,
            cod_amount=to_money(order.cod_amount),
            collection_status=CodCollectionStatus.PENDING,
            overall_status=CodStatus.PENDING_COLLECTION,
            notes=notes,
        )
        await self.transactions.add(txn)
        logger.info("COD transaction %s created for order %s (%s)", txn.id, order_id, txn.cod_amount)
        return txn

    async def collect(
        self,
        order_id: int,
        driver_id: int,
        amount: Optional[Decimal] = None,
        proof_photo_url: Optional[str] = None,
    ) -> CodTransactionModel:
        if await self.drivers.get_by_id(driver_id) is None:
            raise NotFoundError("Driver", driver_id)
        order = await self.orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        txn = await self.transactions.get_by_order(order_id, for_update=True)
        if txn is None:
            raise NotFoundError("COD transaction for order", order_id)

        if COD_WORKFLOW.coerce(txn.overall_status) == CodStatus.COLLECTED:
            if txn.collected_by_driver == driver_id:
                return txn
            raise InvalidOperationError(
                f"COD for order {order_id} was already collected by another driver"
            )
        if order.driver_id is not None and order.driver_id != driver_id:
            raise UnauthorizedError(
                f"Order {order_id} is assigned to driver {order.driver_id}"
            )

        collected = to_money(txn.cod_amount if amount is None else amount)
        if collected <= 0:
            raise InvalidArgumentError("Collected amount must be greater than 0")
        if collected > to_money(txn.cod_amount):
            raise InvalidArgumentError(
                f"Collected amount {collected} exceeds COD amount {txn.cod_amount}"
            )

        txn.overall_status = COD_WORKFLOW.ensure(txn.overall_status, CodStatus.COLLECTED)
        txn.collection_status = CodCollectionStatus.COLLECTED
        txn.collected_amount = collected
        txn.collected_by_driver = driver_id
        txn.collected_at = utcnow()
        txn.collection_proof_photo = proof_photo_url
        await self.session.flush()
        logger.info("COD %s collected by driver %s: %s", txn.id, driver_id, collected)
        return txn

    async def submit(
        self,
        driver_id: int,
        transaction_ids: Sequence[int],
        idempotency_key: str,
        declared_total: Optional[Decimal] = None,
    ) -> SubmissionResult:
        """Hand a batch of collected transactions to the company."""
        if not transaction_ids:
            raise InvalidArgumentError("No COD transactions to submit")
        if len(set(transaction_ids)) != len(transaction_ids):
            raise InvalidArgumentError("Duplicate COD transaction ids in submission")
        if not idempotency_key:
            raise InvalidArgumentError("idempotency_key is required")
        if self.redis is None:
            raise RuntimeError("COD submission needs a Redis client")
        if await self.drivers.get_by_id(driver_id) is None:
            raise NotFoundError("Driver", driver_id)

        lock = DistributedLock(
            self.redis, f"cod_submit:{driver_id}", ttl_seconds=settings.cod_lock_ttl_seconds
        )
        async with lock:
            replay = await self._replay(idempotency_key, driver_id)
            if replay is not None:
                return replay

            found = await self.transactions.get_many_for_update(transaction_ids)
            batch: list[CodTransactionModel] = []
            for txn_id in transaction_ids:
                txn = found.get(txn_id)
                if txn is None:
                    raise NotFoundError("COD transaction", txn_id)
                if txn.collected_by_driver != driver_id:
                    raise UnauthorizedError(
                        f"COD transaction {txn_id} was not collected by driver {driver_id}"
                    )
                status = COD_WORKFLOW.coerce(txn.overall_status)
                if status != CodStatus.COLLECTED:
                    # a retry racing the original request sees its rows already submitted
                    replay = await self._replay(idempotency_key, driver_id)
                    if replay is not None:
                        return replay
                    raise InvalidOperationError(
                        f"COD transaction {txn_id} is {status.value}, expected collected"
                    )
                batch.append(txn)

            total = to_money(sum((to_money(t.collected_amount) for t in batch), Decimal(0)))
            if declared_total is not None:
                declared = to_money(declared_total)
                if declared > total:
                    raise InvalidOperationError(
                        f"Declared total {declared} exceeds collected total {total}"
                    )
                if declared != total:
                    raise InvalidOperationError(
                        f"Declared total {declared} does not match collected total {total}"
                    )

            submission = CodSubmissionModel(
                driver_id=driver_id,
                idempotency_key=idempotency_key,
                transaction_count=len(batch),
                total_amount=total,
            )
            try:
                await self.submissions.add(submission)

                now = utcnow()
                for txn in batch:
                    txn.overall_status = COD_WORKFLOW.ensure(
                        txn.overall_status, CodStatus.SUBMITTED_TO_COMPANY
                    )
                    txn.submitted_to_company = True
                    txn.submitted_at = now
                    txn.submitted_amount = txn.collected_amount
                    txn.submission_id = submission.id
                # commit before the lock is released so the next holder sees the batch
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                replay = await self._replay(idempotency_key, driver_id)
                if replay is None:
                    raise
                return replay

        logger.info(
            "Driver %s submitted %d COD transactions (%s) as submission %s",
            driver_id,
            len(batch),
            total,
            submission.id,
        )
        return SubmissionResult(submission=submission, transactions=batch)

    async def _replay(
        self, idempotency_key: str, driver_id: int
    ) -> Optional[SubmissionResult]:
        existing = await self.submissions.get_by_idempotency_key(idempotency_key)
        if existing is None:
            return None
        if existing.driver_id != driver_id:
            raise UnauthorizedError("Idempotency key belongs to another driver's submission")
        logger.info("COD submission %s replayed", existing.id)
        return SubmissionResult(
            submission=existing,
            transactions=await self.transactions.for_submission(existing.id),
            replayed=True,
        )

    async def receive(self, transaction_id: int, received_by: int) -> CodTransactionModel:
        txn = await self._locked(transaction_id)
        txn.overall_status = COD_WORKFLOW.ensure(
            txn.overall_status, CodStatus.RECEIVED_BY_COMPANY
        )
        txn.company_received_by = received_by
        txn.received_at = utcnow()
        txn.company_fee = company_cod_fee(txn.collected_amount, self.company_fee_rate)
        await self.session.flush()
        logger.info("COD %s received by %s, fee %s", txn.id, received_by, txn.company_fee)
        return txn

    async def adjust(
        self, transaction_id: int, amount: Decimal, reason: str
    ) -> CodTransactionModel:
        if not reason or not reason.strip():
            raise InvalidArgumentError("Adjustment reason is required")
        txn = await self._locked(transaction_id)
        if COD_WORKFLOW.is_terminal(txn.overall_status):
            raise InvalidOperationError(
                f"COD transaction {transaction_id} is "
                f"{COD_WORKFLOW.coerce(txn.overall_status).value} and cannot be adjusted"
            )
        txn.adjustment_amount = to_money(amount)
        txn.adjustment_reason = reason
        await self.session.flush()
        logger.info("COD %s adjusted by %s: %s", txn.id, txn.adjustment_amount, reason)
        return txn

    async def transfer_to_sender(
        self,
        transaction_id: int,
        method: PayoutMethod,
        reference: Optional[str] = None,
        proof: Optional[str] = None,
    ) -> CodTransactionModel:
        txn = await self._locked(transaction_id)
        new_status = COD_WORKFLOW.ensure(txn.overall_status, CodStatus.COMPLETED)
        payout = sender_payout(
            txn.collected_amount, txn.company_fee, txn.adjustment_amount
        )
        if payout < 0:
            raise InvalidOperationError(
                f"Payout for COD transaction {transaction_id} would be negative ({payout})"
            )

        txn.overall_status = new_status
        txn.payout_amount = payout
        txn.transferred_to_sender = True
        txn.transferred_at = utcnow()
        txn.transfer_method = PayoutMethod(method)
        txn.transfer_reference = reference
        txn.transfer_proof = proof
        await self.session.flush()
        logger.info("COD %s paid out to sender: %s via %s", txn.id, payout, txn.transfer_method.value)
        return txn

    async def mark_failed(self, transaction_id: int, reason: str) -> CodTransactionModel:
        txn = await self._locked(transaction_id)
        return await self._fail(txn, reason)

    async def fail_pending_for_order(
        self, order_id: int, reason: str
    ) -> Optional[CodTransactionModel]:
        """Fail the order's COD if cash has not been collected yet."""
        txn = await self.transactions.get_by_order(order_id, for_update=True)
        if txn is None:
            return None
        if COD_WORKFLOW.coerce(txn.overall_status) != CodStatus.PENDING_COLLECTION:
            return None
        return await self._fail(txn, reason)

    # ── Queries ───────────────────────────────────────────────────────

    async def get(self, transaction_id: int) -> CodTransactionModel:
        txn = await self.transactions.get_by_id(transaction_id)
        if txn is None:
            raise NotFoundError("COD transaction", transaction_id)
        return txn

    async def get_by_order(self, order_id: int) -> CodTransactionModel:
        txn = await self.transactions.get_by_order(order_id)
        if txn is None:
            raise NotFoundError("COD transaction for order", order_id)
        return txn

    async def list(
        self,
        status: Optional[CodStatus] = None,
        driver_id: Optional[int] = None,
        company_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> list[CodTransactionModel]:
        return await self.transactions.search(
            status=status,
            driver_id=driver_id,
            company_id=company_id,
            offset=(page - 1) * page_size,
            limit=page_size,
        )

    async def driver_pending(self, driver_id: int) -> DriverPendingCod:
        """Cash the driver holds: collected but not yet submitted."""
        txns = await self.transactions.collected_not_submitted(driver_id)
        return DriverPendingCod(
            driver_id=driver_id,
            transactions=txns,
            transaction_count=len(txns),
            total_amount=to_money(
                sum((to_money(t.collected_amount) for t in txns), Decimal(0))
            ),
        )

    async def company_pending(self, company_id: int) -> list[DriverPendingCod]:
        """Submitted cash not yet paid out, grouped per driver."""
        grouped: dict[int, list[CodTransactionModel]] = defaultdict(list)
        for txn in await self.transactions.awaiting_payout(company_id):
            grouped[txn.collected_by_driver].append(txn)
        return [
            DriverPendingCod(
                driver_id=driver_id,
                transactions=txns,
                transaction_count=len(txns),
                total_amount=to_money(
                    sum((to_money(t.submitted_amount) for t in txns), Decimal(0))
                ),
            )
            for driver_id, txns in sorted(grouped.items())
        ]

    async def reconciliation(self, company_id: int, day: date) -> CodReconciliation:
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        collected = await self.transactions.collected_by_driver_between(company_id, start, end)
        submitted = await self.transactions.submitted_by_driver_between(company_id, start, end)

        report = CodReconciliation(company_id=company_id, day=day)
        for driver_id in sorted(set(collected) | set(submitted)):
            c_count, c_amount = collected.get(driver_id, (0, Decimal(0)))
            s_count, s_amount = submitted.get(driver_id, (0, Decimal(0)))
            report.drivers.append(
                DriverReconciliation(
                    driver_id=driver_id,
                    collected_count=c_count,
                    collected_amount=to_money(c_amount),
                    submitted_count=s_count,
                    submitted_amount=to_money(s_amount),
                )
            )
        return report

    async def dashboard(self, company_id: Optional[int] = None) -> dict:
        totals = await self.transactions.totals_by_status(company_id)
        by_status = {
            s.value: {
                "count": totals.get(s, (0, Decimal(0)))[0],
                "amount": to_money(totals.get(s, (0, Decimal(0)))[1]),
            }
            for s in CodStatus
        }
        outstanding = sum(
            (
                totals.get(s, (0, Decimal(0)))[1]
                for s in CodStatus
                if s not in (CodStatus.COMPLETED, CodStatus.FAILED)
            ),
            Decimal(0),
        )
        return {
            "company_id": company_id,
            "total_transactions": sum(count for count, _ in totals.values()),
            "by_status": by_status,
            "outstanding_amount": to_money(outstanding),
            "paid_out_amount": to_money(await self.transactions.total_paid_out(company_id)),
        }

    # ── Internals ─────────────────────────────────────────────────────

    async def _locked(self, transaction_id: int) -> CodTransactionModel:
        txn = await self.transactions.get_for_update(transaction_id)
        if txn is None:
            raise NotFoundError("COD transaction", transaction_id)
        return txn

    async def _fail(self, txn: CodTransactionModel, reason: str) -> CodTransactionModel:
        txn.overall_status = COD_WORKFLOW.ensure(txn.overall_status, CodStatus.FAILED)
        txn.collection_status = CodCollectionStatus.FAILED
        txn.notes = reason
        await self.session.flush()
        logger.info("COD %s failed: %s", txn.id, reason)
        return txn
