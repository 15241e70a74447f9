"""
COD endpoints
=============

POST /api/v1/cod                                       -- open a COD transaction
GET  /api/v1/cod                                       -- list (filters)
POST /api/v1/cod/collect                               -- driver collects cash
POST /api/v1/cod/submit                                -- driver hands in a batch
GET  /api/v1/cod/dashboard                             -- totals per status
GET  /api/v1/cod/drivers/{driver_id}/pending           -- cash held by a driver
GET  /api/v1/cod/companies/{company_id}/pending        -- awaiting payout
GET  /api/v1/cod/companies/{company_id}/reconciliation -- daily reconciliation
GET  /api/v1/cod/orders/{order_id}                     -- by order
GET  /api/v1/cod/{transaction_id}                      -- detail
POST /api/v1/cod/{transaction_id}/receive              -- company confirms cash
POST /api/v1/cod/{transaction_id}/adjust               -- adjust payout
POST /api/v1/cod/{transaction_id}/transfer-to-sender   -- pay the sender
POST /api/v1/cod/{transaction_id}/fail                 -- mark failed
"""

from datetime import date
from typing import Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.api.dependencies import get_db
from cargolink.api.middleware import limiter
from cargolink.api.schemas import (
    CodAdjustRequest,
    CodCollectRequest,
    CodCreateRequest,
    CodDashboardResponse,
    CodFailRequest,
    CodPayoutRequest,
    CodReceiveRequest,
    CodReconciliationResponse,
    CodSubmissionResponse,
    CodSubmitRequest,
    CodTransactionResponse,
    DriverPendingCodResponse,
)
from cargolink.domain.enums import CodStatus
from cargolink.infrastructure.redis_client import get_redis
from cargolink.services.cod import CodService

router = APIRouter(prefix="/cod", tags=["cod"])


@router.post(
    "",
    status_code=201,
    response_model=CodTransactionResponse,
    summary="Open a COD transaction for an order",
)
@limiter.limit("100/minute")
async def create_cod(
    request: Request,
    body: CodCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).create(body.order_id, body.notes)


@router.get("", response_model=list[CodTransactionResponse], summary="List COD transactions")
@limiter.limit("100/minute")
async def list_cod(
    request: Request,
    status: Optional[CodStatus] = None,
    driver_id: Optional[int] = None,
    company_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).list(status, driver_id, company_id, page, page_size)


@router.post(
    "/collect",
    response_model=CodTransactionResponse,
    summary="Record cash collected by a driver",
)
@limiter.limit("100/minute")
async def collect_cod(
    request: Request,
    body: CodCollectRequest,
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).collect(
        body.order_id, body.driver_id, body.amount, body.proof_photo_url
    )


@router.post(
    "/submit",
    response_model=CodSubmissionResponse,
    summary="Hand collected cash to the company",
    description=(
        "Submits a batch of the driver's collected transactions.  Replaying "
        "an ``idempotency_key`` returns the original submission unchanged."
    ),
    responses={409: {"description": "A transaction is not collected or totals differ."}},
)
@limiter.limit("100/minute")
async def submit_cod(
    request: Request,
    body: CodSubmitRequest,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    result = await CodService(db, redis).submit(
        body.driver_id, body.transaction_ids, body.idempotency_key, body.declared_total
    )
    submission = result.submission
    return CodSubmissionResponse(
        id=submission.id,
        driver_id=submission.driver_id,
        idempotency_key=submission.idempotency_key,
        transaction_count=submission.transaction_count,
        total_amount=submission.total_amount,
        submitted_at=submission.submitted_at,
        replayed=result.replayed,
        transactions=[CodTransactionResponse.model_validate(t) for t in result.transactions],
    )


@router.get("/dashboard", response_model=CodDashboardResponse, summary="COD totals per status")
@limiter.limit("100/minute")
async def cod_dashboard(
    request: Request,
    company_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).dashboard(company_id)


@router.get(
    "/drivers/{driver_id}/pending",
    response_model=DriverPendingCodResponse,
    summary="Cash a driver has collected but not submitted",
)
@limiter.limit("100/minute")
async def driver_pending_cod(
    request: Request,
    driver_id: int,
    db: AsyncSession = Depends(get_db),
):
    pending = await CodService(db).driver_pending(driver_id)
    return DriverPendingCodResponse.model_validate(pending)


@router.get(
    "/companies/{company_id}/pending",
    response_model=list[DriverPendingCodResponse],
    summary="Submitted cash awaiting payout, per driver",
)
@limiter.limit("100/minute")
async def company_pending_cod(
    request: Request,
    company_id: int,
    db: AsyncSession = Depends(get_db),
):
    groups = await CodService(db).company_pending(company_id)
    return [DriverPendingCodResponse.model_validate(g) for g in groups]


@router.get(
    "/companies/{company_id}/reconciliation",
    response_model=CodReconciliationResponse,
    summary="Collected vs submitted per driver for one day",
)
@limiter.limit("100/minute")
async def cod_reconciliation(
    request: Request,
    company_id: int,
    day: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    report = await CodService(db).reconciliation(company_id, day or date.today())
    return CodReconciliationResponse.model_validate(report)


@router.get(
    "/orders/{order_id}",
    response_model=CodTransactionResponse,
    summary="COD transaction of an order",
)
@limiter.limit("100/minute")
async def get_cod_by_order(
    request: Request,
    order_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).get_by_order(order_id)


@router.get("/{transaction_id}", response_model=CodTransactionResponse, summary="Get a COD transaction")
@limiter.limit("100/minute")
async def get_cod(
    request: Request,
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).get(transaction_id)


@router.post(
    "/{transaction_id}/receive",
    response_model=CodTransactionResponse,
    summary="Company confirms receipt of submitted cash",
)
@limiter.limit("100/minute")
async def receive_cod(
    request: Request,
    transaction_id: int,
    body: CodReceiveRequest,
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).receive(transaction_id, body.received_by)


@router.post(
    "/{transaction_id}/adjust",
    response_model=CodTransactionResponse,
    summary="Adjust the sender payout",
)
@limiter.limit("100/minute")
async def adjust_cod(
    request: Request,
    transaction_id: int,
    body: CodAdjustRequest,
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).adjust(transaction_id, body.amount, body.reason)


@router.post(
    "/{transaction_id}/transfer-to-sender",
    response_model=CodTransactionResponse,
    summary="Pay the collected cash out to the sender",
)
@limiter.limit("100/minute")
async def transfer_cod_to_sender(
    request: Request,
    transaction_id: int,
    body: CodPayoutRequest,
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).transfer_to_sender(
        transaction_id, body.method, body.reference, body.proof
    )


@router.post(
    "/{transaction_id}/fail",
    response_model=CodTransactionResponse,
    summary="Mark a COD transaction as failed",
)
@limiter.limit("100/minute")
async def fail_cod(
    request: Request,
    transaction_id: int,
    body: CodFailRequest,
    db: AsyncSession = Depends(get_db),
):
    return await CodService(db).mark_failed(transaction_id, body.reason)
