"""
Transfer endpoints
==================

POST /api/v1/transfers                                -- propose a transfer
GET  /api/v1/transfers/companies/{company_id}         -- incoming / outgoing
GET  /api/v1/transfers/companies/{company_id}/pending -- awaiting decision
GET  /api/v1/transfers/{transfer_id}                  -- detail
POST /api/v1/transfers/{transfer_id}/accept           -- receiving company accepts
POST /api/v1/transfers/{transfer_id}/reject           -- receiving company rejects
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.api.dependencies import get_db
from cargolink.api.middleware import limiter
from cargolink.api.schemas import (
    TransferAcceptRequest,
    TransferCreateRequest,
    TransferRejectRequest,
    TransferResponse,
)
from cargolink.domain.enums import TransferStatus
from cargolink.services.transfers import TransferService

router = APIRouter(prefix="/transfers", tags=["transfers"])


@router.post(
    "",
    status_code=201,
    response_model=TransferResponse,
    summary="Hand an order to a partner company",
    responses={409: {"description": "No active partnership or no vehicle capacity."}},
)
@limiter.limit("100/minute")
async def create_transfer(
    request: Request,
    body: TransferCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await TransferService(db).create_transfer(
        body.order_id,
        body.to_company_id,
        body.transfer_reason,
        body.transferred_by,
        original_vehicle_id=body.original_vehicle_id,
        admin_notes=body.admin_notes,
    )


@router.get(
    "/companies/{company_id}",
    response_model=list[TransferResponse],
    summary="List a company's transfers",
)
@limiter.limit("100/minute")
async def list_transfers(
    request: Request,
    company_id: int,
    direction: Optional[Literal["incoming", "outgoing"]] = None,
    status: Optional[TransferStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    return await TransferService(db).list_for_company(company_id, direction, status)


@router.get(
    "/companies/{company_id}/pending",
    response_model=list[TransferResponse],
    summary="Incoming transfers awaiting a decision",
)
@limiter.limit("100/minute")
async def pending_transfers(
    request: Request,
    company_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await TransferService(db).pending_for_company(company_id)


@router.get("/{transfer_id}", response_model=TransferResponse, summary="Get a transfer")
@limiter.limit("100/minute")
async def get_transfer(
    request: Request,
    transfer_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await TransferService(db).get(transfer_id)


@router.post("/{transfer_id}/accept", response_model=TransferResponse, summary="Accept a transfer")
@limiter.limit("100/minute")
async def accept_transfer(
    request: Request,
    transfer_id: int,
    body: TransferAcceptRequest,
    db: AsyncSession = Depends(get_db),
):
    return await TransferService(db).accept(
        transfer_id, body.company_id, body.user_id, body.vehicle_id
    )


@router.post("/{transfer_id}/reject", response_model=TransferResponse, summary="Reject a transfer")
@limiter.limit("100/minute")
async def reject_transfer(
    request: Request,
    transfer_id: int,
    body: TransferRejectRequest,
    db: AsyncSession = Depends(get_db),
):
    return await TransferService(db).reject(
        transfer_id, body.company_id, body.user_id, body.reason
    )
