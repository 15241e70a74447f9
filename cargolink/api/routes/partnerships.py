"""
Partnership endpoints
=====================

POST   /api/v1/partnerships                             -- create
GET    /api/v1/partnerships/companies/{company_id}      -- a company's partners
GET    /api/v1/partnerships/orders/{order_id}/best      -- best partner for an order
GET    /api/v1/partnerships/{partnership_id}            -- detail
PATCH  /api/v1/partnerships/{partnership_id}            -- update
POST   /api/v1/partnerships/{partnership_id}/deactivate -- soft delete
DELETE /api/v1/partnerships/{partnership_id}            -- delete (no transfers only)
GET    /api/v1/partnerships/{partnership_id}/statistics -- transfer statistics
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.api.dependencies import get_db
from cargolink.api.middleware import limiter
from cargolink.api.schemas import (
    PartnershipCreateRequest,
    PartnershipResponse,
    PartnershipStatisticsResponse,
    PartnershipUpdateRequest,
)
from cargolink.services.partnerships import PartnershipService

router = APIRouter(prefix="/partnerships", tags=["partnerships"])


@router.post(
    "",
    status_code=201,
    response_model=PartnershipResponse,
    summary="Create a partnership",
)
@limiter.limit("100/minute")
async def create_partnership(
    request: Request,
    body: PartnershipCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await PartnershipService(db).create(**body.model_dump())


@router.get(
    "/companies/{company_id}",
    response_model=list[PartnershipResponse],
    summary="List a company's partners, most preferred first",
)
@limiter.limit("100/minute")
async def list_partnerships(
    request: Request,
    company_id: int,
    active_only: bool = False,
    db: AsyncSession = Depends(get_db),
):
    return await PartnershipService(db).list_for_company(company_id, active_only)


@router.get(
    "/orders/{order_id}/best",
    response_model=Optional[PartnershipResponse],
    summary="Best partner able to carry an order",
)
@limiter.limit("100/minute")
async def best_partner(
    request: Request,
    order_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await PartnershipService(db).best_partner(order_id)


@router.get("/{partnership_id}", response_model=PartnershipResponse, summary="Get a partnership")
@limiter.limit("100/minute")
async def get_partnership(
    request: Request,
    partnership_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await PartnershipService(db).get(partnership_id)


@router.patch("/{partnership_id}", response_model=PartnershipResponse, summary="Update a partnership")
@limiter.limit("100/minute")
async def update_partnership(
    request: Request,
    partnership_id: int,
    body: PartnershipUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await PartnershipService(db).update(
        partnership_id, **body.model_dump(exclude_unset=True)
    )


@router.post(
    "/{partnership_id}/deactivate",
    response_model=PartnershipResponse,
    summary="Deactivate a partnership",
)
@limiter.limit("100/minute")
async def deactivate_partnership(
    request: Request,
    partnership_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await PartnershipService(db).deactivate(partnership_id)


@router.delete("/{partnership_id}", status_code=204, summary="Delete a partnership")
@limiter.limit("100/minute")
async def delete_partnership(
    request: Request,
    partnership_id: int,
    db: AsyncSession = Depends(get_db),
):
    await PartnershipService(db).delete(partnership_id)
    return Response(status_code=204)


@router.get(
    "/{partnership_id}/statistics",
    response_model=PartnershipStatisticsResponse,
    summary="Transfer statistics for a partnership",
)
@limiter.limit("100/minute")
async def partnership_statistics(
    request: Request,
    partnership_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await PartnershipService(db).statistics(partnership_id)
