"""Bid endpoints - financers bid, organizations accept"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.api import deps
from app.models.enums import BidStatus
from app.models.user import User
from app.services.bid_service import BidService
from app.services.marketplace_service import MarketplaceService
from app.schemas.bid import BidCreate, BidUpdate, BidResponse, BidStats
from app.schemas.bill import BillResponse, FinancingResult
from app.schemas.responses import SuccessResponse, PaginatedResponse, PaginationMeta

router = APIRouter()


@router.post("", response_model=SuccessResponse[BidResponse], status_code=status.HTTP_201_CREATED)
async def place_bid(
    bid_in: BidCreate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Bid on a marketplace bill. Financer only."""
    bid = await BidService.place_bid(db, current_user, bid_in)
    return SuccessResponse(data=BidResponse.model_validate(bid), message="Bid placed successfully")


@router.get("", response_model=PaginatedResponse[BidResponse])
async def list_my_bids(
    bid_status: Optional[BidStatus] = Query(None, alias="status"),
    page: deps.Page = Depends(deps.pagination),
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    bids, total = await BidService.list_my_bids(
        db, current_user, status=bid_status, skip=page.skip, limit=page.page_size
    )
    return PaginatedResponse(
        data=[BidResponse.model_validate(b) for b in bids],
        meta=PaginationMeta.build(page.page, page.page_size, total),
    )


@router.get("/stats", response_model=SuccessResponse[BidStats])
async def bid_stats(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    stats = await BidService.bid_stats(db, current_user)
    return SuccessResponse(data=BidStats(**stats))


@router.get("/{bid_id}", response_model=SuccessResponse[BidResponse])
async def get_bid(
    bid_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    bid = await BidService.get_bid(db, current_user, bid_id)
    return SuccessResponse(data=BidResponse.model_validate(bid))


@router.patch("/{bid_id}", response_model=SuccessResponse[BidResponse])
async def update_bid(
    bid_id: UUID,
    bid_in: BidUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Change percentage, terms or interest of an own pending bid."""
    bid = await BidService.update_bid(db, current_user, bid_id, bid_in)
    return SuccessResponse(data=BidResponse.model_validate(bid), message="Bid updated successfully")


@router.delete("/{bid_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_bid(
    bid_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Response:
    await BidService.cancel_bid(db, current_user, bid_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{bid_id}/accept", response_model=SuccessResponse[FinancingResult])
async def accept_bid(
    bid_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Accept a bid on an own bill: finances the bill and rejects competing bids."""
    result = await MarketplaceService.accept_bid(db, current_user, bid_id)
    return SuccessResponse(
        data=FinancingResult(
            bid=BidResponse.model_validate(result["bid"]),
            bill=BillResponse.model_validate(result["bill"]),
        ),
        message="Bid accepted successfully",
    )
