"""Bill endpoints - issuing, sending, paying and browsing bills"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.api import deps
from app.models.enums import BillStatus
from app.models.user import User
from app.services.bill_service import BillService
from app.services.bid_service import BidService
from app.schemas.bill import BillCreate, BillUpdate, BillResponse, BillWithBids, BillStats
from app.schemas.bid import BidResponse
from app.schemas.responses import SuccessResponse, PaginatedResponse, PaginationMeta

router = APIRouter()


@router.post("", response_model=SuccessResponse[BillResponse], status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_in: BillCreate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Create a draft bill. Organization only."""
    bill = await BillService.create_bill(db, current_user, bill_in)
    return SuccessResponse(data=BillResponse.model_validate(bill), message="Bill created successfully")


@router.get("", response_model=PaginatedResponse[BillResponse])
async def list_my_bills(
    bill_status: Optional[BillStatus] = Query(None, alias="status"),
    page: deps.Page = Depends(deps.pagination),
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Bills the caller issued, received or financed, depending on role."""
    bills, total = await BillService.list_my_bills(
        db, current_user, status=bill_status, skip=page.skip, limit=page.page_size
    )
    return PaginatedResponse(
        data=[BillResponse.model_validate(b) for b in bills],
        meta=PaginationMeta.build(page.page, page.page_size, total),
    )


@router.get("/marketplace", response_model=PaginatedResponse[BillWithBids])
async def list_marketplace_bills(
    page: deps.Page = Depends(deps.pagination),
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Bills open for financing with their active bids. Financer only."""
    items, total = await BillService.list_marketplace_bills(
        db, current_user, skip=page.skip, limit=page.page_size
    )
    return PaginatedResponse(
        data=[
            BillWithBids(
                bill=BillResponse.model_validate(item["bill"]),
                bids=[BidResponse.model_validate(b) for b in item["bids"]],
            )
            for item in items
        ],
        meta=PaginationMeta.build(page.page, page.page_size, total),
    )


@router.get("/stats", response_model=SuccessResponse[BillStats])
async def bill_stats(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    stats = await BillService.bill_stats(db, current_user)
    return SuccessResponse(data=BillStats(**stats))


@router.get("/{bill_id}", response_model=SuccessResponse[BillWithBids])
async def get_bill(
    bill_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    result = await BillService.get_bill(db, current_user, bill_id)
    return SuccessResponse(
        data=BillWithBids(
            bill=BillResponse.model_validate(result["bill"]),
            bids=[BidResponse.model_validate(b) for b in result["bids"]],
        )
    )


@router.patch("/{bill_id}", response_model=SuccessResponse[BillResponse])
async def update_bill(
    bill_id: UUID,
    bill_in: BillUpdate,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Edit a draft bill. Owning organization only."""
    bill = await BillService.update_bill(db, current_user, bill_id, bill_in)
    return SuccessResponse(data=BillResponse.model_validate(bill), message="Bill updated successfully")


@router.delete("/{bill_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bill(
    bill_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Response:
    """Delete a draft bill. Owning organization only."""
    await BillService.delete_bill(db, current_user, bill_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{bill_id}/send", response_model=SuccessResponse[BillResponse])
async def send_bill(
    bill_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Send a draft bill to its customer and list it in the marketplace."""
    bill = await BillService.send_bill(db, current_user, bill_id)
    return SuccessResponse(data=BillResponse.model_validate(bill), message="Bill sent successfully")


@router.post("/{bill_id}/pay", response_model=SuccessResponse[BillResponse])
async def pay_bill(
    bill_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Mark a bill paid. Customer only; no money is moved."""
    bill = await BillService.pay_bill(db, current_user, bill_id)
    return SuccessResponse(data=BillResponse.model_validate(bill), message="Bill paid successfully")


@router.get("/{bill_id}/bids", response_model=SuccessResponse[list[BidResponse]])
async def list_bids_for_bill(
    bill_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    bids = await BidService.list_bids_for_bill(db, current_user, bill_id)
    return SuccessResponse(data=[BidResponse.model_validate(b) for b in bids])


@router.get("/{bill_id}/bids/highest", response_model=SuccessResponse[Optional[BidResponse]])
async def get_highest_bid(
    bill_id: UUID,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Highest active bid; equal percentages go to the earliest bid."""
    bid = await BidService.get_highest_bid(db, current_user, bill_id)
    return SuccessResponse(data=BidResponse.model_validate(bid) if bid else None)
