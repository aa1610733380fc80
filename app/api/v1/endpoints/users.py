"""User endpoints - profile, ledger counters and financer funds"""

from typing import Any, List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.user import User
from app.services.ledger_service import LedgerService
from app.services.user_service import UserService
from app.schemas.user import (
    UserResponse,
    CustomerBrief,
    AddFundsRequest,
    FundsResponse,
    UserStatsResponse,
)
from app.schemas.responses import SuccessResponse

router = APIRouter()


@router.get("/me", response_model=SuccessResponse[UserResponse])
async def read_current_user(
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return SuccessResponse(data=UserResponse.model_validate(current_user))


@router.get("/me/stats", response_model=SuccessResponse[UserStatsResponse])
async def read_my_stats(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Lifecycle counters for the current user (plus balance for financers)."""
    stats = await LedgerService.get_user_stats(db, current_user)
    return SuccessResponse(data=UserStatsResponse(**stats))


@router.post("/me/funds", response_model=SuccessResponse[FundsResponse])
async def add_funds(
    body: AddFundsRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Top up a financer's available funds. No payment is processed."""
    balance = await LedgerService.add_funds(db, current_user, body.amount)
    return SuccessResponse(
        data=FundsResponse(available_funds=balance),
        message="Funds added successfully",
    )


@router.get("/customers", response_model=SuccessResponse[List[CustomerBrief]])
async def list_customers(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Customers an organization can address bills to. Organization only."""
    customers = await UserService.list_customers(db, current_user)
    return SuccessResponse(data=[CustomerBrief.model_validate(c) for c in customers])
