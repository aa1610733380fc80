"""User Pydantic Schemas"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, ConfigDict

from app.models.enums import UserRole


class UserResponse(BaseModel):
    """Schema for user responses"""
    id: UUID
    email: EmailStr
    name: str
    role: UserRole
    company_name: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerBrief(BaseModel):
    """Minimal customer info for organizations picking a bill recipient."""
    id: UUID
    name: str
    email: EmailStr

    model_config = ConfigDict(from_attributes=True)


class AddFundsRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)


class FundsResponse(BaseModel):
    available_funds: Decimal


class UserStatsResponse(BaseModel):
    total_bills_created: int = 0
    total_bills_sent: int = 0
    total_revenue: Decimal = Decimal("0")
    total_bills_received: int = 0
    total_bills_paid: int = 0
    total_amount_paid: Decimal = Decimal("0")
    total_bids_placed: int = 0
    total_bids_won: int = 0
    total_investment_amount: Decimal = Decimal("0")
    total_returns: Decimal = Decimal("0")
    available_funds: Optional[Decimal] = None
