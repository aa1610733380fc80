"""Bill Pydantic Schemas"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.models.enums import BillStatus
from app.schemas.bid import BidResponse
from app.utils.time import get_utc_now, to_naive_utc


class BillBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    due_date: datetime


class BillCreate(BillBase):
    """Payload for a new draft bill; the issuing organization is the caller."""
    customer_id: UUID

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, v: datetime) -> datetime:
        v = to_naive_utc(v)
        if v <= get_utc_now():
            raise ValueError("Due date must be in the future")
        return v


class BillUpdate(BaseModel):
    """Draft-only edits. Unknown fields are rejected rather than ignored."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=14, decimal_places=2)
    due_date: Optional[datetime] = None
    customer_id: Optional[UUID] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else v


class BillResponse(BaseModel):
    id: UUID
    bill_number: str
    title: str
    description: str
    amount: Decimal
    due_date: datetime
    status: BillStatus
    is_active: bool
    is_in_marketplace: bool
    organization_id: UUID
    customer_id: UUID
    current_owner_id: UUID
    financer_id: Optional[UUID] = None
    financing_percentage: Optional[Decimal] = None
    financed_amount: Decimal
    remaining_amount: Decimal
    days_until_due: int
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    financed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillWithBids(BaseModel):
    bill: BillResponse
    bids: List[BidResponse] = []


class BillStatusStat(BaseModel):
    status: BillStatus
    count: int
    total_amount: Decimal


class BillTotals(BaseModel):
    total_bills: int = 0
    total_amount: Decimal = Decimal("0")
    avg_amount: Decimal = Decimal("0")


class BillStats(BaseModel):
    status_stats: List[BillStatusStat]
    total_stats: BillTotals


class FinancingResult(BaseModel):
    """Outcome of accepting a bid: the winning bid and the financed bill."""
    bid: BidResponse
    bill: BillResponse
