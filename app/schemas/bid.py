"""Bid Pydantic Schemas"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from app.config import settings
from app.models.enums import BidStatus

PERCENTAGE = dict(
    ge=settings.MIN_FINANCING_PERCENTAGE,
    le=settings.MAX_FINANCING_PERCENTAGE,
    max_digits=5,
    decimal_places=2,
)


class BidCreate(BaseModel):
    bill_id: UUID
    financing_percentage: Decimal = Field(..., description="Share of the bill amount advanced", **PERCENTAGE)
    terms: Optional[str] = Field(None, max_length=settings.BID_TERMS_MAX_LENGTH)
    interest: Decimal = Field(Decimal("0"), ge=0, max_digits=5, decimal_places=2)


class BidUpdate(BaseModel):
    """Pending-bid edits. Unknown fields are rejected rather than ignored."""
    financing_percentage: Optional[Decimal] = Field(None, **PERCENTAGE)
    terms: Optional[str] = Field(None, max_length=settings.BID_TERMS_MAX_LENGTH)
    interest: Optional[Decimal] = Field(None, ge=0, max_digits=5, decimal_places=2)

    model_config = ConfigDict(extra="forbid")


class BidResponse(BaseModel):
    id: UUID
    bill_id: UUID
    financer_id: UUID
    financing_percentage: Decimal
    bid_amount: Decimal
    net_amount: Decimal
    status: BidStatus
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    interest: Decimal
    terms: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BidStatusStat(BaseModel):
    status: BidStatus
    count: int
    total_amount: Decimal
    avg_percentage: Decimal


class BidTotals(BaseModel):
    total_bids: int = 0
    total_bid_amount: Decimal = Decimal("0")
    avg_bid_amount: Decimal = Decimal("0")
    max_percentage: Decimal = Decimal("0")
    min_percentage: Decimal = Decimal("0")


class BidStats(BaseModel):
    status_stats: List[BidStatusStat]
    total_stats: BidTotals
