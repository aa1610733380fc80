"""Domain 3: Bid Model"""

from decimal import Decimal

from sqlalchemy import Column, String, DateTime, Numeric, Integer, ForeignKey, Uuid, Index, UniqueConstraint

from app.models.base import BaseModel, enum_type
from app.models.enums import BidStatus


class Bid(BaseModel):
    """
    A financer's offer to advance a percentage of a bill's amount.
    At most one bid exists per (bill, financer) pair.
    """
    __tablename__ = "bids"

    bill_id = Column(Uuid(as_uuid=True), ForeignKey("bills.id", ondelete="CASCADE"), nullable=False)
    financer_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    financing_percentage = Column(Numeric(5, 2), nullable=False)
    bid_amount = Column(Numeric(14, 2), nullable=False)
    status = Column(enum_type(BidStatus, "bid_status"), default=BidStatus.PENDING, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)

    interest = Column(Numeric(5, 2), default=0, nullable=False)
    terms = Column(String(500), nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        UniqueConstraint("bill_id", "financer_id", name="uq_bids_bill_financer"),
        Index("ix_bids_bill_percentage", "bill_id", "financing_percentage"),
        Index("ix_bids_financer_status", "financer_id", "status"),
    )

    @property
    def net_amount(self) -> Decimal:
        """Amount the financer receives after interest."""
        return Decimal(self.bid_amount) * (1 - Decimal(self.interest or 0) / 100)

    def __repr__(self) -> str:
        return f"<Bid {self.financing_percentage}% on {self.bill_id} - {self.status}>"
