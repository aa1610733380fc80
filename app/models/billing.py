"""Domain 2: Bill Model"""

from decimal import Decimal

from sqlalchemy import Column, String, Text, DateTime, Numeric, Boolean, Integer, ForeignKey, Uuid, Index

from app.models.base import BaseModel, StatusMixin, enum_type
from app.models.enums import BillStatus
from app.utils.time import get_utc_now, days_until


class Bill(BaseModel, StatusMixin):
    """
    Invoice issued by an organization to a customer.
    Can be listed in the marketplace and financed by at most one financer.
    """
    __tablename__ = "bills"

    bill_number = Column(String(40), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    due_date = Column(DateTime, nullable=False)
    status = Column(enum_type(BillStatus, "bill_status"), default=BillStatus.DRAFT, nullable=False, index=True)

    # Parties
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    current_owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    # Financing
    is_in_marketplace = Column(Boolean, default=False, nullable=False)
    financing_percentage = Column(Numeric(5, 2), nullable=True)
    financed_amount = Column(Numeric(14, 2), default=0, nullable=False)
    financer_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True, index=True)

    # Lifecycle timestamps
    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    financed_at = Column(DateTime, nullable=True)

    # Optimistic concurrency guard; every ORM UPDATE checks and bumps it
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("ix_bills_organization_status", "organization_id", "status"),
        Index("ix_bills_customer_status", "customer_id", "status"),
        Index("ix_bills_marketplace_status", "is_in_marketplace", "status"),
    )

    @property
    def remaining_amount(self) -> Decimal:
        return Decimal(self.amount) - Decimal(self.financed_amount or 0)

    @property
    def days_until_due(self) -> int:
        return days_until(self.due_date, get_utc_now())

    def __repr__(self) -> str:
        return f"<Bill {self.bill_number} {self.amount} - {self.status}>"
