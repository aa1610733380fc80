"""Domain 1: User (actor) Model and ledger counters"""

from sqlalchemy import Column, String, Numeric, Integer, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.base import BaseModel, StatusMixin, enum_type
from app.models.enums import UserRole, StatKind


class User(BaseModel, StatusMixin):
    """
    Marketplace account for all roles (Organization, Customer, Financer).
    The role is chosen at registration and never changes afterwards.
    """
    __tablename__ = "users"

    # Authentication
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)

    # Profile
    name = Column(String(255), nullable=False)
    company_name = Column(String(255), nullable=True)

    # Role & Permissions (RBAC)
    role = Column(enum_type(UserRole, "user_role"), nullable=False, index=True)

    # Financer balance; only meaningful for financers
    available_funds = Column(Numeric(14, 2), default=0, nullable=False)

    stats = relationship(
        "UserStats",
        uselist=False,
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def is_organization(self) -> bool:
        return self.role == UserRole.ORGANIZATION

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER

    @property
    def is_financer(self) -> bool:
        return self.role == UserRole.FINANCER

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class UserStats(Base):
    """
    Monotonic per-actor counters. Only ever incremented through
    LedgerService inside the transaction of the transition that caused it.
    """
    __tablename__ = "user_stats"

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    # Organization
    total_bills_created = Column(Integer, default=0, nullable=False)
    total_bills_sent = Column(Integer, default=0, nullable=False)
    total_revenue = Column(Numeric(14, 2), default=0, nullable=False)

    # Customer
    total_bills_received = Column(Integer, default=0, nullable=False)
    total_bills_paid = Column(Integer, default=0, nullable=False)
    total_amount_paid = Column(Numeric(14, 2), default=0, nullable=False)

    # Financer
    total_bids_placed = Column(Integer, default=0, nullable=False)
    total_bids_won = Column(Integer, default=0, nullable=False)
    total_investment_amount = Column(Numeric(14, 2), default=0, nullable=False)
    total_returns = Column(Numeric(14, 2), default=0, nullable=False)

    user = relationship("User", back_populates="stats")

    # StatKind -> counter column
    COLUMNS = {
        StatKind.BILL_CREATED: "total_bills_created",
        StatKind.BILL_SENT: "total_bills_sent",
        StatKind.REVENUE: "total_revenue",
        StatKind.BILL_RECEIVED: "total_bills_received",
        StatKind.BILL_PAID: "total_bills_paid",
        StatKind.AMOUNT_PAID: "total_amount_paid",
        StatKind.BID_PLACED: "total_bids_placed",
        StatKind.BID_WON: "total_bids_won",
        StatKind.INVESTED: "total_investment_amount",
        StatKind.RETURNS: "total_returns",
    }

    def __repr__(self) -> str:
        return f"<UserStats {self.user_id}>"
