"""Models Package - Export all models for easy imports"""

from app.models.base import BaseModel, StatusMixin
from app.models.enums import UserRole, StatKind, BillStatus, BidStatus
from app.models.user import User, UserStats
from app.models.billing import Bill
from app.models.bid import Bid


__all__ = [
    # Base classes
    "BaseModel",
    "StatusMixin",

    # Enums
    "UserRole",
    "StatKind",
    "BillStatus",
    "BidStatus",

    # Users
    "User",
    "UserStats",

    # Marketplace
    "Bill",
    "Bid",
]
