"""Centralized Enum Definitions"""

import enum


# Domain 1: Users
class UserRole(str, enum.Enum):
    """Account roles; fixed for the lifetime of an account"""
    ORGANIZATION = "organization"
    CUSTOMER = "customer"
    FINANCER = "financer"


class StatKind(str, enum.Enum):
    """Ledger counters accumulated on user_stats"""
    BILL_CREATED = "bill_created"
    BILL_SENT = "bill_sent"
    REVENUE = "revenue"
    BILL_RECEIVED = "bill_received"
    BILL_PAID = "bill_paid"
    AMOUNT_PAID = "amount_paid"
    BID_PLACED = "bid_placed"
    BID_WON = "bid_won"
    INVESTED = "invested"
    RETURNS = "returns"


# Domain 2: Bills
class BillStatus(str, enum.Enum):
    """Bill lifecycle status"""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    FINANCED = "financed"


# Domain 3: Bids
class BidStatus(str, enum.Enum):
    """Bid lifecycle status"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
