"""
Pure lifecycle rules for bills and bids.

Nothing in this module touches the database. Services call these functions
at every read and write boundary so that derived state (overdue bills,
expired bids) never depends on a background job having run.
"""

import secrets
import string
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from app.config import settings
from app.core.exceptions import BillValidationError, InvalidStateError
from app.models.enums import BillStatus, BidStatus

_BASE36 = string.digits + string.ascii_lowercase
_CENTS = Decimal("0.01")

# Statuses from which a customer may pay
PAYABLE_STATUSES = frozenset({BillStatus.SENT, BillStatus.OVERDUE, BillStatus.FINANCED})

# Fields a caller may change, keyed by the entity's current status.
# A status missing from the map means the entity is frozen in that status.
BILL_MUTABLE_FIELDS = {
    BillStatus.DRAFT: frozenset({"title", "description", "amount", "due_date", "customer_id"}),
}
BID_MUTABLE_FIELDS = {
    BidStatus.PENDING: frozenset({"financing_percentage", "terms", "interest"}),
}


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding expects a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_bill_number(now: Optional[datetime] = None) -> str:
    """
    Human-readable bill number: BILL-<base36 epoch millis>-<6 random base36>, uppercased.

    The timestamp part orders numbers roughly by creation; the random suffix
    makes collisions within the same millisecond improbable. The unique
    index on bills.bill_number remains the authoritative guard.
    """
    if now is None:
        millis = int(time.time() * 1000)
    else:
        # naive datetimes in this codebase are UTC
        millis = int(now.replace(tzinfo=now.tzinfo or timezone.utc).timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"BILL-{to_base36(millis)}-{suffix}".upper()


def compute_bid_amount(bill_amount, financing_percentage) -> Decimal:
    """bill amount x percentage / 100, rounded half-up to cents."""
    amount = Decimal(bill_amount) * Decimal(financing_percentage) / Decimal(100)
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def validate_financing_percentage(value) -> Decimal:
    pct = Decimal(value)
    low = settings.MIN_FINANCING_PERCENTAGE
    high = settings.MAX_FINANCING_PERCENTAGE
    if not low <= pct <= high:
        raise BillValidationError(
            f"Financing percentage must be between {low} and {high}",
            field="financing_percentage",
        )
    return pct


def validate_bill_terms(amount, due_date: Optional[datetime], now: datetime) -> None:
    """A due date of None is left unchecked (edits that keep the stored date)."""
    if Decimal(amount) <= 0:
        raise BillValidationError("Amount must be positive", field="amount")
    if due_date is not None and due_date <= now:
        raise BillValidationError("Due date must be in the future", field="due_date")


def bid_expiry(now: datetime) -> datetime:
    return now + timedelta(hours=settings.BID_EXPIRY_HOURS)


def effective_bill_status(bill, now: datetime) -> BillStatus:
    """A sent bill whose due date has passed is overdue, whatever storage says."""
    if bill.status == BillStatus.SENT and bill.due_date < now:
        return BillStatus.OVERDUE
    return bill.status


def is_marketplace_eligible(bill, now: datetime) -> bool:
    return (
        bool(bill.is_in_marketplace)
        and effective_bill_status(bill, now) == BillStatus.SENT
        and bill.due_date > now
        and bill.financer_id is None
    )


def is_bid_expired(bid, now: datetime) -> bool:
    return bid.expires_at <= now


def effective_bid_status(bid, now: datetime) -> BidStatus:
    """A pending bid past expires_at is expired, whatever storage says."""
    if bid.status == BidStatus.PENDING and is_bid_expired(bid, now):
        return BidStatus.EXPIRED
    return bid.status


def is_bid_active(bid, now: datetime) -> bool:
    return effective_bid_status(bid, now) == BidStatus.PENDING


def assert_mutable(entity: str, status, fields: Iterable[str], schema: dict) -> None:
    """
    Reject an update touching fields not mutable in the entity's current status.

    Raises InvalidStateError when nothing is mutable in this status, and
    BillValidationError when specific fields are outside the allowed set.
    """
    allowed = schema.get(status)
    if allowed is None:
        raise InvalidStateError(
            f"{entity.capitalize()} cannot be modified while {status.value}",
            status=status.value,
        )
    rejected = sorted(set(fields) - allowed)
    if rejected:
        raise BillValidationError(
            f"Fields not updatable on a {status.value} {entity}: {', '.join(rejected)}",
            fields=rejected,
        )


def to_cents(value) -> Decimal:
    """Normalize a numeric aggregate (Decimal, float or None) to cents."""
    return Decimal(str(value or 0)).quantize(_CENTS, rounding=ROUND_HALF_UP)
