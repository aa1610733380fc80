"""
Marketplace error taxonomy.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer maps it to. Errors are raised before or instead of committing, so a
failed operation never leaves partial state behind. Nothing here retries;
retry policy belongs to the caller.
"""

from typing import Any


class MarketplaceError(Exception):
    """Base exception for all lifecycle and matching failures."""

    code: str = "MARKETPLACE_ERROR"
    status_code: int = 400

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)


class ForbiddenError(MarketplaceError):
    """Role or ownership violation."""

    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(MarketplaceError):
    """Missing bill, bid or user."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"No {resource} found with ID {resource_id}", resource_id=str(resource_id))


class InvalidReferenceError(MarketplaceError):
    """A referenced entity exists but cannot play the required role."""

    code = "INVALID_REFERENCE"
    status_code = 400


class InvalidStateError(MarketplaceError):
    """Requested transition is not allowed from the current lifecycle stage."""

    code = "INVALID_STATE"
    status_code = 409


class AlreadyFinancedError(MarketplaceError):
    """The bill already has a financer."""

    code = "ALREADY_FINANCED"
    status_code = 409

    def __init__(self, bill_id: Any):
        self.bill_id = bill_id
        super().__init__("Bill has already been financed", bill_id=str(bill_id))


class BidExpiredError(MarketplaceError):
    """The bid's expiry time has passed."""

    code = "BID_EXPIRED"
    status_code = 409

    def __init__(self, bid_id: Any):
        self.bid_id = bid_id
        super().__init__("Bid has expired", bid_id=str(bid_id))


class DuplicateBidError(MarketplaceError):
    """The financer already has a bid on this bill."""

    code = "DUPLICATE_BID"
    status_code = 409

    def __init__(self, bill_id: Any, financer_id: Any):
        self.bill_id = bill_id
        self.financer_id = financer_id
        super().__init__(
            "You have already placed a bid on this bill",
            bill_id=str(bill_id),
            financer_id=str(financer_id),
        )


class InsufficientFundsError(MarketplaceError):
    """Bid amount exceeds the financer's available funds."""

    code = "INSUFFICIENT_FUNDS"
    status_code = 400

    def __init__(self, required: Any, available: Any):
        self.required = required
        self.available = available
        super().__init__(
            "Insufficient funds to place this bid",
            required=str(required),
            available=str(available),
        )


class BillValidationError(MarketplaceError):
    """Field constraint violation (percentage range, positive amounts, future due dates)."""

    code = "VALIDATION_ERROR"
    status_code = 422
