"""
Marketplace Service - bid acceptance.

Accepting a bid is the one operation that touches every entity at once: the
accepted bid, its bill, every competing bid and the winning financer's
balance and counters. All of it happens in a single transaction:

    1. lock the bill row, then the bid row (always in that order)
    2. check ownership, then that the bill is unfinanced (this wins over any
       bid-level failure), then that the bid is pending and unexpired
    3. accept the bid and finance the bill
    4. reject the remaining live pending bids on the bill; bids already past
       expires_at are left as they are
    5. debit the financer and bump bid_won / invested

The bill UPDATE is version-guarded, so a concurrent acceptance that slipped
past the row lock (or a backend without SELECT ... FOR UPDATE) fails with
AlreadyFinancedError instead of double-financing the bill.

Funds are checked when a bid is placed or updated, not here. A financer can
spend the same balance on several pending bids; whichever is accepted later
may drive available_funds below zero. This reservation gap is known and left
as is.
"""

import logging
from typing import Dict, Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    InvalidStateError,
    AlreadyFinancedError,
    BidExpiredError,
)
from app.database import atomic
from app.domain import lifecycle
from app.models.bid import Bid
from app.models.enums import BidStatus, BillStatus, StatKind
from app.models.user import User
from app.services.bid_service import BidService
from app.services.bill_service import BillService
from app.services.ledger_service import LedgerService
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)


class MarketplaceService:

    @staticmethod
    async def accept_bid(db: AsyncSession, actor: User, bid_id: UUID) -> Dict[str, Any]:
        now = get_utc_now()
        actor_id = actor.id

        async with atomic(db):
            bid = await BidService.get_bid_by_id(db, bid_id)
            if bid is None:
                raise NotFoundError("bid", bid_id)
            bill = await BillService.get_bill_by_id(db, bid.bill_id, for_update=True)
            if bill is None:
                raise NotFoundError("bill", bid.bill_id)
            bid = await BidService.load_bid(db, bid_id, for_update=True)

            if bill.organization_id != actor_id:
                raise ForbiddenError("You can only accept bids on your own bills", bill_id=str(bill.id))
            if bill.financer_id is not None:
                raise AlreadyFinancedError(bill.id)
            if bid.status != BidStatus.PENDING:
                raise InvalidStateError("Bid is no longer available", status=bid.status.value)
            if lifecycle.is_bid_expired(bid, now):
                raise BidExpiredError(bid.id)
            if lifecycle.effective_bill_status(bill, now) != BillStatus.SENT:
                raise InvalidStateError("Bill is not open for financing", status=bill.status.value)

            bid.status = BidStatus.ACCEPTED
            bid.accepted_at = now

            bill.financer_id = bid.financer_id
            bill.current_owner_id = bid.financer_id
            bill.status = BillStatus.FINANCED
            bill.financing_percentage = bid.financing_percentage
            bill.financed_amount = bid.bid_amount
            bill.is_in_marketplace = False
            bill.financed_at = now

            try:
                await db.flush()
            except StaleDataError:
                raise AlreadyFinancedError(bill.id)

            await db.execute(
                update(Bid)
                .where(
                    Bid.bill_id == bill.id,
                    Bid.status == BidStatus.PENDING,
                    Bid.expires_at > now,
                    Bid.id != bid.id,
                )
                .values(status=BidStatus.REJECTED, version=Bid.version + 1)
                .execution_options(synchronize_session="fetch")
            )

            await LedgerService.debit_funds(db, bid.financer_id, bid.bid_amount)
            await LedgerService.update_stats(db, bid.financer_id, StatKind.BID_WON)
            await LedgerService.update_stats(db, bid.financer_id, StatKind.INVESTED, bid.bid_amount)

        logger.info(
            "bid_accepted",
            extra={
                "bid_id": str(bid.id),
                "bill_id": str(bill.id),
                "financer_id": str(bid.financer_id),
                "financed_amount": str(bill.financed_amount),
                "actor_id": str(actor_id),
            },
        )
        return {"bid": bid, "bill": bill}
