"""Bid Service - placing, updating, cancelling and ranking bids"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple, Sequence
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    InvalidStateError,
    AlreadyFinancedError,
    BidExpiredError,
    DuplicateBidError,
    InsufficientFundsError,
    BillValidationError,
)
from app.database import atomic
from app.domain import lifecycle
from app.models.bid import Bid
from app.models.billing import Bill
from app.models.enums import BidStatus, BillStatus, StatKind, UserRole
from app.models.user import User
from app.schemas.bid import BidCreate, BidUpdate
from app.services.bill_service import BillService
from app.services.ledger_service import LedgerService
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)

# Highest percentage first; equal percentages go to the earliest bid
RANKING = (Bid.financing_percentage.desc(), Bid.created_at.asc(), Bid.id.asc())


class BidService:

    @staticmethod
    def apply_expiry(bid: Bid, now: datetime) -> bool:
        """Mark a pending bid past expires_at as expired, in memory."""
        if lifecycle.effective_bid_status(bid, now) == BidStatus.EXPIRED and bid.status == BidStatus.PENDING:
            bid.status = BidStatus.EXPIRED
            return True
        return False

    @staticmethod
    async def get_bid_by_id(db: AsyncSession, bid_id: UUID, for_update: bool = False) -> Optional[Bid]:
        stmt = select(Bid).where(Bid.id == bid_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def load_bid(db: AsyncSession, bid_id: UUID, for_update: bool = False) -> Bid:
        bid = await BidService.get_bid_by_id(db, bid_id, for_update=for_update)
        if bid is None:
            raise NotFoundError("bid", bid_id)
        return bid

    @staticmethod
    async def get_bid_for_financer(db: AsyncSession, bill_id: UUID, financer_id: UUID) -> Optional[Bid]:
        result = await db.execute(
            select(Bid).where(Bid.bill_id == bill_id, Bid.financer_id == financer_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _require_funds(db: AsyncSession, financer_id: UUID, bid_amount: Decimal) -> None:
        available = await LedgerService.get_available_funds(db, financer_id)
        if bid_amount > available:
            raise InsufficientFundsError(required=bid_amount, available=available)

    @staticmethod
    async def place_bid(db: AsyncSession, actor: User, data: BidCreate) -> Bid:
        """
        Create a pending bid valid for the configured expiry window.

        The (bill, financer) unique constraint is the authoritative duplicate
        guard: the pre-check gives a clean error in the common case and a
        lost insert race is reported the same way.
        """
        if actor.role != UserRole.FINANCER:
            raise ForbiddenError("Only financers can place bids")

        pct = lifecycle.validate_financing_percentage(data.financing_percentage)
        now = get_utc_now()
        actor_id = actor.id

        async with atomic(db):
            bill = await BillService.get_bill_by_id(db, data.bill_id)
            if bill is None:
                raise NotFoundError("bill", data.bill_id)
            if bill.financer_id is not None:
                raise AlreadyFinancedError(bill.id)
            if not bill.is_in_marketplace or bill.status != BillStatus.SENT:
                raise InvalidStateError("Bill is not available for financing", status=bill.status.value)
            if bill.due_date <= now:
                raise InvalidStateError("Cannot bid on overdue bills", bill_id=str(bill.id))

            bid_amount = lifecycle.compute_bid_amount(bill.amount, pct)
            await BidService._require_funds(db, actor_id, bid_amount)

            if await BidService.get_bid_for_financer(db, bill.id, actor_id) is not None:
                raise DuplicateBidError(bill.id, actor_id)

            bid = Bid(
                bill_id=bill.id,
                financer_id=actor_id,
                financing_percentage=pct,
                bid_amount=bid_amount,
                status=BidStatus.PENDING,
                expires_at=lifecycle.bid_expiry(now),
                interest=data.interest,
                terms=data.terms,
            )
            db.add(bid)
            try:
                await db.flush()
            except IntegrityError:
                raise DuplicateBidError(data.bill_id, actor_id)
            await LedgerService.update_stats(db, actor_id, StatKind.BID_PLACED)

        logger.info(
            "bid_placed",
            extra={"bid_id": str(bid.id), "bill_id": str(bid.bill_id), "actor_id": str(actor_id), "bid_amount": str(bid_amount)},
        )
        return bid

    @staticmethod
    def _require_actionable(bid: Bid, now: datetime, verb: str) -> None:
        if bid.status != BidStatus.PENDING:
            raise InvalidStateError(f"Only pending bids can be {verb}", status=bid.status.value)
        if lifecycle.is_bid_expired(bid, now):
            raise BidExpiredError(bid.id)

    @staticmethod
    async def update_bid(db: AsyncSession, actor: User, bid_id: UUID, data: BidUpdate) -> Bid:
        patch = data.model_dump(exclude_unset=True)
        if patch.get("financing_percentage", 0) is None or patch.get("interest", 0) is None:
            raise BillValidationError("Bid fields cannot be cleared", fields=sorted(patch))

        now = get_utc_now()
        async with atomic(db):
            bid = await BidService.load_bid(db, bid_id, for_update=True)
            if bid.financer_id != actor.id:
                raise ForbiddenError("You can only update your own bids", bid_id=str(bid.id))
            BidService._require_actionable(bid, now, "updated")
            lifecycle.assert_mutable("bid", bid.status, patch.keys(), lifecycle.BID_MUTABLE_FIELDS)

            bill = await BillService.get_bill_by_id(db, bid.bill_id)
            if bill is None:
                raise NotFoundError("bill", bid.bill_id)
            if bill.financer_id is not None:
                raise AlreadyFinancedError(bill.id)

            if "financing_percentage" in patch:
                pct = lifecycle.validate_financing_percentage(patch["financing_percentage"])
                new_amount = lifecycle.compute_bid_amount(bill.amount, pct)
                await BidService._require_funds(db, bid.financer_id, new_amount)
                bid.financing_percentage = pct
                bid.bid_amount = new_amount
            if "terms" in patch:
                bid.terms = patch["terms"]
            if "interest" in patch:
                bid.interest = patch["interest"]

            try:
                await db.flush()
            except StaleDataError:
                raise InvalidStateError("Bid was modified concurrently; reload and retry", bid_id=str(bid_id))

        logger.info("bid_updated", extra={"bid_id": str(bid.id), "fields": sorted(patch)})
        return bid

    @staticmethod
    async def cancel_bid(db: AsyncSession, actor: User, bid_id: UUID) -> None:
        """Withdraw a pending bid. The row is deleted; no audit trail is kept."""
        async with atomic(db):
            bid = await BidService.load_bid(db, bid_id, for_update=True)
            if bid.financer_id != actor.id:
                raise ForbiddenError("You can only cancel your own bids", bid_id=str(bid.id))
            BidService._require_actionable(bid, get_utc_now(), "cancelled")
            await db.delete(bid)
            try:
                await db.flush()
            except StaleDataError:
                raise InvalidStateError("Bid was modified concurrently; reload and retry", bid_id=str(bid_id))
        logger.info("bid_cancelled", extra={"bid_id": str(bid_id), "actor_id": str(actor.id)})

    @staticmethod
    async def get_bid(db: AsyncSession, actor: User, bid_id: UUID) -> Bid:
        bid = await BidService.load_bid(db, bid_id)
        if bid.financer_id != actor.id:
            bill = await BillService.get_bill_by_id(db, bid.bill_id)
            if bill is None or bill.organization_id != actor.id:
                raise ForbiddenError("You do not have permission to access this bid", bid_id=str(bid.id))
        BidService.apply_expiry(bid, get_utc_now())
        return bid

    @staticmethod
    async def list_my_bids(
        db: AsyncSession,
        actor: User,
        status: Optional[BidStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Bid], int]:
        if actor.role != UserRole.FINANCER:
            raise ForbiddenError("Only financers can access bids")

        now = get_utc_now()
        criteria = [Bid.financer_id == actor.id]
        if status == BidStatus.PENDING:
            criteria += [Bid.status == BidStatus.PENDING, Bid.expires_at > now]
        elif status == BidStatus.EXPIRED:
            criteria.append(
                (Bid.status == BidStatus.EXPIRED)
                | ((Bid.status == BidStatus.PENDING) & (Bid.expires_at <= now))
            )
        elif status is not None:
            criteria.append(Bid.status == status)

        total = await db.scalar(select(func.count(Bid.id)).where(*criteria))
        result = await db.execute(
            select(Bid)
            .where(*criteria)
            .order_by(Bid.created_at.desc(), Bid.id)
            .offset(skip)
            .limit(limit)
        )
        bids = list(result.scalars().all())
        for bid in bids:
            BidService.apply_expiry(bid, now)
        return bids, total or 0

    @staticmethod
    async def visible_bids_for_bill(db: AsyncSession, actor: User, bill: Bill) -> List[Bid]:
        """All bids for the bill's organization; a financer sees only their own."""
        criteria = [Bid.bill_id == bill.id]
        if bill.organization_id != actor.id:
            criteria.append(Bid.financer_id == actor.id)
        result = await db.execute(
            select(Bid)
            .where(*criteria)
            .order_by(Bid.financing_percentage.desc(), Bid.created_at.desc())
        )
        bids = list(result.scalars().all())
        now = get_utc_now()
        for bid in bids:
            BidService.apply_expiry(bid, now)
        return bids

    @staticmethod
    async def list_bids_for_bill(db: AsyncSession, actor: User, bill_id: UUID) -> List[Bid]:
        bill = await BillService.get_bill_by_id(db, bill_id)
        if bill is None:
            raise NotFoundError("bill", bill_id)
        if bill.organization_id != actor.id and actor.role != UserRole.FINANCER:
            raise ForbiddenError("You do not have permission to view these bids", bill_id=str(bill.id))
        return await BidService.visible_bids_for_bill(db, actor, bill)

    @staticmethod
    def active_criteria(now: datetime) -> list:
        """Pending bids whose expiry is still ahead; stored status alone is not trusted."""
        return [Bid.status == BidStatus.PENDING, Bid.expires_at > now]

    @staticmethod
    async def get_active_bids(db: AsyncSession, bill_id: UUID, now: Optional[datetime] = None) -> List[Bid]:
        now = now or get_utc_now()
        result = await db.execute(
            select(Bid)
            .where(Bid.bill_id == bill_id, *BidService.active_criteria(now))
            .order_by(*RANKING)
        )
        return list(result.scalars().all())

    @staticmethod
    async def find_highest_bid(db: AsyncSession, bill_id: UUID, now: Optional[datetime] = None) -> Optional[Bid]:
        """Best active bid: highest percentage, ties to the earliest created."""
        now = now or get_utc_now()
        result = await db.execute(
            select(Bid)
            .where(Bid.bill_id == bill_id, *BidService.active_criteria(now))
            .order_by(*RANKING)
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def active_bids_by_bill(
        db: AsyncSession,
        bill_ids: Sequence[UUID],
        now: datetime,
    ) -> Dict[UUID, List[Bid]]:
        if not bill_ids:
            return {}
        result = await db.execute(
            select(Bid)
            .where(Bid.bill_id.in_(bill_ids), *BidService.active_criteria(now))
            .order_by(Bid.bill_id, *RANKING)
        )
        grouped: Dict[UUID, List[Bid]] = defaultdict(list)
        for bid in result.scalars().all():
            grouped[bid.bill_id].append(bid)
        return dict(grouped)

    @staticmethod
    async def get_highest_bid(db: AsyncSession, actor: User, bill_id: UUID) -> Optional[Bid]:
        bill = await BillService.get_bill_by_id(db, bill_id)
        if bill is None:
            raise NotFoundError("bill", bill_id)
        if bill.organization_id != actor.id and actor.role != UserRole.FINANCER:
            raise ForbiddenError("You do not have permission to view bids for this bill", bill_id=str(bill.id))
        return await BidService.find_highest_bid(db, bill_id)

    @staticmethod
    async def bid_stats(db: AsyncSession, actor: User) -> Dict[str, Any]:
        if actor.role != UserRole.FINANCER:
            raise ForbiddenError("Only financers can access bid statistics")

        rows = await db.execute(
            select(
                Bid.status,
                func.count(Bid.id),
                func.coalesce(func.sum(Bid.bid_amount), 0),
                func.avg(Bid.financing_percentage),
            )
            .where(Bid.financer_id == actor.id)
            .group_by(Bid.status)
        )
        status_stats = [
            {
                "status": status,
                "count": count,
                "total_amount": lifecycle.to_cents(total),
                "avg_percentage": lifecycle.to_cents(avg_pct),
            }
            for status, count, total, avg_pct in rows.all()
        ]

        total_row = (await db.execute(
            select(
                func.count(Bid.id),
                func.coalesce(func.sum(Bid.bid_amount), 0),
                func.avg(Bid.bid_amount),
                func.max(Bid.financing_percentage),
                func.min(Bid.financing_percentage),
            ).where(Bid.financer_id == actor.id)
        )).one()
        return {
            "status_stats": status_stats,
            "total_stats": {
                "total_bids": total_row[0],
                "total_bid_amount": lifecycle.to_cents(total_row[1]),
                "avg_bid_amount": lifecycle.to_cents(total_row[2]),
                "max_percentage": lifecycle.to_cents(total_row[3]),
                "min_percentage": lifecycle.to_cents(total_row[4]),
            },
        }
