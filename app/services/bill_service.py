"""Bill Service - bill lifecycle (draft -> sent -> financed/overdue -> paid)"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple
from uuid import UUID

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    InvalidReferenceError,
    InvalidStateError,
    BillValidationError,
)
from app.database import atomic
from app.domain import lifecycle
from app.models.billing import Bill
from app.models.enums import BillStatus, StatKind, UserRole
from app.models.user import User
from app.schemas.bill import BillCreate, BillUpdate
from app.services.ledger_service import LedgerService
from app.services.user_service import UserService
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)


class BillService:

    @staticmethod
    def apply_effective_status(bill: Bill, now: datetime) -> bool:
        """
        Move a sent bill past its due date to overdue, in memory.

        The change is persisted with whatever transaction the caller commits;
        a failed operation rolls it back together with everything else.
        Returns True when the bill changed.
        """
        if bill.status == BillStatus.SENT and lifecycle.effective_bill_status(bill, now) == BillStatus.OVERDUE:
            bill.status = BillStatus.OVERDUE
            bill.is_in_marketplace = False
            logger.info("bill_overdue", extra={"bill_id": str(bill.id)})
            return True
        return False

    @staticmethod
    async def mark_overdue_bills(db: AsyncSession, now: datetime, *criteria) -> None:
        """Persist the overdue transition for every sent, past-due bill matching criteria."""
        await db.execute(
            update(Bill)
            .where(Bill.status == BillStatus.SENT, Bill.due_date < now, *criteria)
            .values(status=BillStatus.OVERDUE, is_in_marketplace=False, version=Bill.version + 1)
            .execution_options(synchronize_session="fetch")
        )

    @staticmethod
    async def get_bill_by_id(
        db: AsyncSession,
        bill_id: UUID,
        for_update: bool = False,
    ) -> Optional[Bill]:
        stmt = select(Bill).where(Bill.id == bill_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def load_bill(
        db: AsyncSession,
        bill_id: UUID,
        now: datetime,
        for_update: bool = False,
    ) -> Bill:
        """Fetch a bill with its effective status applied; NotFoundError if missing."""
        bill = await BillService.get_bill_by_id(db, bill_id, for_update=for_update)
        if bill is None:
            raise NotFoundError("bill", bill_id)
        BillService.apply_effective_status(bill, now)
        return bill

    @staticmethod
    async def flush_guarded(db: AsyncSession, bill_id: UUID) -> None:
        try:
            await db.flush()
        except StaleDataError:
            raise InvalidStateError("Bill was modified concurrently; reload and retry", bill_id=str(bill_id))

    @staticmethod
    async def _require_customer(db: AsyncSession, customer_id: UUID) -> User:
        customer = await UserService.get_user_by_id(db, customer_id)
        if not customer or customer.role != UserRole.CUSTOMER or not customer.is_active:
            raise InvalidReferenceError("Invalid customer ID", customer_id=str(customer_id))
        return customer

    @staticmethod
    def _require_owner(bill: Bill, actor: User, action: str) -> None:
        if bill.organization_id != actor.id:
            raise ForbiddenError(f"You can only {action} your own bills", bill_id=str(bill.id))

    @staticmethod
    def _require_draft(bill: Bill, message: str) -> None:
        if bill.status != BillStatus.DRAFT:
            raise InvalidStateError(message, status=bill.status.value)

    @staticmethod
    def role_scope(actor: User):
        """Filter selecting the bills an actor participates in."""
        if actor.role == UserRole.ORGANIZATION:
            return Bill.organization_id == actor.id
        if actor.role == UserRole.CUSTOMER:
            return Bill.customer_id == actor.id
        return Bill.financer_id == actor.id

    @staticmethod
    async def create_bill(db: AsyncSession, actor: User, data: BillCreate) -> Bill:
        if actor.role != UserRole.ORGANIZATION:
            raise ForbiddenError("Only organizations can create bills")

        now = get_utc_now()
        lifecycle.validate_bill_terms(data.amount, data.due_date, now)
        actor_id = actor.id

        async with atomic(db):
            await BillService._require_customer(db, data.customer_id)
            bill = Bill(
                bill_number=lifecycle.generate_bill_number(now),
                title=data.title,
                description=data.description,
                amount=data.amount,
                due_date=data.due_date,
                status=BillStatus.DRAFT,
                organization_id=actor_id,
                customer_id=data.customer_id,
                current_owner_id=actor_id,
                is_in_marketplace=False,
                financed_amount=Decimal("0"),
            )
            db.add(bill)
            await db.flush()
            await LedgerService.update_stats(db, actor_id, StatKind.BILL_CREATED)

        logger.info("bill_created", extra={"bill_id": str(bill.id), "actor_id": str(actor_id)})
        return bill

    @staticmethod
    async def send_bill(db: AsyncSession, actor: User, bill_id: UUID) -> Bill:
        now = get_utc_now()
        async with atomic(db):
            bill = await BillService.load_bill(db, bill_id, now, for_update=True)
            BillService._require_owner(bill, actor, "send")
            BillService._require_draft(bill, "Bill has already been sent")
            bill.status = BillStatus.SENT
            bill.sent_at = now
            bill.is_in_marketplace = True
            # a draft sent after its due date goes straight to overdue
            BillService.apply_effective_status(bill, now)
            await BillService.flush_guarded(db, bill.id)

            await LedgerService.update_stats(db, bill.organization_id, StatKind.BILL_SENT)
            await LedgerService.update_stats(db, bill.customer_id, StatKind.BILL_RECEIVED)

        logger.info("bill_sent", extra={"bill_id": str(bill.id), "actor_id": str(bill.organization_id)})
        return bill

    @staticmethod
    async def pay_bill(db: AsyncSession, actor: User, bill_id: UUID) -> Bill:
        """
        Customer settles the bill. Only status and ledger counters change;
        no money moves. The current owner is credited: an organization earns
        the full amount as revenue, a financer earns amount - financed_amount
        as returns.
        """
        now = get_utc_now()
        async with atomic(db):
            bill = await BillService.load_bill(db, bill_id, now, for_update=True)
            if bill.customer_id != actor.id:
                raise ForbiddenError("You can only pay your own bills", bill_id=str(bill.id))
            if bill.status == BillStatus.PAID:
                raise InvalidStateError("Bill has already been paid", status=bill.status.value)
            if bill.status not in lifecycle.PAYABLE_STATUSES:
                raise InvalidStateError("Bill cannot be paid in current status", status=bill.status.value)

            bill.status = BillStatus.PAID
            bill.paid_at = now
            bill.is_active = False
            bill.is_in_marketplace = False
            await BillService.flush_guarded(db, bill.id)

            amount = Decimal(bill.amount)
            await LedgerService.update_stats(db, bill.customer_id, StatKind.BILL_PAID)
            await LedgerService.update_stats(db, bill.customer_id, StatKind.AMOUNT_PAID, amount)

            owner = await UserService.get_user_by_id(db, bill.current_owner_id)
            if owner is None:
                raise NotFoundError("user", bill.current_owner_id)
            if owner.role == UserRole.ORGANIZATION:
                await LedgerService.update_stats(db, owner.id, StatKind.REVENUE, amount)
            elif owner.role == UserRole.FINANCER:
                returns = amount - Decimal(bill.financed_amount or 0)
                await LedgerService.update_stats(db, owner.id, StatKind.RETURNS, returns)

        logger.info(
            "bill_paid",
            extra={"bill_id": str(bill.id), "actor_id": str(bill.customer_id), "owner_id": str(bill.current_owner_id)},
        )
        return bill

    @staticmethod
    async def update_bill(db: AsyncSession, actor: User, bill_id: UUID, data: BillUpdate) -> Bill:
        patch = data.model_dump(exclude_unset=True)
        if any(value is None for value in patch.values()):
            raise BillValidationError("Bill fields cannot be cleared", fields=sorted(patch))

        now = get_utc_now()
        async with atomic(db):
            bill = await BillService.load_bill(db, bill_id, now, for_update=True)
            BillService._require_owner(bill, actor, "update")
            BillService._require_draft(bill, "Only draft bills can be updated")
            lifecycle.assert_mutable("bill", bill.status, patch.keys(), lifecycle.BILL_MUTABLE_FIELDS)

            lifecycle.validate_bill_terms(
                patch.get("amount", bill.amount),
                patch.get("due_date"),
                now,
            )
            if "customer_id" in patch:
                await BillService._require_customer(db, patch["customer_id"])

            for field, value in patch.items():
                setattr(bill, field, value)
            await BillService.flush_guarded(db, bill.id)

        logger.info("bill_updated", extra={"bill_id": str(bill.id), "fields": sorted(patch)})
        return bill

    @staticmethod
    async def delete_bill(db: AsyncSession, actor: User, bill_id: UUID) -> None:
        now = get_utc_now()
        async with atomic(db):
            bill = await BillService.load_bill(db, bill_id, now, for_update=True)
            BillService._require_owner(bill, actor, "delete")
            BillService._require_draft(bill, "Only draft bills can be deleted")
            await db.delete(bill)
        logger.info("bill_deleted", extra={"bill_id": str(bill_id), "actor_id": str(actor.id)})

    @staticmethod
    async def get_bill(db: AsyncSession, actor: User, bill_id: UUID) -> Dict[str, Any]:
        """
        Bill details for one of its parties. Bids are attached while the bill
        is listed and the reader is its organization (all bids) or a financer
        (own bids only).
        """
        from app.services.bid_service import BidService

        now = get_utc_now()
        bill = await BillService.load_bill(db, bill_id, now)
        parties = {bill.organization_id, bill.customer_id, bill.financer_id}
        if actor.id not in parties:
            raise ForbiddenError("You do not have permission to access this bill", bill_id=str(bill.id))

        bids = []
        if bill.is_in_marketplace and (bill.organization_id == actor.id or actor.role == UserRole.FINANCER):
            bids = await BidService.visible_bids_for_bill(db, actor, bill)
        return {"bill": bill, "bids": bids}

    @staticmethod
    async def list_my_bills(
        db: AsyncSession,
        actor: User,
        status: Optional[BillStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Bill], int]:
        now = get_utc_now()
        scope = BillService.role_scope(actor)
        await BillService.mark_overdue_bills(db, now, scope)

        criteria = [scope]
        if status is not None:
            criteria.append(Bill.status == status)

        total = await db.scalar(select(func.count(Bill.id)).where(*criteria))
        result = await db.execute(
            select(Bill)
            .where(*criteria)
            .order_by(Bill.created_at.desc(), Bill.id)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    @staticmethod
    def marketplace_criteria(now: datetime) -> list:
        return [
            Bill.is_in_marketplace.is_(True),
            Bill.status == BillStatus.SENT,
            Bill.due_date > now,
            Bill.financer_id.is_(None),
        ]

    @staticmethod
    async def list_marketplace_bills(
        db: AsyncSession,
        actor: User,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Bills open for financing, each with its pending unexpired bids."""
        from app.services.bid_service import BidService

        if actor.role != UserRole.FINANCER:
            raise ForbiddenError("Only financers can access the marketplace")

        now = get_utc_now()
        await BillService.mark_overdue_bills(db, now)
        criteria = BillService.marketplace_criteria(now)

        total = await db.scalar(select(func.count(Bill.id)).where(*criteria))
        result = await db.execute(
            select(Bill)
            .where(*criteria)
            .order_by(Bill.due_date, Bill.id)
            .offset(skip)
            .limit(limit)
        )
        bills = list(result.scalars().all())
        bids_by_bill = await BidService.active_bids_by_bill(db, [b.id for b in bills], now)
        items = [{"bill": b, "bids": bids_by_bill.get(b.id, [])} for b in bills]
        return items, total or 0

    @staticmethod
    async def bill_stats(db: AsyncSession, actor: User) -> Dict[str, Any]:
        now = get_utc_now()
        scope = BillService.role_scope(actor)
        await BillService.mark_overdue_bills(db, now, scope)

        rows = await db.execute(
            select(Bill.status, func.count(Bill.id), func.coalesce(func.sum(Bill.amount), 0))
            .where(scope)
            .group_by(Bill.status)
        )
        status_stats = [
            {"status": status, "count": count, "total_amount": lifecycle.to_cents(total)}
            for status, count, total in rows.all()
        ]

        total_row = (await db.execute(
            select(
                func.count(Bill.id),
                func.coalesce(func.sum(Bill.amount), 0),
                func.coalesce(func.avg(Bill.amount), 0),
            ).where(and_(scope))
        )).one()
        return {
            "status_stats": status_stats,
            "total_stats": {
                "total_bills": total_row[0],
                "total_amount": lifecycle.to_cents(total_row[1]),
                "avg_amount": lifecycle.to_cents(total_row[2]),
            },
        }
