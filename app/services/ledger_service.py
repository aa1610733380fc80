"""Ledger Service - per-actor counters and financer balances"""

import logging
from decimal import Decimal
from typing import Any, Dict, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, NotFoundError, BillValidationError
from app.database import atomic
from app.models.enums import StatKind, UserRole
from app.models.user import User, UserStats

logger = logging.getLogger(__name__)

Amount = Union[int, Decimal]


class LedgerService:
    """
    Counter increments and fund movements.

    update_stats / debit_funds never commit: they run inside the transaction
    of the lifecycle transition that caused them, so a rolled back transition
    leaves the counters untouched.
    """

    @staticmethod
    async def update_stats(
        db: AsyncSession,
        user_id: UUID,
        kind: StatKind,
        amount: Amount = 1,
    ) -> None:
        """Atomically add amount to the counter named by kind."""
        if amount < 0:
            raise BillValidationError("Stat increments must be non-negative", kind=kind.value)
        column = getattr(UserStats, UserStats.COLUMNS[kind])
        await db.execute(
            update(UserStats)
            .where(UserStats.user_id == user_id)
            .values({column: column + amount})
            .execution_options(synchronize_session=False)
        )
        logger.debug(
            "stat_updated",
            extra={"user_id": str(user_id), "kind": kind.value, "amount": str(amount)},
        )

    @staticmethod
    async def get_available_funds(db: AsyncSession, user_id: UUID) -> Decimal:
        funds = await db.scalar(select(User.available_funds).where(User.id == user_id))
        if funds is None:
            raise NotFoundError("user", user_id)
        return Decimal(funds)

    @staticmethod
    async def debit_funds(db: AsyncSession, user_id: UUID, amount: Amount) -> None:
        """
        Atomically subtract amount from a financer's balance.

        Sufficiency is not re-checked here: funds are only validated when a
        bid is placed or updated, so the balance can be consumed between
        placement and acceptance.
        """
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(available_funds=User.available_funds - amount)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def add_funds(db: AsyncSession, actor: User, amount: Amount) -> Decimal:
        if actor.role != UserRole.FINANCER:
            raise ForbiddenError("Only financers can add funds")
        if amount is None or Decimal(amount) <= 0:
            raise BillValidationError("Amount must be positive", field="amount")

        actor_id = actor.id
        async with atomic(db):
            await db.execute(
                update(User)
                .where(User.id == actor_id)
                .values(available_funds=User.available_funds + amount)
                .execution_options(synchronize_session=False)
            )
            balance = await LedgerService.get_available_funds(db, actor_id)
        await db.refresh(actor, ["available_funds"])
        logger.info("funds_added", extra={"user_id": str(actor_id), "amount": str(amount)})
        return balance

    @staticmethod
    async def get_user_stats(db: AsyncSession, actor: User) -> Dict[str, Any]:
        result = await db.execute(
            select(UserStats)
            .where(UserStats.user_id == actor.id)
            .execution_options(populate_existing=True)
        )
        stats = result.scalar_one_or_none()
        if stats is None:
            raise NotFoundError("stats", actor.id)
        data = {name: getattr(stats, name) for name in UserStats.COLUMNS.values()}
        if actor.role == UserRole.FINANCER:
            data["available_funds"] = await LedgerService.get_available_funds(db, actor.id)
        return data
