"""User Service - Business Logic Layer"""

from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.models.user import User, UserStats
from app.models.enums import UserRole
from app.core.exceptions import ForbiddenError, InvalidStateError
from app.core.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user-related operations"""

    @staticmethod
    async def create_user(
        db: AsyncSession,
        email: str,
        password: str,
        name: str,
        role: UserRole = UserRole.CUSTOMER,
        company_name: Optional[str] = None,
        available_funds: Decimal = Decimal("0"),
        auto_commit: bool = True,
    ) -> User:
        """
        Create a new user together with its zeroed stats row.
        When auto_commit=False, uses flush instead of commit (for fixtures and batch seeding).
        """
        db_user = User(
            email=email.lower(),
            name=name,
            hashed_password=get_password_hash(password),
            role=role,
            company_name=company_name,
            available_funds=available_funds if role == UserRole.FINANCER else Decimal("0"),
            is_active=True,
        )
        db_user.stats = UserStats()
        db.add(db_user)
        try:
            if auto_commit:
                await db.commit()
            else:
                await db.flush()
        except IntegrityError:
            await db.rollback()
            raise InvalidStateError("Email already registered", field="email")
        await db.refresh(db_user)
        logger.info("user_created", extra={"user_id": str(db_user.id), "role": role.value})
        return db_user

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
        """
        Get user by ID.

        Args:
            db: Database session
            user_id: User ID

        Returns:
            User or None if not found
        """
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def authenticate_user(
        db: AsyncSession,
        email: str,
        password: str
    ) -> Optional[User]:
        """
        Authenticate user with email and password.

        Returns:
            User if authenticated, None otherwise
        """
        user = await UserService.get_user_by_email(db, email)

        if not user:
            return None

        if not verify_password(password, user.hashed_password):
            return None

        if not user.is_active:
            return None

        return user

    @staticmethod
    async def list_customers(db: AsyncSession, actor: User) -> List[User]:
        """Active customers an organization can bill."""
        if actor.role != UserRole.ORGANIZATION:
            raise ForbiddenError("Only organizations can access customer list")
        result = await db.execute(
            select(User)
            .where(User.role == UserRole.CUSTOMER, User.is_active.is_(True))
            .order_by(User.name)
        )
        return list(result.scalars().all())
