from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core import security
from app.services.user_service import UserService
from app.schemas.auth import LoginRequest, Token, RegisterRequest
from app.schemas.user import UserResponse
from app.schemas.responses import SuccessResponse

router = APIRouter()


@router.post("/register", response_model=SuccessResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def register(
    register_in: RegisterRequest,
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """Create an organization, customer or financer account."""
    user = await UserService.create_user(
        db,
        email=register_in.email,
        password=register_in.password,
        name=register_in.name,
        role=register_in.role,
        company_name=register_in.company_name,
    )
    return SuccessResponse(
        data=UserResponse.model_validate(user),
        message="Account created successfully",
    )


@router.post("/login", response_model=SuccessResponse[Token])
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Unified login for all roles.
    Returns a JWT access token and the user's role.
    """
    user = await UserService.authenticate_user(db, email=login_data.email, password=login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = security.create_access_token(str(user.id), user.role.value)
    return SuccessResponse(
        data=Token(access_token=access_token, role=user.role, user_id=str(user.id)),
        message="Login successful",
    )
