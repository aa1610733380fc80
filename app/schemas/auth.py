from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from app.models.enums import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: UserRole
    user_id: str


class RegisterRequest(BaseModel):
    """Account registration; the role cannot be changed afterwards."""
    email: EmailStr
    password: str = Field(..., min_length=8, description="Password must be at least 8 characters")
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.CUSTOMER
    company_name: Optional[str] = Field(None, max_length=255)
