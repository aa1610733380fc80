"""Response envelopes shared by every endpoint"""

import math
from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, Field


T = TypeVar("T")


class SuccessResponse(BaseModel, Generic[T]):
    """
    Envelope for a successful call.

        {"success": true, "data": {"id": "...", "status": "sent"}, "message": "Bill sent successfully"}
    """
    success: bool = True
    data: T
    message: str = "Operation successful"


class ErrorDetail(BaseModel):
    code: str = Field(..., description="Machine-readable error code, e.g. DUPLICATE_BID")
    message: str
    details: Optional[dict[str, Any]] = Field(None, description="Ids and values behind the failure")


class ErrorResponse(BaseModel):
    """
    Envelope for a rejected call.

        {"success": false, "error": {"code": "INSUFFICIENT_FUNDS", "message": "...",
                                      "details": {"required": "6000.00", "available": "5000.00"}}}
    """
    success: bool = False
    error: ErrorDetail


class PaginationMeta(BaseModel):
    page: int = Field(..., ge=1, description="Current page number")
    page_size: int = Field(..., ge=1, le=100, description="Items per page")
    total: int = Field(..., ge=0, description="Total number of items")
    total_pages: int = Field(..., ge=0, description="Total number of pages")

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "PaginationMeta":
        pages = math.ceil(total / page_size) if total else 0
        return cls(page=page, page_size=page_size, total=total, total_pages=pages)


class PaginatedResponse(BaseModel, Generic[T]):
    """Envelope for list endpoints; ``meta`` describes the requested page."""
    success: bool = True
    data: list[T]
    meta: PaginationMeta
    message: str = "Operation successful"
