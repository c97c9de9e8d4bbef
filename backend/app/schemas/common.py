"""Response envelope shared by every HTTP endpoint."""

from __future__ import annotations

import math
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Pagination(BaseModel):
    """Page metadata attached to list responses."""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    pages: int = Field(..., ge=0)

    @classmethod
    def build(cls, *, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


class ApiResponse(BaseModel, Generic[T]):
    """``{success, message, data}`` envelope."""

    success: bool = True
    message: str
    data: T | None = None


class PaginatedResponse(ApiResponse[list[T]], Generic[T]):
    pagination: Pagination


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str
