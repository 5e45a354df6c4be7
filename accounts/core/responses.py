"""Response envelope models.

Consistent response format for all API endpoints:
- Success: {"data": ...}
- Error: {"error": {"code": ..., "message": ..., "details": ...}}
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Standard response envelope for single resources."""

    data: T


class ErrorDetail(BaseModel):
    """Error payload.

    Attributes:
        code: Machine-readable error code.
        message: Human-readable message.
        details: Optional extra information (e.g. did_you_mean).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard response envelope for errors."""

    error: ErrorDetail
