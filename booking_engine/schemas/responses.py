"""Standardized API Response Schemas"""

from typing import Any, Dict, Generic, Optional, TypeVar
from pydantic import BaseModel


T = TypeVar('T')


class SuccessResponse(BaseModel, Generic[T]):
    """
    Standard success response envelope.

    Example:
        {
            "success": true,
            "data": {...},
            "message": "Operation successful"
        }
    """
    success: bool = True
    data: Optional[T] = None
    message: str = "Operation successful"


class ErrorDetail(BaseModel):
    """Error details structure"""
    code: str
    message: str
    details: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    """
    Standard error response envelope.

    Example:
        {
            "success": false,
            "error": {
                "code": "OverlapError",
                "message": "The proposed time overlaps with \"Algebra\" (2026-03-01T10:00:00)",
                "details": {"label": "Algebra", "conflicting_start": "2026-03-01T10:00:00"}
            }
        }
    """
    success: bool = False
    error: ErrorDetail
