"""
Error envelope returned by every failed request
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    code: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """{success: false, message, error: {code, details}}"""
    success: bool = False
    message: str
    error: ErrorDetail

    @classmethod
    def build(cls, message: str, code: str, details: Optional[Dict[str, Any]] = None) -> "ErrorResponse":
        return cls(message=message, error=ErrorDetail(code=code, details=details or {}))
