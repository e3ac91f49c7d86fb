"""
Pydantic schemas for API request/response validation.
"""

from src.schemas.auth import (
    AccountResponse,
    AccountUpdate,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    TokenResponse,
)
from src.schemas.common import ErrorResponse, HealthResponse, SuccessResponse

__all__ = [
    # Auth
    "AccountResponse",
    "AccountUpdate",
    "ChangePasswordRequest",
    "LoginRequest",
    "LoginResponse",
    "RegisterRequest",
    "TokenResponse",
    # Common
    "ErrorResponse",
    "HealthResponse",
    "SuccessResponse",
]
