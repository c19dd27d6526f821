"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AccountOut,
    ChangePasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
)
from app.schemas.health import HealthResponse
from app.schemas.users import AuthenticationOut, UserListQuery

__all__ = [
    "AccountOut",
    "AuthenticationOut",
    "ChangePasswordRequest",
    "HealthResponse",
    "LoginRequest",
    "ResetPasswordRequest",
    "UserListQuery",
]
