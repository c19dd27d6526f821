"""Request/response schemas for auth endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.security import (
    EMAIL_MAX_LEN,
    EMAIL_MIN_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
)


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str = Field(
        ..., min_length=EMAIL_MIN_LEN, max_length=EMAIL_MAX_LEN, description="Email"
    )
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Password"
    )


class ChangePasswordRequest(BaseModel):
    """Current password plus the new one, confirmed."""

    current_password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN
    )
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    new_password_confirmation: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN
    )

    @model_validator(mode="after")
    def check_confirmation(self) -> "ChangePasswordRequest":
        if self.new_password != self.new_password_confirmation:
            raise ValueError("new_password confirmation does not match")
        return self


class ResetPasswordRequest(BaseModel):
    """Account whose password is replaced by a temporary one."""

    email: str = Field(..., min_length=EMAIL_MIN_LEN, max_length=EMAIL_MAX_LEN)


class AccountOut(BaseModel):
    """Outward view of an account. Never carries the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    email: str
    is_active: bool
    role: str
    last_login_at: datetime | None = None
    last_login_ip: str | None = None
    created_at: datetime | None = None


def account_payload(user: Any) -> dict[str, Any]:
    """JSON-ready account dict built from an ORM User."""
    return AccountOut.model_validate(user).model_dump(mode="json")
