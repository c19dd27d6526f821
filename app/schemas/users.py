"""Schemas for admin listing of accounts and their audit trail."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class UserListQuery(BaseModel):
    """Query parameters for GET /users; page sizes are clamped by the route."""

    search: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None
    role: str | None = Field(default=None, max_length=32)
    sort_by: Literal["id", "email", "name", "created_at", "last_login_at"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int | None = None
    per_page: int | None = None


class AuthenticationOut(BaseModel):
    """One audit entry as returned to admins."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int | None = None
    event: str
    ip_address: str | None = None
    user_agent: str | None = None
    login_at: datetime | None = None
    logout_at: datetime | None = None
    token_id: int | None = None
    is_successful: bool
    device_info: dict[str, Any] | None = None
    location: str | None = None
    created_at: datetime | None = None
