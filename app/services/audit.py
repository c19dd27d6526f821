"""Append-only audit trail of login and logout attempts."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from app.models import Authentication
from app.services.errors import StoreError, store_errors
from app.services.pagination import Page, paginate

logger = logging.getLogger(__name__)

EVENT_LOGIN = "login"
EVENT_LOGOUT = "logout"


@dataclass(frozen=True)
class RequestContext:
    """Client metadata captured by the HTTP layer for the audit trail."""

    ip_address: str | None = None
    user_agent: str | None = None
    device_info: dict[str, Any] | None = None
    location: str | None = None


@dataclass(frozen=True)
class AuditFilters:
    user_id: int | None = None
    event: str | None = None
    is_successful: bool | None = None
    page: int = 1
    per_page: int = 15


class AuditRecorder:
    """
    Writes one Authentication row per attempt and commits it on its own.

    Recording is best-effort: a failed write is rolled back, logged and
    reported as False, never raised. Callers commit their own work first so
    the rollback cannot touch issued or revoked tokens.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record_attempt(
        self,
        user_id: int | None,
        context: RequestContext,
        success: bool,
        event: str = EVENT_LOGIN,
        token_id: int | None = None,
    ) -> bool:
        now = datetime.now(timezone.utc)
        entry = Authentication(
            user_id=user_id,
            event=event,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            login_at=now if event == EVENT_LOGIN else None,
            logout_at=now if event == EVENT_LOGOUT else None,
            token_id=token_id,
            is_successful=success,
            device_info=context.device_info,
            location=context.location,
            created_at=now,
        )
        try:
            with store_errors("record_attempt"):
                self.db.add(entry)
                self.db.commit()
        except StoreError as e:
            self.db.rollback()
            logger.error(
                "Audit write failed: user_id=%s, event=%s, success=%s, error=%s",
                user_id,
                event,
                success,
                e.message,
            )
            return False
        return True

    def list_entries(self, filters: AuditFilters) -> Page:
        """Newest first. Raises StoreError on database failure."""
        with store_errors("list_entries"):
            query = self.db.query(Authentication)
            if filters.user_id is not None:
                query = query.filter(Authentication.user_id == filters.user_id)
            if filters.event:
                query = query.filter(Authentication.event == filters.event)
            if filters.is_successful is not None:
                query = query.filter(Authentication.is_successful == filters.is_successful)
            query = query.order_by(Authentication.created_at.desc(), Authentication.id.desc())
            return paginate(query, filters.page, filters.per_page)
