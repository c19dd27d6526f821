"""Admin listing of accounts and their login/logout audit trail."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.responses import result_response
from app.api.v1.auth import require_admin
from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.models import User
from app.schemas.auth import account_payload
from app.schemas.users import AuthenticationOut, UserListQuery
from app.services.audit import AuditFilters, AuditRecorder
from app.services.credential_store import CredentialStore, UserFilters
from app.services.errors import StoreError, store_errors
from app.services.pagination import clamp_page, clamp_per_page
from app.services.results import ErrorKind, ServiceResult

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
def list_users(
    query: Annotated[UserListQuery, Query()],
    _admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> JSONResponse:
    """List accounts with search/status/role filters, sorting and clamped pagination."""
    filters = UserFilters(
        search=query.search,
        is_active=query.is_active,
        role=query.role,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
        page=clamp_page(query.page),
        per_page=clamp_per_page(query.per_page, settings.DEFAULT_PER_PAGE, settings.MAX_PER_PAGE),
    )
    try:
        page = CredentialStore(db).list_users(filters)
    except StoreError as e:
        logger.error("Failed to fetch users: error=%s", e.message)
        return result_response(
            ServiceResult.fail(ErrorKind.INTERNAL, "Failed to fetch users", {"server": e.message})
        )
    return result_response(
        ServiceResult.ok(
            "Users fetched successfully",
            {"items": [account_payload(u) for u in page.items], "meta": page.meta()},
        )
    )


@router.get("/stats")
def user_stats(
    _admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> JSONResponse:
    """Total, active and inactive account counts."""
    try:
        stats = CredentialStore(db).stats()
    except StoreError as e:
        logger.error("Failed to fetch user statistics: error=%s", e.message)
        return result_response(
            ServiceResult.fail(
                ErrorKind.INTERNAL, "Failed to fetch user statistics", {"server": e.message}
            )
        )
    return result_response(ServiceResult.ok("User statistics fetched successfully", stats))


@router.get("/{user_id}")
def show_user(
    user_id: int,
    _admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> JSONResponse:
    """Return one account by id."""
    try:
        user = CredentialStore(db).get_by_id(user_id)
    except StoreError as e:
        logger.error("Failed to fetch user: user_id=%s, error=%s", user_id, e.message)
        return result_response(
            ServiceResult.fail(ErrorKind.INTERNAL, "Failed to fetch user", {"server": e.message})
        )
    if user is None:
        return result_response(ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found"))
    return result_response(ServiceResult.ok("User fetched successfully", account_payload(user)))


@router.get("/{user_id}/authentications")
def list_authentications(
    user_id: int,
    _admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    event: Annotated[str | None, Query(pattern="^(login|logout)$")] = None,
    is_successful: bool | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> JSONResponse:
    """Audit trail for one account, newest first."""
    filters = AuditFilters(
        user_id=user_id,
        event=event,
        is_successful=is_successful,
        page=clamp_page(page),
        per_page=clamp_per_page(per_page, settings.DEFAULT_PER_PAGE, settings.MAX_PER_PAGE),
    )
    try:
        result = AuditRecorder(db).list_entries(filters)
    except StoreError as e:
        logger.error("Failed to fetch audit trail: user_id=%s, error=%s", user_id, e.message)
        return result_response(
            ServiceResult.fail(
                ErrorKind.INTERNAL, "Failed to fetch audit trail", {"server": e.message}
            )
        )
    items = [
        AuthenticationOut.model_validate(entry).model_dump(mode="json") for entry in result.items
    ]
    return result_response(
        ServiceResult.ok(
            "Authentications fetched successfully", {"items": items, "meta": result.meta()}
        )
    )


@router.patch("/{user_id}/status")
def toggle_user_status(
    user_id: int,
    _admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> JSONResponse:
    """Flip is_active. A disabled account keeps its tokens but is refused at login and on every request."""
    store = CredentialStore(db)
    try:
        user = store.get_by_id(user_id)
        if user is None:
            return result_response(ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found"))
        store.set_active(user, not user.is_active)
        account = account_payload(user)
        with store_errors("set_active"):
            db.commit()
    except StoreError as e:
        db.rollback()
        logger.error("Failed to update user status: user_id=%s, error=%s", user_id, e.message)
        return result_response(
            ServiceResult.fail(
                ErrorKind.INTERNAL, "Failed to update user status", {"server": e.message}
            )
        )
    logger.info("User status updated: user_id=%s, is_active=%s", user_id, account["is_active"])
    return result_response(ServiceResult.ok("User status updated successfully", account))
