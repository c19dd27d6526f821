"""Bearer-token auth routes and dependencies (get_current_user, require_admin)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.api.responses import result_response
from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.models import User
from app.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    account_payload,
)
from app.services.audit import RequestContext
from app.services.credential_store import CredentialStore
from app.services.errors import StoreError
from app.services.results import ServiceResult
from app.services.session import SessionService, build_session_service
from app.services.token_issuer import TokenIssuer

router = APIRouter()
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_session_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SessionService:
    """Dependency: SessionService bound to the request's DB session."""
    return build_session_service(db, settings)


def request_context(request: Request) -> RequestContext:
    """Client address, user agent and client-hint device info for the audit trail."""
    headers = request.headers
    device_info = {}
    platform = headers.get("sec-ch-ua-platform")
    if platform:
        device_info["platform"] = platform.strip('"')
    mobile = headers.get("sec-ch-ua-mobile")
    if mobile:
        device_info["mobile"] = mobile == "?1"
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=headers.get("user-agent"),
        device_info=device_info or None,
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Dependency: require a valid, unrevoked Bearer token and return its account. Raises 401 otherwise."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        user_id = TokenIssuer(db).validate(credentials.credentials)
        if user_id is None:
            raise _unauthorized("Invalid or revoked token")
        user = CredentialStore(db).get_by_id(user_id)
    except StoreError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication backend unavailable",
        ) from e
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account is disabled")
    return user


def require_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Dependency: require authenticated user with role 'admin'. Raises 403 for non-admin."""
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


@router.post("/login")
def login(
    body: LoginRequest,
    service: Annotated[SessionService, Depends(get_session_service)],
    context: Annotated[RequestContext, Depends(request_context)],
) -> JSONResponse:
    """
    Authenticate with email and password; returns an opaque bearer token.
    Include the token in the Authorization header as: Bearer <token>
    """
    return result_response(service.login(body.email, body.password, context))


@router.post("/logout")
def logout(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SessionService, Depends(get_session_service)],
    context: Annotated[RequestContext, Depends(request_context)],
) -> JSONResponse:
    """Revoke every token of the current account."""
    return result_response(service.logout(current_user, context))


@router.get("/me")
def me(current_user: Annotated[User, Depends(get_current_user)]) -> JSONResponse:
    """Return the authenticated account (no password hash)."""
    return result_response(ServiceResult.ok("Success", account_payload(current_user)))


@router.post("/refresh")
def refresh(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SessionService, Depends(get_session_service)],
) -> JSONResponse:
    """Revoke all tokens of the current account and return exactly one new token."""
    return result_response(service.refresh_token(current_user))


@router.post("/change-password")
def change_password(
    body: ChangePasswordRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SessionService, Depends(get_session_service)],
) -> JSONResponse:
    """Replace the password after verifying the current one."""
    return result_response(
        service.change_password(current_user, body.current_password, body.new_password)
    )


@router.post("/reset-password")
def reset_password(
    body: ResetPasswordRequest,
    _admin: Annotated[User, Depends(require_admin)],
    service: Annotated[SessionService, Depends(get_session_service)],
) -> JSONResponse:
    """
    Admin only: replace an account's password with a temporary one.

    The temporary password is returned in the response body; hand it to the
    account owner through a separate channel.
    """
    return result_response(service.reset_password(body.email))
