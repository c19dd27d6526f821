"""
Session lifecycle: login, logout, refresh, change-password and reset-password.

Composes the credential store, token issuer, audit recorder and password
hasher passed in at construction. Domain failures come back as ServiceResult
values; the only exception the collaborators declare, StoreError, is caught
here and turned into an Internal result.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.core.locks import AccountLocks, account_locks
from app.core.security import PasswordHasher, generate_temporary_password, get_password_hasher
from app.models import User
from app.schemas.auth import account_payload
from app.services.audit import EVENT_LOGOUT, AuditRecorder, RequestContext
from app.services.credential_store import CredentialStore
from app.services.errors import StoreError, store_errors
from app.services.results import ErrorKind, ServiceResult
from app.services.token_issuer import TOKEN_TYPE, TokenIssuer

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

MSG_INVALID_CREDENTIALS = "Invalid credentials"
MSG_ACCOUNT_DISABLED = "Account is disabled"
MSG_CURRENT_PASSWORD_INCORRECT = "Current password is incorrect"
MSG_USER_NOT_FOUND = "User not found"


class SessionService:
    """Orchestrates the authentication and session lifecycle for one request."""

    def __init__(
        self,
        db: Session,
        credentials: CredentialStore,
        tokens: TokenIssuer,
        audit: AuditRecorder,
        hasher: PasswordHasher,
        locks: AccountLocks,
        settings: Settings,
    ) -> None:
        self.db = db
        self.credentials = credentials
        self.tokens = tokens
        self.audit = audit
        self.hasher = hasher
        self.locks = locks
        self.settings = settings

    def login(
        self, email: str, password: str, context: RequestContext | None = None
    ) -> ServiceResult:
        """
        Verify email + password and issue a new bearer token.

        Unknown email and wrong password produce the same result. A disabled
        account is reported as such only after its password matched.
        """
        context = context or RequestContext()
        try:
            user = self.credentials.get_by_email(email)
            if user is None:
                self.hasher.verify_dummy(password)
                self._audit_failed_login(None, context)
                return ServiceResult.fail(ErrorKind.INVALID_CREDENTIALS, MSG_INVALID_CREDENTIALS)

            if not self.hasher.verify(password, user.password_hash):
                self._audit_failed_login(user.id, context)
                return ServiceResult.fail(ErrorKind.INVALID_CREDENTIALS, MSG_INVALID_CREDENTIALS)

            if not user.is_active:
                self._audit_failed_login(user.id, context)
                return ServiceResult.fail(ErrorKind.ACCOUNT_DISABLED, MSG_ACCOUNT_DISABLED)

            user_id = user.id
            issued = self.tokens.issue(user_id)
            self.credentials.record_login(user, context.ip_address)
            # commit expires the instance; read it while it is still loaded
            account = account_payload(user)
            self._commit()
        except StoreError as e:
            self.db.rollback()
            logger.error("Login failed: email=%s, error=%s", email, e.message)
            return ServiceResult.fail(ErrorKind.INTERNAL, "Login failed", {"server": e.message})

        self.audit.record_attempt(user_id, context, success=True, token_id=issued.token_id)
        return ServiceResult.ok(
            "Login successful",
            {
                "user": account,
                "token": issued.plain_text,
                "token_type": TOKEN_TYPE,
            },
        )

    def logout(self, user: User, context: RequestContext | None = None) -> ServiceResult:
        """Revoke every token of the account. Succeeds even when none are active."""
        context = context or RequestContext()
        user_id = user.id
        try:
            with self.locks.hold(user_id):
                self.credentials.lock_for_update(user_id)
                revoked = self.tokens.revoke_all(user_id)
                self._commit()
        except StoreError as e:
            self.db.rollback()
            logger.error("Logout failed: user_id=%s, error=%s", user_id, e.message)
            return ServiceResult.fail(ErrorKind.INTERNAL, "Logout failed", {"server": e.message})

        self.audit.record_attempt(user_id, context, success=True, event=EVENT_LOGOUT)
        return ServiceResult.ok("Logout successful", {"revoked": revoked})

    def refresh_token(self, user: User) -> ServiceResult:
        """
        Revoke all tokens of the account, then issue exactly one.

        Revoke and issue share one transaction under the account lock, so no
        concurrent refresh or logout can interleave between them.
        """
        user_id = user.id
        try:
            with self.locks.hold(user_id):
                self.credentials.lock_for_update(user_id)
                self.tokens.revoke_all(user_id)
                issued = self.tokens.issue(user_id)
                self._commit()
        except StoreError as e:
            self.db.rollback()
            logger.error("Token refresh failed: user_id=%s, error=%s", user_id, e.message)
            return ServiceResult.fail(
                ErrorKind.INTERNAL, "Token refresh failed", {"server": e.message}
            )

        return ServiceResult.ok(
            "Token refreshed", {"token": issued.plain_text, "token_type": TOKEN_TYPE}
        )

    def change_password(
        self, user: User, current_password: str, new_password: str
    ) -> ServiceResult:
        """
        Replace the password hash after verifying the current password.

        Existing tokens survive unless REVOKE_SESSIONS_ON_PASSWORD_CHANGE is set.
        """
        user_id = user.id
        if not self.hasher.verify(current_password, user.password_hash):
            return ServiceResult.fail(
                ErrorKind.INVALID_CREDENTIALS, MSG_CURRENT_PASSWORD_INCORRECT
            )

        new_hash = self.hasher.hash(new_password)
        try:
            if self.settings.REVOKE_SESSIONS_ON_PASSWORD_CHANGE:
                with self.locks.hold(user_id):
                    self.credentials.lock_for_update(user_id)
                    self.credentials.update_password_hash(user, new_hash)
                    self.tokens.revoke_all(user_id)
                    self._commit()
            else:
                self.credentials.update_password_hash(user, new_hash)
                self._commit()
        except StoreError as e:
            self.db.rollback()
            logger.error("Password change failed: user_id=%s, error=%s", user_id, e.message)
            return ServiceResult.fail(
                ErrorKind.INTERNAL, "Password change failed", {"server": e.message}
            )

        return ServiceResult.ok("Password changed successfully")

    def reset_password(self, email: str) -> ServiceResult:
        """
        Replace the password with a random temporary one and return it.

        The plaintext comes back to the caller; production deployments should
        deliver it out of band instead.
        """
        try:
            user = self.credentials.get_by_email(email)
            if user is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, MSG_USER_NOT_FOUND)

            user_id = user.id
            temporary = generate_temporary_password(self.settings.TEMP_PASSWORD_LENGTH)
            self.credentials.update_password_hash(user, self.hasher.hash(temporary))
            self._commit()
        except StoreError as e:
            self.db.rollback()
            logger.error("Password reset failed: email=%s, error=%s", email, e.message)
            return ServiceResult.fail(
                ErrorKind.INTERNAL, "Password reset failed", {"server": e.message}
            )

        logger.info("Password reset: user_id=%s", user_id)
        return ServiceResult.ok("Password reset successful", {"temporary_password": temporary})

    def _commit(self) -> None:
        with store_errors("commit"):
            self.db.commit()

    def _audit_failed_login(self, user_id: int | None, context: RequestContext) -> None:
        if self.settings.AUDIT_FAILED_LOGINS:
            self.audit.record_attempt(user_id, context, success=False)


def build_session_service(
    db: Session,
    settings: Settings,
    locks: AccountLocks = account_locks,
) -> SessionService:
    """Wire a SessionService and its collaborators around one DB session."""
    return SessionService(
        db=db,
        credentials=CredentialStore(db),
        tokens=TokenIssuer(
            db,
            token_bytes=settings.TOKEN_BYTES,
            expire_minutes=settings.TOKEN_EXPIRE_MINUTES,
        ),
        audit=AuditRecorder(db),
        hasher=get_password_hasher(settings.BCRYPT_ROUNDS),
        locks=locks,
        settings=settings,
    )
