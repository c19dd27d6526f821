"""Mint, validate and revoke opaque bearer tokens."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.security import generate_token_value, hash_token
from app.models import AccessToken
from app.services.errors import store_errors

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_NAME = "auth_token"
TOKEN_TYPE = "Bearer"


@dataclass(frozen=True)
class IssuedToken:
    """Row id plus the raw value; the raw value is not retrievable after this."""

    token_id: int
    plain_text: str


def _as_utc(value: datetime | None) -> datetime | None:
    # sqlite hands back naive datetimes; every stored timestamp is UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class TokenIssuer:
    """
    Repository for access_tokens.

    Raises StoreError on database failure; commits are left to the caller
    except in validate(), which commits its last_used_at touch.
    """

    def __init__(
        self,
        db: Session,
        token_bytes: int = 40,
        expire_minutes: int | None = None,
    ) -> None:
        self.db = db
        self.token_bytes = token_bytes
        self.expire_minutes = expire_minutes

    def issue(self, user_id: int, name: str = DEFAULT_TOKEN_NAME) -> IssuedToken:
        """Persist the hash of a fresh random value and return the value once."""
        plain = generate_token_value(self.token_bytes)
        now = datetime.now(timezone.utc)
        expires_at = (
            now + timedelta(minutes=self.expire_minutes) if self.expire_minutes else None
        )
        with store_errors("issue"):
            row = AccessToken(
                user_id=user_id,
                name=name,
                token_hash=hash_token(plain),
                created_at=now,
                expires_at=expires_at,
            )
            self.db.add(row)
            self.db.flush()
            return IssuedToken(token_id=row.id, plain_text=plain)

    def revoke_all(self, user_id: int) -> int:
        """Mark every unrevoked token of the account revoked; return how many changed."""
        with store_errors("revoke_all"):
            count = (
                self.db.query(AccessToken)
                .filter(AccessToken.user_id == user_id, AccessToken.revoked_at.is_(None))
                .update(
                    {AccessToken.revoked_at: datetime.now(timezone.utc)},
                    synchronize_session=False,
                )
            )
        logger.info("Revoked tokens: user_id=%s, revoked=%s", user_id, count)
        return count

    def validate(self, token: str) -> int | None:
        """Return the owning user id, or None for unknown, revoked or expired tokens."""
        if not token:
            return None
        with store_errors("validate"):
            row = (
                self.db.query(AccessToken)
                .filter(AccessToken.token_hash == hash_token(token))
                .first()
            )
            if row is None or row.revoked_at is not None:
                return None
            now = datetime.now(timezone.utc)
            expires_at = _as_utc(row.expires_at)
            if expires_at is not None and expires_at <= now:
                return None
            row.last_used_at = now
            self.db.commit()
            return row.user_id

    def count_active(self, user_id: int) -> int:
        """Unrevoked, unexpired tokens for the account."""
        now = datetime.now(timezone.utc)
        with store_errors("count_active"):
            return (
                self.db.query(AccessToken)
                .filter(
                    AccessToken.user_id == user_id,
                    AccessToken.revoked_at.is_(None),
                    or_(AccessToken.expires_at.is_(None), AccessToken.expires_at > now),
                )
                .count()
            )

    def prune(self, older_than: datetime) -> int:
        """
        Delete revoked or expired rows whose revocation/expiry predates the cutoff.

        A deleted row cannot validate either, so pruning never resurrects a token.
        """
        with store_errors("prune"):
            return (
                self.db.query(AccessToken)
                .filter(
                    or_(
                        AccessToken.revoked_at < older_than,
                        AccessToken.expires_at < older_than,
                    )
                )
                .delete(synchronize_session=False)
            )
