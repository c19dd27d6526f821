"""Token pruning: delete revoked or expired tokens older than TOKEN_PRUNE_HOURS."""

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.services.token_issuer import TokenIssuer

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def run_token_pruning(session: Session, settings: "Settings") -> int:
    """
    Delete dead token rows whose revocation or expiry is older than the cutoff.

    Returns the number of rows deleted. Idempotent: safe to run repeatedly.
    Audit entries are never touched.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(hours=settings.TOKEN_PRUNE_HOURS)
    deleted_count = TokenIssuer(session).prune(cutoff)
    session.commit()

    if deleted_count > 0:
        logger.info(
            "Token pruning run: cutoff=%s, tokens_deleted=%s",
            cutoff.isoformat(),
            deleted_count,
        )
    return deleted_count
