"""
CLI entrypoint for the token pruning job. Run from cron, e.g.:

  python -m app.prune_tokens

Or hourly: 0 * * * * cd /path/to/warden && .venv/bin/python -m app.prune_tokens
"""

import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.logging import configure_logging
from app.services.errors import StoreError
from app.services.token_pruning import run_token_pruning

logger = logging.getLogger(__name__)


def main() -> int:
    """Run pruning: delete revoked/expired tokens older than TOKEN_PRUNE_HOURS."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    db = SessionLocal()
    try:
        tokens_deleted = run_token_pruning(db, settings)
        logger.info("Token pruning completed: tokens_deleted=%s", tokens_deleted)
        return 0
    except StoreError as e:
        db.rollback()
        logger.exception("Token pruning failed: %s", e.message)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
