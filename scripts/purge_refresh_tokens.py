"""
Delete refresh-token records whose expiry has passed.

Expired records can never be redeemed, so they only take up space. Run it
from cron or a scheduled job:

    PYTHONPATH=backend python scripts/purge_refresh_tokens.py
"""

from __future__ import annotations

import argparse
from typing import Sequence

from sqlalchemy import func

from app.core.logging import get_structured_logger
from app.core.time import utcnow
from app.core.tokens import purge_expired_refresh_tokens
from app.models.refresh_tokens import RefreshToken

logger = get_structured_logger("maintenance")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Purge expired refresh tokens.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only count the expired records.",
    )
    return parser


def main(argv: Sequence[str] | None = None, *, session_factory=None) -> int:
    args = _build_parser().parse_args(argv)
    if session_factory is None:
        from app.core.db import SessionLocal as session_factory

    with session_factory() as db:
        if args.dry_run:
            expired = (
                db.query(func.count(RefreshToken.id))
                .filter(RefreshToken.expires_at <= utcnow())
                .scalar()
            )
            print(f"{expired} expired refresh tokens would be deleted")
            return 0
        purged = purge_expired_refresh_tokens(db)

    logger.info("refresh_tokens.purged", extra={"purged": purged})
    print(f"Deleted {purged} expired refresh tokens")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
