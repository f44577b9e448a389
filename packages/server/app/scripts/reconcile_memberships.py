"""
Rebuild the membership projection from organization rosters.

Runs the same reconciliation as ``POST /api/v1/organizations/reconcile``,
either for one organization or for all of them, in a single transaction.

    python -m app.scripts.reconcile_memberships [--org-id UUID] [--dry-run]
"""

import argparse
import asyncio
import sys
import uuid
from typing import Optional

import structlog

from app.core.config import get_settings
from app.core.database import async_session_factory, engine
from app.core.logging_config import configure_logging
from app.services.reconcile import reconcile

settings = get_settings()
log = structlog.get_logger()


async def run(org_id: Optional[uuid.UUID], dry_run: bool) -> int:
    async with async_session_factory() as session:
        try:
            report = await reconcile(session, org_id)
            if dry_run:
                await session.rollback()
            else:
                await session.commit()
        except Exception:
            await session.rollback()
            raise
    await engine.dispose()

    for field, value in report.model_dump().items():
        print(f"{field:>24}: {value}")
    print(f"{'total_repairs':>24}: {report.total_repairs}{' (dry run, not saved)' if dry_run else ''}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile organization memberships.")
    parser.add_argument("--org-id", type=uuid.UUID, default=None, help="Only this organization")
    parser.add_argument("--dry-run", action="store_true", help="Report repairs without saving them")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level, "text")
    log.info("reconcile.start", org_id=str(args.org_id) if args.org_id else "all", dry_run=args.dry_run)
    return asyncio.run(run(args.org_id, args.dry_run))


if __name__ == "__main__":
    sys.exit(main())
