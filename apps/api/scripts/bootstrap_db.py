"""Create the meetings schema and optionally purge long-expired invitations."""
from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from app.core.config import settings
from app.db.session import build_engine, build_sessionmaker, create_schema
from app.repositories import meetings as meetings_repo

logger = logging.getLogger("bootstrap_db")


async def main(purge_older_than_minutes: int | None) -> None:
    engine = build_engine(settings.database_url)
    try:
        await create_schema(engine)
        logger.info("Schema ready at %s", settings.database_url)

        if purge_older_than_minutes is not None:
            cutoff = datetime.now(timezone.utc) - timedelta(minutes=purge_older_than_minutes)
            SessionLocal = build_sessionmaker(engine)
            async with SessionLocal() as session:
                async with session.begin():
                    removed = await meetings_repo.delete_expired_before(session, cutoff)
            logger.info("Purged %d meetings expired before %s", removed, cutoff.isoformat())
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--purge-older-than",
        type=int,
        default=None,
        metavar="MINUTES",
        help="Delete meetings that expired more than MINUTES ago",
    )
    args = parser.parse_args()
    logging.basicConfig(level=settings.log_level.upper())
    asyncio.run(main(args.purge_older_than))
