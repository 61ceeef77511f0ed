"""
Dev utility: create a demo link and back-fill a day of hourly visits.

Hour ``i`` (counting back from now) gets ``i + 1`` visits,
so a full run records 1 + 2 + ... + 24 = 300 visits.
"""

import argparse
import asyncio
import logging
from datetime import timedelta

from shortener.api.deps import new_stores
from shortener.config import settings
from shortener.database import AsyncSessionLocal, engine
from shortener.logging_config import setup_logging
from shortener.models import Link, Visit, utcnow

logger = logging.getLogger("seeder")


async def seed(name: str, destination: str, hours: int) -> None:
    stores = new_stores(AsyncSessionLocal)

    link = await stores.links.insert(Link(name=name, destination=destination))
    logger.info(f"Created link {link.id} with token {link.token}")

    start = utcnow()
    for i in range(hours):
        visit_time = start - timedelta(hours=i)
        for _ in range(i + 1):
            await stores.visits.seed_insert(Visit(link_id=link.id, created_at=visit_time))

    total = await stores.visits.count_total(link.id)
    logger.info(f"Seeded {total} visits for link {link.id}")


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--name", default="HeroIcons")
    parser.add_argument("--destination", default="https://heroicons.com/")
    parser.add_argument("--hours", type=int, default=24)
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL)
    try:
        await seed(args.name, args.destination, args.hours)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
