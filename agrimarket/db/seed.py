"""
Explicit seeding of the widget tables.

Read paths never write sample rows; this module is the one place they are
stored. Every row is upserted on its natural key, so running the seed twice
leaves the same row counts.
"""

import argparse
import asyncio
import logging
from datetime import date
from typing import Iterable, Optional

from agrimarket.db.config import DATABASE_URL, build_engine
from agrimarket.db.init import init_db
from agrimarket.gateway.base import DataGateway
from agrimarket.gateway.sql_gateway import SQLGateway
from agrimarket.models.profile import Profile, UserType
from agrimarket.services.samples import sample_market_prices, sample_products, sample_weather
from agrimarket.services.weather_service import DEFAULT_LOCATION

logger = logging.getLogger(__name__)

SEED_SUPPLIER_USER_ID = "seed-supplier"


async def seed_weather(gateway: DataGateway, locations: Iterable[str] = (DEFAULT_LOCATION,), days: int = 7,
                       start: Optional[date] = None) -> int:
    count = 0
    for location in locations:
        for row in sample_weather(location, days, start):
            await gateway.upsert(row, on_conflict=("location", "date"))
            count += 1
    logger.info(f"Seeded {count} weather rows")
    return count


async def seed_market_prices(gateway: DataGateway, day: Optional[date] = None) -> int:
    count = 0
    for row in sample_market_prices(day):
        await gateway.upsert(row, on_conflict=("crop_name", "market_location", "date"))
        count += 1
    logger.info(f"Seeded {count} market price rows")
    return count


async def seed_supplier(gateway: DataGateway) -> Profile:
    """The verified supplier that owns the sample products."""
    supplier = Profile(
        user_id=SEED_SUPPLIER_USER_ID,
        full_name="Verified Supplier",
        user_type=UserType.SUPPLIER.value,
        is_verified=True,
    )
    return await gateway.upsert(supplier, on_conflict=("user_id",))


async def seed_products(gateway: DataGateway, supplier_id: Optional[str] = None) -> int:
    if supplier_id is None:
        supplier_id = (await seed_supplier(gateway)).id
    count = 0
    for row in sample_products(supplier_id):
        await gateway.upsert(row, on_conflict=("supplier_id", "name"))
        count += 1
    logger.info(f"Seeded {count} products")
    return count


async def seed_all(gateway: DataGateway, locations: Iterable[str] = (DEFAULT_LOCATION,)):
    await seed_weather(gateway, locations)
    await seed_market_prices(gateway)
    await seed_products(gateway)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed the dashboard widget tables with sample rows.")
    parser.add_argument("--database-url", default=DATABASE_URL)
    parser.add_argument("--location", action="append", dest="locations",
                        help="Weather location to seed (repeatable)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    engine = build_engine(args.database_url)
    init_db(engine)
    asyncio.run(seed_all(SQLGateway(engine), args.locations or [DEFAULT_LOCATION]))


if __name__ == "__main__":
    main()
