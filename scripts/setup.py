#!/usr/bin/env python3
"""Setup script for the costume rental API: migrate and seed sample costumes."""

import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from costume_rental.core.clock import system_clock
from costume_rental.core.database import async_session_factory, close_db
from costume_rental.models import Costume

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_COSTUMES = [
    {
        "name": "Giant Inflatable T-Rex",
        "slug": "giant-inflatable-t-rex",
        "description": "Walk-in inflatable dinosaur with battery-powered fan",
        "size": "Adult (5'0\" - 6'3\")",
        "difficulty": "Easy",
        "setup_time_minutes": 5,
        "price_per_12_hours": Decimal("350.00"),
        "price_per_day": Decimal("500.00"),
        "price_per_week": Decimal("2250.00"),
    },
    {
        "name": "Mascot Bear Suit",
        "slug": "mascot-bear-suit",
        "description": "Full plush mascot suit with cooling vest",
        "size": "One size",
        "difficulty": "Medium",
        "setup_time_minutes": 15,
        "price_per_12_hours": None,
        "price_per_day": Decimal("800.00"),
        "price_per_week": Decimal("3600.00"),
    },
    {
        "name": "Inflatable Sumo Wrestler",
        "slug": "inflatable-sumo-wrestler",
        "description": "Padded sumo suit, pairs well for party games",
        "size": "Adult",
        "difficulty": "Easy",
        "setup_time_minutes": 3,
        "price_per_12_hours": Decimal("300.00"),
        "price_per_day": Decimal("450.00"),
        "price_per_week": Decimal("2000.00"),
    },
]


def setup_database():
    """Run Alembic migrations up to head."""
    logger.info("Running database migrations...")
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data():
    """Seed a few costumes when the catalogue is empty."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing = await db.scalar(select(func.count()).select_from(Costume))
        if existing:
            logger.info("Sample data already exists, skipping...")
            return

        now = system_clock.now()
        for values in SAMPLE_COSTUMES:
            db.add(Costume(**values, is_available=True, created_at=now, updated_at=now))

        try:
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Failed to create sample data")
            raise

        logger.info("Sample data created successfully!", extra={"costumes": len(SAMPLE_COSTUMES)})

    await close_db()


def main():
    """Main setup function."""
    logger.info("Starting costume rental API setup...")

    setup_database()
    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: uvicorn costume_rental.main:app --reload")


if __name__ == "__main__":
    main()
