"""
app/db/indexes.py

Purpose: Database index management

- Unique row-number index on every sheet collection
- Idempotent: safe to run on every startup
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from typing import Optional

from app.core.logging import get_logger
from app.db.mongo import get_database, sheet_collection_name
from app.db.sheets import SHEET_CONFIGS

logger = get_logger(__name__)


async def create_indexes(database: Optional[AsyncIOMotorDatabase] = None):
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.

    Rows are always read by row number or by a full scan, so the row index
    is the only one the store needs.
    """
    db = database if database is not None else get_database()

    try:
        logger.info("Creating database indexes...")

        for config in SHEET_CONFIGS.values():
            collection = db[sheet_collection_name(config)]
            await collection.create_index(
                [("row", ASCENDING)],
                unique=True,
                name="row_unique"
            )
            logger.debug(f"Created unique index on {collection.name}.row")

        logger.info("✅ All database indexes created successfully")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise
