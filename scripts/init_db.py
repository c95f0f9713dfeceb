"""
Database initialization script - sheet collections for the LINE bot

Run once to create the Users / Messages / Logs sheets and their indexes:
    python scripts/init_db.py
"""

import asyncio
import sys
from pathlib import Path
import os
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

from motor.motor_asyncio import AsyncIOMotorClient
import logging

from app.db.indexes import create_indexes
from app.db.mongo import MongoWorkbook, sheet_collection_name, COUNTERS_COLLECTION
from app.db.sheets import SHEET_CONFIGS

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


# MongoDB connection - load from .env
MONGODB_URL = os.getenv("MONGODB_URL")
MONGODB_DB_NAME = os.getenv("MONGODB_DB_NAME")

if not MONGODB_URL or not MONGODB_DB_NAME:
    raise ValueError("❌ MONGODB_URL and MONGODB_DB_NAME must be set in .env file")


async def initialize_sheets():
    """Create header rows, counters and indexes for every sheet"""

    logger.info(f"🔌 Connecting to MongoDB: {MONGODB_DB_NAME}")
    client = AsyncIOMotorClient(MONGODB_URL)
    db = client[MONGODB_DB_NAME]

    try:
        # Test connection
        await client.admin.command('ping')
        logger.info("✅ Connected successfully\n")

        # ==================== SHEETS ====================
        workbook = MongoWorkbook(db)
        for config in SHEET_CONFIGS.values():
            logger.info(f"📋 Creating '{config.name}' sheet...")
            await workbook.ensure_sheet(config)
            logger.info(f"  ✅ Header: {', '.join(config.headers)}")

        # ==================== INDEXES ====================
        logger.info("\n📋 Creating indexes...")
        await create_indexes(db)

        # ==================== VERIFICATION ====================
        logger.info("\n🔍 Verifying indexes...")

        for config in SHEET_CONFIGS.values():
            collection = db[sheet_collection_name(config)]
            indexes = await collection.index_information()
            logger.info(f"\n  {collection.name}:")
            for idx_name in indexes.keys():
                if idx_name != "_id_":
                    logger.info(f"    ✅ {idx_name}")

        # ==================== STATS ====================
        logger.info(f"\n📊 Current rows:")
        for config in SHEET_CONFIGS.values():
            # The header row is stored as a document too
            count = await db[sheet_collection_name(config)].count_documents({"row": {"$gt": 1}})
            logger.info(f"  {config.name}: {count}")

        counters = await db[COUNTERS_COLLECTION].count_documents({})
        logger.info(f"  Counters: {counters}")

        logger.info("\n✅ Database initialization complete!")
        logger.info("\n🚀 Ready to start your bot!")

    except Exception as e:
        logger.error(f"\n❌ Error: {e}")
        raise

    finally:
        client.close()


async def main():
    """Main initialization"""
    logger.info("=" * 60)
    logger.info("  LINE Bot Database Setup")
    logger.info("=" * 60 + "\n")

    await initialize_sheets()

    logger.info("\n" + "=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
