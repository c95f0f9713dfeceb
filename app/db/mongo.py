"""
app/db/mongo.py

Purpose: MongoDB connection setup and sheet backend

- Initializes Motor client with connection pooling
- One collection per sheet, one document per row: {"row": n, "values": [...]}
- Row numbers allocated from a counters collection
- Health checks and retry logic
- Proper connection lifecycle management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, ServerSelectionTimeoutError
from typing import Any, Dict, List, Optional, Tuple
import asyncio
from app.core.config import settings
from app.core.logging import get_logger
from app.db.sheets import FIRST_DATA_ROW, HEADER_ROW, Sheet, SheetConfig, Workbook, pad_row

logger = get_logger(__name__)

COUNTERS_COLLECTION = "sheet_counters"

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            _client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=20,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )
            _database = _client[settings.MONGODB_DB_NAME]

            # Verify connection
            await _client.admin.command("ping")

            logger.info(f"✅ Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}")
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            if _client is not None:
                _client.close()
            _client = None
            _database = None

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def sheet_collection_name(config: SheetConfig) -> str:
    return f"sheet_{config.name.lower()}"


class MongoSheet(Sheet):
    """
    Sheet stored as a collection of row documents.

    Row numbers come from an atomic counter so concurrent appends from
    several processes never collide.
    """

    def __init__(self, database: AsyncIOMotorDatabase, config: SheetConfig):
        super().__init__(config)
        self.collection = database[sheet_collection_name(config)]
        self.counters = database[COUNTERS_COLLECTION]

    async def ensure_header(self) -> None:
        try:
            await self.collection.update_one(
                {"row": HEADER_ROW},
                {"$setOnInsert": {"row": HEADER_ROW, "values": list(self.config.headers)}},
                upsert=True,
            )
        except DuplicateKeyError:
            # Another process created the header concurrently
            pass
        await self.counters.update_one(
            {"_id": self.collection.name},
            {"$max": {"last_row": HEADER_ROW}},
            upsert=True,
        )

    async def get_values(self) -> List[List[Any]]:
        cursor = self.collection.find({}, {"_id": 0, "row": 1, "values": 1}).sort("row", ASCENDING)
        return [doc.get("values", []) async for doc in cursor]

    async def get_data_rows(self) -> List[Tuple[int, List[Any]]]:
        cursor = self.collection.find(
            {"row": {"$gte": FIRST_DATA_ROW}}, {"_id": 0, "row": 1, "values": 1}
        ).sort("row", ASCENDING)
        return [(doc["row"], doc.get("values", [])) async for doc in cursor]

    async def get_row(self, row_number: int) -> List[Any]:
        doc = await self.collection.find_one({"row": row_number}, {"_id": 0, "values": 1})
        if doc is None:
            raise IndexError(f"{self.name}: row {row_number} out of range")
        return pad_row(doc.get("values", []), self.config.width)

    async def append_row(self, values: List[Any]) -> int:
        counter = await self.counters.find_one_and_update(
            {"_id": self.collection.name},
            {"$inc": {"last_row": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        row_number = counter["last_row"]
        await self.collection.insert_one({"row": row_number, "values": list(values)})
        return row_number

    async def set_row(self, row_number: int, values: List[Any]) -> None:
        if row_number == HEADER_ROW:
            raise IndexError(f"{self.name}: cannot overwrite the header row")
        result = await self.collection.update_one(
            {"row": row_number},
            {"$set": {"values": list(values)}},
        )
        if result.matched_count == 0:
            raise IndexError(f"{self.name}: row {row_number} out of range")


class MongoWorkbook(Workbook):
    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None):
        self.database = database if database is not None else get_database()
        self._sheets: Dict[str, MongoSheet] = {}

    async def ensure_sheet(self, config: SheetConfig) -> Sheet:
        sheet = self._sheets.get(config.name)
        if sheet is None:
            sheet = MongoSheet(self.database, config)
            await sheet.ensure_header()
            self._sheets[config.name] = sheet
        return sheet
