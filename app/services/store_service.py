"""
app/services/store_service.py

Purpose: User / message persistence over the sheet workbook

- Upsert and lookup of User rows (indexed by user id)
- Append-only Message audit rows and history queries
- Best-effort Logs sheet writes
- Per-user locks that serialize read-modify-write cycles
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from app.core.exceptions import PersistenceError
from app.core.logging import get_logger, get_fallback_logger
from app.db.sheets import Sheet, Workbook, USERS_SHEET, MESSAGES_SHEET, LOGS_SHEET
from app.models.message import Message
from app.models.user import User
from utils.time_utils import utcnow, to_cell

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 10


class StoreService:
    """
    Row store for users, messages and logs.

    User rows are located through an in-memory map user_id -> row number,
    built from a full scan on first use and rebuilt whenever a lookup
    misses or hits a row that no longer belongs to the user.
    """

    def __init__(self, workbook: Workbook):
        self.workbook = workbook
        self._user_rows: Dict[str, int] = {}
        self._index_loaded = False
        self._index_lock = asyncio.Lock()
        self._user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def initialize(self) -> None:
        """Creates missing sheets and loads the user index."""
        try:
            await self.workbook.initialize_sheets()
            sheet = await self.workbook.ensure_sheet(USERS_SHEET)
            await self._rebuild_index(sheet)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to initialize sheets: {e}") from e
        logger.info(f"Store initialized ({len(self._user_rows)} users indexed)")

    @asynccontextmanager
    async def user_lock(self, user_id: str) -> AsyncIterator[None]:
        """
        Serializes find-then-upsert cycles for one user id.

        Usage:
            async with store.user_lock(user_id):
                user = await store.find_user_by_id(user_id)
                ...
                await store.upsert_user(user)
        """
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        async with lock:
            yield

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        """
        Returns the stored User or None.

        Raises:
            PersistenceError: If the sheet cannot be read or the row is malformed
        """
        try:
            sheet = await self.workbook.ensure_sheet(USERS_SHEET)
            located = await self._locate_user(sheet, user_id)
            if located is None:
                return None
            return User.from_row(located[1])
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to read user {user_id}: {e}") from e

    async def upsert_user(self, user: User) -> User:
        """
        Inserts the user or overwrites its existing row.

        An overwrite stamps updated_at with the current time; a first insert
        stores updated_at as given (None for a new user).

        Returns:
            The record as written
        """
        try:
            sheet = await self.workbook.ensure_sheet(USERS_SHEET)
            located = await self._locate_user(sheet, user.user_id)

            if located is not None:
                stored = user.model_copy(update={"updated_at": utcnow()})
                await sheet.set_row(located[0], stored.to_row())
                logger.debug(f"User row {located[0]} updated", extra={"user_id": user.user_id})
            else:
                stored = user
                row_number = await sheet.append_row(stored.to_row())
                self._user_rows[user.user_id] = row_number
                logger.debug(f"User row {row_number} inserted", extra={"user_id": user.user_id})

            return stored
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save user {user.user_id}: {e}") from e

    async def _rebuild_index(self, sheet: Sheet) -> None:
        async with self._index_lock:
            index: Dict[str, int] = {}
            for row_number, values in await sheet.get_data_rows():
                if values and values[0]:
                    index.setdefault(str(values[0]), row_number)
            self._user_rows = index
            self._index_loaded = True

    async def _locate_user(self, sheet: Sheet, user_id: str):
        """Returns (row_number, row_values) or None."""
        if not self._index_loaded:
            await self._rebuild_index(sheet)

        row_number = self._user_rows.get(user_id)
        if row_number is not None:
            values = await sheet.get_row(row_number)
            if values and str(values[0]) == user_id:
                return row_number, values

        # Miss or stale entry: rows may have been appended by another writer
        await self._rebuild_index(sheet)
        row_number = self._user_rows.get(user_id)
        if row_number is None:
            return None
        return row_number, await sheet.get_row(row_number)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def append_message(self, message: Message) -> None:
        """
        Appends an audit record.

        Raises:
            PersistenceError: If the row cannot be written
        """
        try:
            sheet = await self.workbook.ensure_sheet(MESSAGES_SHEET)
            await sheet.append_row(message.to_row())
        except Exception as e:
            raise PersistenceError(f"Failed to save {message.kind.value} message for {message.user_id}: {e}") from e

    async def query_messages_by_user(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Message]:
        """
        Returns the user's messages, most recent first, at most `limit` of them.
        """
        if limit <= 0:
            return []

        try:
            sheet = await self.workbook.ensure_sheet(MESSAGES_SHEET)
            rows = await sheet.get_data_rows()
        except Exception as e:
            raise PersistenceError(f"Failed to read messages for {user_id}: {e}") from e

        messages = []
        for row_number, values in rows:
            if not values or str(values[0]) != user_id:
                continue
            try:
                messages.append(Message.from_row(values))
            except ValueError as e:
                logger.warning(f"Skipping malformed message row {row_number}: {e}")

        messages.sort(key=lambda m: m.timestamp, reverse=True)
        return messages[:limit]

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def append_log(self, level: str, text: str) -> None:
        """
        Writes one Logs row. Never raises; failures go to the fallback logger.
        """
        try:
            sheet = await self.workbook.ensure_sheet(LOGS_SHEET)
            await sheet.append_row([to_cell(utcnow()), level, text])
        except Exception as e:
            get_fallback_logger().error(f"Failed to save log to sheet: {e}")
