"""
app/db/sheets.py

Purpose: Row-oriented sheet storage

- Sheet / Workbook interfaces shared by all backends
- Sheet layout (Users, Messages, Logs) with a header row
- In-memory backend for development and tests

Rows are addressed 1-based: row 1 is the header, row 2 the first data row.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from app.models.message import MESSAGE_SHEET_HEADERS
from app.models.user import USER_SHEET_HEADERS

HEADER_ROW = 1
FIRST_DATA_ROW = 2


@dataclass(frozen=True)
class SheetConfig:
    name: str
    headers: List[str] = field(default_factory=list)

    @property
    def width(self) -> int:
        return len(self.headers)


USERS_SHEET = SheetConfig("Users", USER_SHEET_HEADERS)
MESSAGES_SHEET = SheetConfig("Messages", MESSAGE_SHEET_HEADERS)
LOGS_SHEET = SheetConfig("Logs", ["timestamp", "level", "message"])

SHEET_CONFIGS: Dict[str, SheetConfig] = {
    config.name: config for config in (USERS_SHEET, MESSAGES_SHEET, LOGS_SHEET)
}


class Sheet(ABC):
    """A single table of rows; row 1 holds the headers."""

    def __init__(self, config: SheetConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @abstractmethod
    async def get_values(self) -> List[List[Any]]:
        """Returns every row, header included, in row order."""

    async def get_data_rows(self) -> List[Tuple[int, List[Any]]]:
        """Returns (row_number, values) for every row below the header."""
        values = await self.get_values()
        return [(index + 1, row) for index, row in enumerate(values) if index + 1 >= FIRST_DATA_ROW]

    @abstractmethod
    async def get_row(self, row_number: int) -> List[Any]:
        """Returns one row, padded to the sheet width."""

    @abstractmethod
    async def append_row(self, values: List[Any]) -> int:
        """Appends a row and returns its row number."""

    @abstractmethod
    async def set_row(self, row_number: int, values: List[Any]) -> None:
        """Overwrites an existing row in place."""


class Workbook(ABC):
    """A set of named sheets created on demand."""

    @abstractmethod
    async def ensure_sheet(self, config: SheetConfig) -> Sheet:
        """Returns the sheet, creating it with its header row if missing."""

    async def initialize_sheets(self) -> None:
        for config in SHEET_CONFIGS.values():
            await self.ensure_sheet(config)


def pad_row(values: List[Any], width: int) -> List[Any]:
    return list(values) + [None] * (width - len(values))


class MemorySheet(Sheet):
    def __init__(self, config: SheetConfig):
        super().__init__(config)
        self._rows: List[List[Any]] = [list(config.headers)]

    async def get_values(self) -> List[List[Any]]:
        return [list(row) for row in self._rows]

    async def get_row(self, row_number: int) -> List[Any]:
        self._check_row(row_number)
        return pad_row(self._rows[row_number - 1], self.config.width)

    async def append_row(self, values: List[Any]) -> int:
        self._rows.append(list(values))
        return len(self._rows)

    async def set_row(self, row_number: int, values: List[Any]) -> None:
        self._check_row(row_number)
        if row_number == HEADER_ROW:
            raise IndexError(f"{self.name}: cannot overwrite the header row")
        self._rows[row_number - 1] = list(values)

    def _check_row(self, row_number: int) -> None:
        if row_number < 1 or row_number > len(self._rows):
            raise IndexError(f"{self.name}: row {row_number} out of range")


class MemoryWorkbook(Workbook):
    """Process-local workbook; contents are lost on restart."""

    def __init__(self):
        self._sheets: Dict[str, MemorySheet] = {}
        self._lock = asyncio.Lock()

    async def ensure_sheet(self, config: SheetConfig) -> Sheet:
        async with self._lock:
            sheet = self._sheets.get(config.name)
            if sheet is None:
                sheet = MemorySheet(config)
                self._sheets[config.name] = sheet
            return sheet
