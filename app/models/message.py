"""
app/models/message.py

Purpose: Message audit record

- Append-only log of inbound text / image / postback events
- Kind-specific JSON content
- Used for history only, never for conversation logic
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from utils.time_utils import utcnow, to_cell, parse_cell_datetime

MESSAGE_SHEET_HEADERS = ["userId", "type", "content", "timestamp"]


class MessageKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    POSTBACK = "postback"


class Message(BaseModel):
    model_config = {"frozen": True}

    user_id: str
    kind: MessageKind
    content: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    def to_row(self) -> List[Any]:
        return [
            self.user_id,
            self.kind.value,
            json.dumps(self.content, ensure_ascii=False),
            to_cell(self.timestamp),
        ]

    @classmethod
    def from_row(cls, row: List[Any]) -> "Message":
        user_id, kind, content, timestamp = (list(row) + [None] * 4)[:4]
        return cls(
            user_id=str(user_id),
            kind=MessageKind(kind),
            content=json.loads(content or "{}"),
            timestamp=parse_cell_datetime(timestamp) or utcnow(),
        )
