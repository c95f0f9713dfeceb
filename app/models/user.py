"""
app/models/user.py

Purpose: User record model

- LINE user id (unique key) and display name
- Current conversation state
- Open attribute map collected during the flow (name, age, ...)
- Conversion to and from a Users sheet row
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.flow.states import ConversationState, parse_state
from utils.time_utils import utcnow, to_cell, parse_cell_datetime

USER_SHEET_HEADERS = ["userId", "displayName", "state", "data", "createdAt", "updatedAt"]


class User(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    state: ConversationState = ConversationState.INITIAL
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @property
    def name(self) -> Optional[str]:
        return self.data.get("name")

    def transition(self, new_state: ConversationState, **attributes: Any) -> "User":
        """
        Returns a copy in new_state with attributes merged into the data map.

        The copy is not persisted; the store stamps updated_at on write.
        """
        return self.model_copy(update={
            "state": new_state,
            "data": {**self.data, **attributes},
        })

    def to_row(self) -> List[Any]:
        return [
            self.user_id,
            self.display_name,
            self.state.value,
            json.dumps(self.data, ensure_ascii=False),
            to_cell(self.created_at),
            to_cell(self.updated_at),
        ]

    @classmethod
    def from_row(cls, row: List[Any]) -> "User":
        """
        Builds a User from a Users sheet row.

        Raises:
            ValueError: If the row is malformed (unknown state, bad JSON, bad dates)
        """
        cells = list(row) + [None] * (len(USER_SHEET_HEADERS) - len(row))
        user_id, display_name, state, data, created_at, updated_at = cells[:6]

        return cls(
            user_id=str(user_id),
            display_name=display_name or None,
            state=parse_state(state),
            data=json.loads(data) if data else {},
            created_at=parse_cell_datetime(created_at) or utcnow(),
            updated_at=parse_cell_datetime(updated_at),
        )
