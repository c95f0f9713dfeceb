"""
app/schemas/webhook.py

Purpose: LINE webhook payload schemas and parsers

- Validates incoming webhook bodies
- Normalizes events into InboundEvent objects
- Never raises on malformed bodies (returns no events instead)
"""

import json
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import Any, Dict, List, Literal, Optional, Union

from app.core.logging import get_logger

logger = get_logger(__name__)

EventType = Literal[
    "message",
    "follow",
    "unfollow",
    "join",
    "leave",
    "memberJoined",
    "memberLeft",
    "postback",
    "beacon",
    "accountLink",
    "things",
]


class LineModel(BaseModel):
    """Base model: camelCase aliases as sent by the platform, extra fields ignored."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EventSource(LineModel):
    type: Literal["user", "group", "room"] = "user"
    user_id: Optional[str] = Field(default=None, alias="userId")
    group_id: Optional[str] = Field(default=None, alias="groupId")
    room_id: Optional[str] = Field(default=None, alias="roomId")


class ContentProvider(LineModel):
    type: Literal["line", "external"] = "line"
    original_content_url: Optional[str] = Field(default=None, alias="originalContentUrl")
    preview_image_url: Optional[str] = Field(default=None, alias="previewImageUrl")


class EventMessage(LineModel):
    id: str
    type: str
    text: Optional[str] = None
    content_provider: Optional[ContentProvider] = Field(default=None, alias="contentProvider")


class Postback(LineModel):
    data: str = ""
    params: Optional[Dict[str, Any]] = None


class DeliveryContext(LineModel):
    is_redelivery: bool = Field(default=False, alias="isRedelivery")


class InboundEvent(LineModel):
    """
    Normalized webhook event.

    Unknown event types are kept as plain strings so that they reach the
    default handler instead of failing validation.
    """
    type: Union[EventType, str]
    reply_token: Optional[str] = Field(default=None, alias="replyToken")
    source: EventSource = Field(default_factory=EventSource)
    timestamp: int = 0
    mode: Literal["active", "standby"] = "active"
    message: Optional[EventMessage] = None
    postback: Optional[Postback] = None
    webhook_event_id: Optional[str] = Field(default=None, alias="webhookEventId")
    delivery_context: Optional[DeliveryContext] = Field(default=None, alias="deliveryContext")

    @property
    def user_id(self) -> Optional[str]:
        return self.source.user_id

    @property
    def message_type(self) -> Optional[str]:
        return self.message.type if self.message else None


def parse_events(payload: Any) -> List[InboundEvent]:
    """
    Builds InboundEvent objects from a decoded webhook body.

    Individual events that fail validation are skipped and logged; the rest
    of the batch is kept.
    """
    if not isinstance(payload, dict):
        return []

    raw_events = payload.get("events") or []
    if not isinstance(raw_events, list):
        logger.warning("Webhook 'events' is not a list, ignoring payload")
        return []

    events = []
    for index, raw in enumerate(raw_events):
        try:
            events.append(InboundEvent.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping malformed event #{index}: {e.error_count()} validation errors")
    return events


def parse_webhook_body(body: Union[bytes, str, None]) -> List[InboundEvent]:
    """
    Parses a raw webhook body into events.

    Absent body or JSON parse failure yields an empty list.
    """
    if not body:
        return []

    try:
        payload = json.loads(body)
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to parse webhook JSON: {e}")
        return []

    return parse_events(payload)
