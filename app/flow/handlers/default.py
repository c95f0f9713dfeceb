"""
app/flow/handlers/default.py

Handles: every event without a dedicated handler
(follow, unfollow, join, stickers, videos, ...)

Only logs; the reply token is left unused.
"""

from app.flow.context import BotContext
from app.schemas.webhook import InboundEvent
from app.core.logging import get_logger

logger = get_logger(__name__)


async def handle_default(event: InboundEvent, ctx: BotContext) -> None:
    kind = event.type
    if event.message_type:
        kind = f"{kind}/{event.message_type}"

    logger.info(f"DefaultHandler handling event type: {kind}")

    if event.reply_token:
        logger.debug(f"DefaultHandler leaving reply token unused for {kind}")
