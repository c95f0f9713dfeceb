"""
app/flow/dispatcher.py

Purpose: Central event dispatcher

- Receives normalized events from the webhook
- Selects one handler per event from a fixed lookup table
- Isolates failures: a failing event is logged (and answered with a
  generic error when it carries a reply token) without stopping the batch
"""

from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from app.flow.context import BotContext
from app.flow.handlers.default import handle_default
from app.flow.handlers.image import handle_image
from app.flow.handlers.postback import handle_postback
from app.flow.handlers.text import handle_text
from app.schemas.webhook import InboundEvent
from app.core.logging import get_logger, LogContext
from utils.constants import ERROR_MESSAGE

logger = get_logger(__name__)

Handler = Callable[[InboundEvent, BotContext], Awaitable[None]]

# Matches any message type for the event type
ANY_MESSAGE_TYPE = "*"

# (event type, message type) -> handler; first lookup on the exact pair,
# then on (event type, ANY_MESSAGE_TYPE), otherwise the default handler
HANDLER_REGISTRY: Dict[Tuple[str, Optional[str]], Handler] = {
    ("message", "text"): handle_text,
    ("message", "image"): handle_image,
    ("postback", ANY_MESSAGE_TYPE): handle_postback,
}


def select_handler(event: InboundEvent) -> Handler:
    """
    Returns the handler for an event.

    Args:
        event: Normalized webhook event

    Returns:
        handle_text, handle_image, handle_postback or handle_default
    """
    handler = HANDLER_REGISTRY.get((event.type, event.message_type))
    if handler is None:
        handler = HANDLER_REGISTRY.get((event.type, ANY_MESSAGE_TYPE), handle_default)
    return handler


async def dispatch_event(event: InboundEvent, ctx: BotContext) -> bool:
    """
    Runs the selected handler for one event.

    Returns:
        True if the handler completed, False if it raised
    """
    handler = select_handler(event)

    with LogContext(event_type=event.type):
        try:
            logger.debug(f"📞 Calling handler: {handler.__name__}")
            await handler(event, ctx)
            return True

        except Exception as e:
            logger.error(f"❌ Handler error in {handler.__name__}: {e}", exc_info=True)

            if event.reply_token:
                result = await ctx.line.reply_text(event.reply_token, ERROR_MESSAGE)
                if not result.ok:
                    logger.warning(f"Error reply was not delivered ({result.code})")

            return False


async def dispatch_events(events: List[InboundEvent], ctx: BotContext) -> Dict[str, int]:
    """
    Dispatches a webhook batch sequentially.

    Returns:
        {"handled": n, "failed": m}
    """
    summary = {"handled": 0, "failed": 0}

    for event in events:
        if await dispatch_event(event, ctx):
            summary["handled"] += 1
        else:
            summary["failed"] += 1

    logger.info(f"📨 Processed {len(events)} events ({summary['failed']} failed)")
    return summary
