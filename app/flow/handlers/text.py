"""
app/flow/handlers/text.py

Handles: text message events

- Logs the message to the Messages sheet
- Loads or creates the user (state INITIAL)
- Advances the registration flow under the per-user lock
- Replies, splitting long text when needed
"""

from app.flow.context import BotContext
from app.flow.handlers.registration import advance_registration
from app.flow.states import get_state_metadata
from app.models.message import Message, MessageKind
from app.models.user import User
from app.schemas.webhook import InboundEvent
from app.core.logging import get_logger, LogContext
from utils.line_utils import truncate

logger = get_logger(__name__)


async def handle_text(event: InboundEvent, ctx: BotContext) -> None:
    """
    Processes one text message.

    Raises:
        PersistenceError: If the message or user cannot be stored
    """
    user_id = event.user_id
    text = event.message.text if event.message else None

    if not user_id or not text:
        logger.info("Text event without user id or text, ignoring")
        return

    with LogContext(user_id=user_id, event_type="text"):
        logger.info(f"TextHandler handling message: {truncate(text, 100)}")

        await ctx.store.append_message(
            Message(user_id=user_id, kind=MessageKind.TEXT, content={"text": text})
        )

        async with ctx.store.user_lock(user_id):
            user = await ctx.store.find_user_by_id(user_id)
            if user is None:
                user = await ctx.store.upsert_user(User(user_id=user_id))
                logger.info("Created new user")

            logger.debug(f"Current state: {get_state_metadata(user.state).display_name}")
            _, reply = await advance_registration(user, text, ctx)

        if not event.reply_token:
            logger.warning("No reply token, reply skipped")
            return

        await ctx.line.send_long_message(user_id, event.reply_token, reply)
