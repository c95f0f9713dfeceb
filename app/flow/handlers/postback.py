"""
app/flow/handlers/postback.py

Handles: postback events (rich menu / button callbacks)

- Parses "key=value&..." postback data
- Logs data and parameters to the Messages sheet
- Replies according to the "action" parameter
"""

from app.flow.context import BotContext
from app.models.message import Message, MessageKind
from app.schemas.webhook import InboundEvent
from app.core.logging import get_logger, LogContext
from utils.constants import HELP_MESSAGE, UNKNOWN_ACTION_MESSAGE, POSTBACK_ACTION_HELP
from utils.line_utils import format_message, parse_postback_data

logger = get_logger(__name__)

POSTBACK_RESPONSES = {
    POSTBACK_ACTION_HELP: HELP_MESSAGE,
}


async def handle_postback(event: InboundEvent, ctx: BotContext) -> None:
    user_id = event.user_id
    postback_data = event.postback.data if event.postback else ""

    if not user_id or not postback_data:
        logger.info("Postback without user id or data, ignoring")
        return

    with LogContext(user_id=user_id, event_type="postback"):
        logger.info(f"PostbackHandler handling postback: {postback_data}")

        params = parse_postback_data(postback_data)
        content = {"postbackData": postback_data, "params": params}
        if event.postback.params:
            content["platformParams"] = event.postback.params

        await ctx.store.append_message(
            Message(user_id=user_id, kind=MessageKind.POSTBACK, content=content)
        )

        template = POSTBACK_RESPONSES.get(params.get("action"), UNKNOWN_ACTION_MESSAGE)

        if not event.reply_token:
            logger.warning("No reply token, reply skipped")
            return

        await ctx.line.reply_text(event.reply_token, format_message(template, ctx.message_params()))
