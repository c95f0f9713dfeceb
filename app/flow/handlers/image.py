"""
app/flow/handlers/image.py

Handles: image message events

- Logs the message id to the Messages sheet
- Starts the loading animation in the user's chat
- Downloads the image content (platform-hosted images only)
"""

from app.flow.context import BotContext
from app.models.message import Message, MessageKind
from app.schemas.webhook import InboundEvent
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


async def handle_image(event: InboundEvent, ctx: BotContext) -> None:
    user_id = event.user_id
    message_id = event.message.id if event.message else None

    if not user_id or not message_id:
        logger.error("Missing userId or messageId")
        return

    with LogContext(user_id=user_id, event_type="image"):
        logger.info("ImageHandler handling image message")

        await ctx.store.append_message(
            Message(user_id=user_id, kind=MessageKind.IMAGE, content={"messageId": message_id})
        )

        await ctx.line.send_loading_animation(user_id, ctx.settings.LOADING_SECONDS)

        provider = event.message.content_provider
        if provider is not None and provider.type == "external":
            logger.info(f"Image {message_id} is hosted externally: {provider.original_content_url}")
            return

        await process_image(message_id, ctx)


async def process_image(message_id: str, ctx: BotContext) -> None:
    """Downloads the image from the platform and logs what was received."""
    blob = await ctx.line.get_content(message_id)
    if blob is None:
        logger.error("Failed to download image from LINE")
        return

    logger.info(f"Downloaded image: {blob.name}, size: {len(blob.data)} bytes")
