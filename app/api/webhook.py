"""
app/api/webhook.py

Purpose: LINE webhook endpoint

- Verifies the X-Line-Signature header when a channel secret is configured
- Parses the body into normalized events (malformed bodies → no events)
- Passes every event to the dispatcher
- Always acknowledges with 200 so the platform does not redeliver
"""

import base64
import hashlib
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from app.core.exceptions import AuthenticationError
from app.core.logging import get_logger
from app.flow.context import BotContext
from app.flow.dispatcher import dispatch_events
from app.schemas.response import HealthResponse, WebhookAck
from app.schemas.webhook import parse_webhook_body

logger = get_logger(__name__)
router = APIRouter()


def get_bot_context(request: Request) -> BotContext:
    """Returns the services built at startup."""
    return request.app.state.bot_context


def verify_signature(body: bytes, signature: Optional[str], channel_secret: str) -> bool:
    """
    Checks X-Line-Signature: base64(HMAC-SHA256(channel_secret, body)).
    """
    if not signature:
        return False
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(expected, signature)


@router.post("/webhook", response_model=WebhookAck)
async def webhook_handler(
    request: Request,
    x_line_signature: Optional[str] = Header(None),
    ctx: BotContext = Depends(get_bot_context),
):
    """
    Receives a batch of LINE events.

    Per-event failures are handled by the dispatcher and never turn into
    an error response.
    """
    body = await request.body()

    secret = ctx.settings.LINE_CHANNEL_SECRET
    if secret and not verify_signature(body, x_line_signature, secret):
        logger.warning("Rejected webhook with invalid signature")
        raise AuthenticationError("Invalid webhook signature")

    events = parse_webhook_body(body)
    logger.info(f"Received {len(events)} events")

    summary = await dispatch_events(events, ctx)

    return WebhookAck(events=len(events), failed=summary["failed"])


@router.get("/webhook", response_model=HealthResponse)
async def webhook_verification():
    """
    Liveness check for the webhook URL.
    """
    return HealthResponse()
