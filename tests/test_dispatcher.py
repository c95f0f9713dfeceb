import asyncio
from unittest.mock import AsyncMock, patch

from app.flow import dispatcher
from app.flow.dispatcher import dispatch_events, select_handler
from app.flow.handlers.default import handle_default
from app.flow.handlers.image import handle_image
from app.flow.handlers.postback import handle_postback
from app.flow.handlers.text import handle_text
from app.flow.states import ConversationState
from app.models.message import MessageKind
from app.schemas.webhook import InboundEvent
from app.services.line_service import REPLY_PATH, LOADING_PATH
from utils.constants import ERROR_MESSAGE, UNKNOWN_ACTION_MESSAGE


def make_event(**overrides):
    raw = {
        "type": "message",
        "replyToken": "rt",
        "source": {"type": "user", "userId": "U1"},
        "timestamp": 1700000000000,
    }
    raw.update(overrides)
    return InboundEvent.model_validate(raw)


def test_select_handler_by_event_kind():
    assert select_handler(make_event(message={"id": "1", "type": "text", "text": "hi"})) is handle_text
    assert select_handler(make_event(message={"id": "1", "type": "image"})) is handle_image
    assert select_handler(make_event(type="postback", postback={"data": "action=help"})) is handle_postback
    assert select_handler(make_event(message={"id": "1", "type": "sticker"})) is handle_default
    assert select_handler(make_event(type="follow")) is handle_default
    assert select_handler(make_event(type="somethingNew")) is handle_default


def test_text_event_flows_to_registration(ctx, platform):
    events = [make_event(message={"id": "1", "type": "text", "text": "register"})]

    summary = asyncio.run(dispatch_events(events, ctx))

    assert summary == {"handled": 1, "failed": 0}
    user = asyncio.run(ctx.store.find_user_by_id("U1"))
    assert user.state == ConversationState.WAITING_NAME
    assert len(platform.sent(REPLY_PATH)) == 1


def test_state_change_is_logged_with_user_context(ctx, platform, log_records):
    events = [make_event(message={"id": "1", "type": "text", "text": "register"})]

    summary = asyncio.run(dispatch_events(events, ctx))

    assert summary == {"handled": 1, "failed": 0}
    assert "What is your name?" in platform.sent(REPLY_PATH)[0]["messages"][0]["text"]

    record = log_records.find("State updated: WAITING_NAME")
    assert record.user_id == "U1"
    assert record.event_type == "text"
    assert record.state == "WAITING_NAME"


def test_image_event_logs_message_and_downloads(ctx, platform):
    events = [make_event(message={"id": "m-7", "type": "image", "contentProvider": {"type": "line"}})]

    asyncio.run(dispatch_events(events, ctx))

    history = asyncio.run(ctx.store.query_messages_by_user("U1"))
    assert history[0].kind == MessageKind.IMAGE
    assert history[0].content == {"messageId": "m-7"}

    assert platform.sent(LOADING_PATH) == [{"chatId": "U1", "loadingSeconds": 20}]
    assert [r.url.path for r in platform.requests if r.method == "GET"] == ["/v2/bot/message/m-7/content"]
    assert platform.sent(REPLY_PATH) == []


def test_external_image_is_not_downloaded(ctx, platform):
    events = [make_event(message={
        "id": "m-8",
        "type": "image",
        "contentProvider": {"type": "external", "originalContentUrl": "https://example.com/a.jpg"},
    })]

    asyncio.run(dispatch_events(events, ctx))

    assert [r.method for r in platform.requests] == ["POST"]


def test_postback_help_replies_with_help(ctx, platform):
    events = [make_event(type="postback", postback={"data": "action=help&item=a%20b"})]

    asyncio.run(dispatch_events(events, ctx))

    reply = platform.sent(REPLY_PATH)[0]["messages"][0]["text"]
    assert "Help" in reply

    history = asyncio.run(ctx.store.query_messages_by_user("U1"))
    assert history[0].kind == MessageKind.POSTBACK
    assert history[0].content["postbackData"] == "action=help&item=a%20b"
    assert history[0].content["params"] == {"action": "help", "item": "a b"}


def test_postback_unknown_action(ctx, platform):
    events = [make_event(type="postback", postback={"data": "action=buy"})]

    asyncio.run(dispatch_events(events, ctx))

    assert platform.sent(REPLY_PATH)[0]["messages"][0]["text"] == UNKNOWN_ACTION_MESSAGE


def test_default_handler_does_not_reply(ctx, platform):
    events = [
        make_event(type="follow"),
        make_event(message={"id": "1", "type": "sticker"}),
    ]

    summary = asyncio.run(dispatch_events(events, ctx))

    assert summary == {"handled": 2, "failed": 0}
    assert platform.requests == []


def test_failing_event_gets_error_reply_and_batch_continues(ctx, platform):
    events = [
        make_event(replyToken="rt-1", message={"id": "1", "type": "text", "text": "register"}),
        make_event(replyToken="rt-2", source={"type": "user", "userId": "U2"},
                   message={"id": "2", "type": "text", "text": "register"}),
    ]

    broken = AsyncMock(side_effect=[RuntimeError("boom"), None])
    broken.__name__ = "broken"
    with patch.dict(dispatcher.HANDLER_REGISTRY, {("message", "text"): broken}):
        summary = asyncio.run(dispatch_events(events, ctx))

    assert summary == {"handled": 1, "failed": 1}
    assert broken.await_count == 2
    assert platform.sent(REPLY_PATH) == [
        {"replyToken": "rt-1", "messages": [{"type": "text", "text": ERROR_MESSAGE}]}
    ]


def test_failure_without_reply_token_sends_nothing(ctx, platform):
    events = [make_event(replyToken=None, message={"id": "1", "type": "text", "text": "hi"})]

    broken = AsyncMock(side_effect=RuntimeError("boom"))
    broken.__name__ = "broken"
    with patch.dict(dispatcher.HANDLER_REGISTRY, {("message", "text"): broken}):
        summary = asyncio.run(dispatch_events(events, ctx))

    assert summary["failed"] == 1
    assert platform.requests == []


def test_store_failure_is_isolated(ctx, platform):
    ctx.store.append_message = AsyncMock(side_effect=RuntimeError("sheet down"))
    events = [make_event(message={"id": "1", "type": "text", "text": "hi"})]

    summary = asyncio.run(dispatch_events(events, ctx))

    assert summary["failed"] == 1
    assert platform.sent(REPLY_PATH)[0]["messages"][0]["text"] == ERROR_MESSAGE
