import asyncio

import httpx

from app.core.logging import LogContext
from app.services.line_service import LineService, REPLY_PATH, PUSH_PATH, LOADING_PATH
from utils.constants import CONTINUED_MARKER


def test_reply_sends_bearer_json(line, platform):
    result = asyncio.run(line.reply_text("rt-1", "hello"))

    assert result.ok
    request = platform.requests[0]
    assert request.url.path == REPLY_PATH
    assert request.url.host == "api.line.me"
    assert request.headers["Authorization"] == "Bearer test-token"
    assert request.headers["Content-Type"].startswith("application/json")
    assert platform.sent(REPLY_PATH) == [
        {"replyToken": "rt-1", "messages": [{"type": "text", "text": "hello"}]}
    ]


def test_push_targets_user(line, platform):
    asyncio.run(line.push_text("U1", "hi"))

    assert platform.sent(PUSH_PATH) == [{"to": "U1", "messages": [{"type": "text", "text": "hi"}]}]


def test_error_status_is_returned_not_raised(line, platform):
    platform.status_codes = [400]

    result = asyncio.run(line.reply_text("rt-1", "hello"))

    assert result.code == 400
    assert not result.ok
    assert "error" in result.body


def test_transport_failure_is_reported_as_500(fake_sleep):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    line = LineService("token", transport=httpx.MockTransport(refuse), sleep=fake_sleep)

    result = asyncio.run(line.push_text("U1", "hi"))

    assert result.code == 500
    assert "connection refused" in result.body


def test_short_message_is_a_single_reply(line, platform, fake_sleep):
    assert asyncio.run(line.send_long_message("U1", "rt-1", "short")) is True

    assert len(platform.requests) == 1
    assert platform.sent(REPLY_PATH)[0]["messages"][0]["text"] == "short"
    assert fake_sleep.calls == []


def test_long_message_is_split_into_reply_and_pushes(line, platform, fake_sleep):
    text = "a" * 4000 + "b" * 4000 + "c" * 1000

    assert asyncio.run(line.send_long_message("U1", "rt-1", text)) is True

    replies = platform.sent(REPLY_PATH)
    pushes = platform.sent(PUSH_PATH)
    assert len(replies) == 1
    assert len(pushes) == 2

    first = replies[0]["messages"][0]["text"]
    second = pushes[0]["messages"][0]["text"]
    third = pushes[1]["messages"][0]["text"]

    assert first == "a" * 4000
    assert second == CONTINUED_MARKER + "b" * 4000
    assert third == CONTINUED_MARKER + "c" * 1000
    assert pushes[0]["to"] == "U1"

    rebuilt = first + second[len(CONTINUED_MARKER):] + third[len(CONTINUED_MARKER):]
    assert rebuilt == text

    assert fake_sleep.calls == [0.5, 0.5]


def test_exactly_max_length_is_not_split(line, platform):
    asyncio.run(line.send_long_message("U1", "rt-1", "x" * 4000))

    assert len(platform.requests) == 1


def test_long_message_stops_after_failed_reply(line, platform):
    platform.status_codes = [400]

    assert asyncio.run(line.send_long_message("U1", "rt-1", "x" * 8001)) is False

    assert len(platform.requests) == 1


def test_long_message_stops_after_failed_push(line, platform):
    platform.status_codes = [200, 429]

    assert asyncio.run(line.send_long_message("U1", "rt-1", "x" * 12001)) is False

    assert len(platform.sent(PUSH_PATH)) == 1


def test_long_message_inside_user_log_context(line, platform, log_records):
    async def scenario():
        with LogContext(user_id="U1", event_type="text"):
            return await line.send_long_message("U1", "rt-1", "x" * 9000)

    assert asyncio.run(scenario()) is True

    assert len(platform.sent(PUSH_PATH)) == 2
    record = log_records.find("Sent long message in 3 parts")
    assert record.user_id == "U1"
    assert record.event_type == "text"


def test_aborted_long_message_inside_user_log_context(line, platform, log_records):
    platform.status_codes = [200, 429]

    async def scenario():
        with LogContext(user_id="U1", event_type="text"):
            return await line.send_long_message("U1", "rt-1", "x" * 9000)

    assert asyncio.run(scenario()) is False

    record = log_records.find("Long message aborted at part 2/3: push failed with 429")
    assert record.user_id == "U1"


def test_loading_animation_payload(line, platform):
    asyncio.run(line.send_loading_animation("U1", 20))

    assert platform.sent(LOADING_PATH) == [{"chatId": "U1", "loadingSeconds": 20}]


def test_get_content_returns_blob(line, platform):
    platform.content_type = "image/png"

    blob = asyncio.run(line.get_content("m-42"))

    request = platform.requests[0]
    assert request.url.host == "api-data.line.me"
    assert request.url.path == "/v2/bot/message/m-42/content"
    assert request.headers["Authorization"] == "Bearer test-token"
    assert blob.data == platform.content
    assert blob.content_type == "image/png"
    assert blob.name == "line_image_m-42.png"


def test_get_content_not_found_returns_none(line, platform):
    platform.status_codes = [404]

    assert asyncio.run(line.get_content("m-404")) is None
