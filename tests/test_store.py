import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import PersistenceError
from app.db.sheets import MemoryWorkbook, USERS_SHEET, MESSAGES_SHEET, LOGS_SHEET
from app.flow.states import ConversationState
from app.models.message import Message, MessageKind
from app.models.user import User
from app.services.store_service import StoreService


def test_initialize_creates_sheets_with_headers(store):
    asyncio.run(store.initialize())

    for config in (USERS_SHEET, MESSAGES_SHEET, LOGS_SHEET):
        sheet = asyncio.run(store.workbook.ensure_sheet(config))
        values = asyncio.run(sheet.get_values())
        assert values == [config.headers]


def test_find_unknown_user_returns_none(store):
    assert asyncio.run(store.find_user_by_id("U404")) is None


def test_upsert_then_find_round_trip(store):
    user = User(user_id="U1", data={"name": "Taro", "age": 30}, state=ConversationState.REGISTERED)

    asyncio.run(store.upsert_user(user))
    found = asyncio.run(store.find_user_by_id("U1"))

    assert found.user_id == "U1"
    assert found.state == ConversationState.REGISTERED
    assert found.data == {"name": "Taro", "age": 30}
    assert found.created_at == user.created_at


def test_insert_keeps_updated_at_empty(store):
    asyncio.run(store.upsert_user(User(user_id="U1")))

    found = asyncio.run(store.find_user_by_id("U1"))
    assert found.updated_at is None


def test_overwrite_stamps_updated_at_and_keeps_one_row(store):
    asyncio.run(store.upsert_user(User(user_id="U1")))
    user = asyncio.run(store.find_user_by_id("U1"))

    stored = asyncio.run(store.upsert_user(user.transition(ConversationState.WAITING_NAME)))

    assert stored.updated_at is not None
    found = asyncio.run(store.find_user_by_id("U1"))
    assert found.state == ConversationState.WAITING_NAME
    assert found.updated_at == stored.updated_at

    sheet = asyncio.run(store.workbook.ensure_sheet(USERS_SHEET))
    rows = asyncio.run(sheet.get_data_rows())
    assert len(rows) == 1


def test_users_are_stored_independently(store):
    asyncio.run(store.upsert_user(User(user_id="U1", data={"name": "A1"})))
    asyncio.run(store.upsert_user(User(user_id="U2", data={"name": "B2"})))
    asyncio.run(store.upsert_user(User(user_id="U1", data={"name": "A1 changed"})))

    assert asyncio.run(store.find_user_by_id("U1")).name == "A1 changed"
    assert asyncio.run(store.find_user_by_id("U2")).name == "B2"


def test_lookup_sees_rows_written_by_another_store():
    workbook = MemoryWorkbook()
    first = StoreService(workbook)
    second = StoreService(workbook)

    asyncio.run(first.initialize())
    asyncio.run(second.initialize())
    asyncio.run(second.upsert_user(User(user_id="U9")))

    assert asyncio.run(first.find_user_by_id("U9")) is not None


def test_malformed_user_row_raises_persistence_error(store):
    sheet = asyncio.run(store.workbook.ensure_sheet(USERS_SHEET))
    asyncio.run(sheet.append_row(["U1", None, "NOT_A_STATE", "{}", None, None]))

    with pytest.raises(PersistenceError):
        asyncio.run(store.find_user_by_id("U1"))


def test_history_is_most_recent_first_and_limited(store):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    async def scenario():
        for minutes, text in ((1, "t1"), (2, "t2"), (3, "t3")):
            await store.append_message(Message(
                user_id="U1",
                kind=MessageKind.TEXT,
                content={"text": text},
                timestamp=base + timedelta(minutes=minutes),
            ))
        await store.append_message(Message(user_id="U2", kind=MessageKind.TEXT, content={"text": "other"}))
        return await store.query_messages_by_user("U1", limit=2)

    history = asyncio.run(scenario())

    assert [m.content["text"] for m in history] == ["t3", "t2"]


def test_history_with_non_positive_limit_is_empty(store):
    asyncio.run(store.append_message(Message(user_id="U1", kind=MessageKind.TEXT, content={"text": "hi"})))

    assert asyncio.run(store.query_messages_by_user("U1", limit=0)) == []


def test_history_skips_malformed_rows(store):
    sheet = asyncio.run(store.workbook.ensure_sheet(MESSAGES_SHEET))
    asyncio.run(sheet.append_row(["U1", "sticker", "{}", None]))
    asyncio.run(store.append_message(Message(user_id="U1", kind=MessageKind.IMAGE, content={"messageId": "m1"})))

    history = asyncio.run(store.query_messages_by_user("U1"))

    assert len(history) == 1
    assert history[0].kind == MessageKind.IMAGE


def test_append_log_writes_row(store):
    asyncio.run(store.append_log("INFO", "hello"))

    sheet = asyncio.run(store.workbook.ensure_sheet(LOGS_SHEET))
    rows = asyncio.run(sheet.get_data_rows())
    assert rows[0][1][1:] == ["INFO", "hello"]


def test_append_log_never_raises():
    class BrokenWorkbook(MemoryWorkbook):
        async def ensure_sheet(self, config):
            raise RuntimeError("sheet unavailable")

    store = StoreService(BrokenWorkbook())

    asyncio.run(store.append_log("ERROR", "lost"))


def test_append_message_failure_raises_persistence_error():
    class BrokenWorkbook(MemoryWorkbook):
        async def ensure_sheet(self, config):
            raise RuntimeError("sheet unavailable")

    store = StoreService(BrokenWorkbook())

    with pytest.raises(PersistenceError):
        asyncio.run(store.append_message(Message(user_id="U1", kind=MessageKind.TEXT)))
