import json
import logging
from typing import List

import httpx
import pytest

from app.core.config import Settings
from app.core.logging import APP_LOGGER_NAME, ContextFilter
from app.db.sheets import MemoryWorkbook
from app.flow.context import BotContext
from app.services.line_service import LineService
from app.services.store_service import StoreService


class RecordingPlatform:
    """
    Stands in for the LINE API: records every request and answers with
    the queued status codes (200 once the queue is empty).
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_codes: List[int] = []
        self.content = b"\xff\xd8\xff"
        self.content_type = "image/jpeg"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.status_codes.pop(0) if self.status_codes else 200

        if request.method == "GET":
            if status != 200:
                return httpx.Response(status, text="not found")
            return httpx.Response(200, content=self.content, headers={"Content-Type": self.content_type})

        return httpx.Response(status, json={} if status == 200 else {"message": "error"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def sent(self, path: str) -> List[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path == path]

    def sent_texts(self) -> List[str]:
        texts = []
        for request in self.requests:
            if request.method == "POST" and request.content:
                body = json.loads(request.content)
                texts.extend(m["text"] for m in body.get("messages", []))
        return texts


class FakeSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class RecordingHandler(logging.Handler):
    """Keeps every record it handles, stamped with the active LogContext."""

    def __init__(self):
        super().__init__(logging.DEBUG)
        self.records: List[logging.LogRecord] = []
        self.addFilter(ContextFilter())

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def find(self, message: str) -> logging.LogRecord:
        return next(r for r in self.records if r.getMessage() == message)


@pytest.fixture(autouse=True)
def production_log_level():
    """Runs every test with the root logger at INFO, the production default."""
    root = logging.getLogger()
    previous = root.level
    root.setLevel(logging.INFO)
    yield
    root.setLevel(previous)


@pytest.fixture
def test_settings():
    return Settings(
        ENVIRONMENT="testing",
        LINE_CHANNEL_ACCESS_TOKEN="test-token",
        LINE_CHANNEL_SECRET="test-secret",
        STORAGE_BACKEND="memory",
        AUDIT_LOG_ENABLED=False,
    )


@pytest.fixture
def platform():
    return RecordingPlatform()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def store():
    return StoreService(MemoryWorkbook())


@pytest.fixture
def line(test_settings, platform, fake_sleep):
    return LineService.from_settings(test_settings, transport=platform.transport(), sleep=fake_sleep)


@pytest.fixture
def ctx(store, line, test_settings):
    return BotContext(store=store, line=line, settings=test_settings)


@pytest.fixture
def log_records():
    handler = RecordingHandler()
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.addHandler(handler)
    yield handler
    app_logger.removeHandler(handler)
