"""
app/services/line_service.py

Purpose: LINE Messaging API client

- Reply (single use per reply token) and push text messages
- Splits long text into several rate-limited messages
- Loading animation
- Downloads message content (images)

Outbound calls never raise: status code and body are returned as an
ApiResult and non-2xx responses are logged as errors.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from app.core.config import Settings
from app.core.logging import get_logger
from utils.constants import CONTINUED_MARKER
from utils.line_utils import create_text_message, split_message, extension_from_mime_type, truncate

logger = get_logger(__name__)

REPLY_PATH = "/v2/bot/message/reply"
PUSH_PATH = "/v2/bot/message/push"
LOADING_PATH = "/v2/bot/chat/loading/start"
CONTENT_PATH = "/v2/bot/message/{message_id}/content"


@dataclass(frozen=True)
class ApiResult:
    code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.code < 300


@dataclass(frozen=True)
class ContentBlob:
    data: bytes
    content_type: str
    name: str


class LineService:
    """Service for sending messages through the LINE Messaging API"""

    def __init__(
        self,
        access_token: Optional[str],
        api_base_url: str = "https://api.line.me",
        data_api_base_url: str = "https://api-data.line.me",
        timeout: float = 10.0,
        max_message_length: int = 4000,
        push_interval: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.access_token = access_token or ""
        self.api_base_url = api_base_url.rstrip("/")
        self.data_api_base_url = data_api_base_url.rstrip("/")
        self.timeout = timeout
        self.max_message_length = max_message_length
        self.push_interval = push_interval
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

        if not self.access_token:
            logger.warning("LINE channel access token is not configured; outbound calls will be rejected")

    @classmethod
    def from_settings(cls, config: Settings, **kwargs) -> "LineService":
        return cls(
            access_token=config.LINE_CHANNEL_ACCESS_TOKEN,
            api_base_url=config.LINE_API_BASE_URL,
            data_api_base_url=config.LINE_DATA_API_BASE_URL,
            timeout=config.LINE_API_TIMEOUT,
            max_message_length=config.MAX_MESSAGE_LENGTH,
            push_interval=config.PUSH_INTERVAL_SECONDS,
            **kwargs,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def reply_text(self, reply_token: str, text: str) -> ApiResult:
        """
        Replies to an event. A reply token is valid for one reply only;
        the caller must not reuse it.
        """
        payload = {
            "replyToken": reply_token,
            "messages": [create_text_message(text)],
        }
        return await self._post(f"{self.api_base_url}{REPLY_PATH}", payload)

    async def push_text(self, user_id: str, text: str) -> ApiResult:
        """Sends a text message to a user at any time (not tied to an event)."""
        payload = {
            "to": user_id,
            "messages": [create_text_message(text)],
        }
        return await self._post(f"{self.api_base_url}{PUSH_PATH}", payload)

    async def send_long_message(self, user_id: str, reply_token: str, text: str) -> bool:
        """
        Sends text of any length.

        The first part goes out as the reply; every further part is pushed
        with CONTINUED_MARKER prefixed, waiting push_interval seconds before
        each push. A failed send stops the remaining parts.

        Returns:
            True if every part was accepted by the platform
        """
        parts = split_message(text, self.max_message_length)

        result = await self.reply_text(reply_token, parts[0])
        if not result.ok:
            logger.error(f"Long message aborted: reply failed with {result.code}", extra={"user_id": user_id})
            return False

        for index, part in enumerate(parts[1:], start=2):
            await self._sleep(self.push_interval)

            result = await self.push_text(user_id, CONTINUED_MARKER + part)
            if not result.ok:
                logger.error(
                    f"Long message aborted at part {index}/{len(parts)}: push failed with {result.code}",
                    extra={"user_id": user_id}
                )
                return False

        if len(parts) > 1:
            logger.info(f"Sent long message in {len(parts)} parts", extra={"user_id": user_id})
        return True

    async def send_loading_animation(self, user_id: str, loading_seconds: int = 20) -> ApiResult:
        """Shows the loading (typing) indicator in the user's chat."""
        payload = {
            "chatId": user_id,
            "loadingSeconds": loading_seconds,
        }
        return await self._post(f"{self.api_base_url}{LOADING_PATH}", payload)

    async def get_content(self, message_id: str) -> Optional[ContentBlob]:
        """
        Downloads the binary content of a message (image, video, ...).

        Returns:
            ContentBlob, or None on a non-200 response or transport error
        """
        url = f"{self.data_api_base_url}{CONTENT_PATH.format(message_id=message_id)}"

        try:
            response = await self.client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Error getting content {message_id}: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"Error getting content {message_id}: {response.status_code} - {truncate(response.text, 200)}")
            return None

        content_type = response.headers.get("Content-Type", "application/octet-stream")
        return ContentBlob(
            data=response.content,
            content_type=content_type,
            name=f"line_image_{message_id}.{extension_from_mime_type(content_type)}",
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, url: str, payload: Dict[str, Any]) -> ApiResult:
        """
        POSTs a JSON payload with bearer auth.

        Transport failures are reported as code 500 with the error text.
        """
        try:
            response = await self.client.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"LINE API request failed: {url} - {e}")
            return ApiResult(code=500, body=str(e))

        result = ApiResult(code=response.status_code, body=response.text)
        logger.debug(f"LINE API response code: {result.code}")

        if not result.ok:
            logger.error(f"LINE API error: {result.code} - {truncate(result.body, 500)}")

        return result
