from pydantic import BaseModel
from typing import Optional, Any

APP_VERSION = "1.0.0"
HEALTH_MESSAGE = "This is a LINE Webhook endpoint. Please use POST method."


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    details: Optional[Any] = None


class HealthResponse(BaseModel):
    """
    Liveness payload returned by the GET endpoints.
    """
    status: str = "ok"
    message: str = HEALTH_MESSAGE
    version: str = APP_VERSION


class WebhookAck(BaseModel):
    status: str = "success"
    events: int = 0
    failed: int = 0
