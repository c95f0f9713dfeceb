"""
app/flow/context.py

Purpose: Services shared by the dispatcher and handlers

Built once at startup (see app/main.py) and passed explicitly to every
handler call.
"""

from dataclasses import dataclass

from app.core.config import Settings
from app.services.line_service import LineService
from app.services.store_service import StoreService


@dataclass
class BotContext:
    store: StoreService
    line: LineService
    settings: Settings

    def message_params(self, **extra) -> dict:
        """Placeholder values available to every reply template."""
        return {
            "register_keyword": self.settings.REGISTER_KEYWORD,
            "help_keyword": self.settings.HELP_KEYWORD,
            **extra,
        }
