"""
app/flow/handlers/registration.py

Handles: registration state machine (INITIAL → WAITING_NAME → WAITING_AGE → REGISTERED)

- One step function per state, each returning the reply, the next state
  and the attributes to merge into the user's data map
- Persists the user whenever the state or its data changes
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Tuple

from app.flow.context import BotContext
from app.flow.states import ConversationState, is_valid_transition
from app.models.user import User
from app.core.logging import get_logger
from utils.constants import (
    WELCOME_MESSAGE,
    HELP_MESSAGE,
    DEFAULT_RESPONSE_MESSAGE,
    REGISTRATION_START_MESSAGE,
    INVALID_NAME_MESSAGE,
    NAME_CONFIRMED_MESSAGE,
    INVALID_AGE_MESSAGE,
    REGISTRATION_COMPLETED_MESSAGE,
)
from utils.line_utils import format_message
from utils.validation_utils import validate_name, validate_age

logger = get_logger(__name__)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one input in one state."""
    template: str
    next_state: ConversationState
    attributes: Dict[str, Any] = field(default_factory=dict)


def handle_initial(user: User, text: str, ctx: BotContext) -> StepResult:
    if text == ctx.settings.REGISTER_KEYWORD:
        return StepResult(REGISTRATION_START_MESSAGE, ConversationState.WAITING_NAME)
    if text == ctx.settings.HELP_KEYWORD:
        return StepResult(HELP_MESSAGE, ConversationState.INITIAL)
    return StepResult(WELCOME_MESSAGE, ConversationState.INITIAL)


def handle_waiting_name(user: User, text: str, ctx: BotContext) -> StepResult:
    if not validate_name(text):
        return StepResult(INVALID_NAME_MESSAGE, ConversationState.WAITING_NAME)

    # Stored verbatim, only the length check trims
    return StepResult(NAME_CONFIRMED_MESSAGE, ConversationState.WAITING_AGE, {"name": text})


def handle_waiting_age(user: User, text: str, ctx: BotContext) -> StepResult:
    is_valid, age = validate_age(text)
    if not is_valid:
        return StepResult(INVALID_AGE_MESSAGE, ConversationState.WAITING_AGE)

    return StepResult(REGISTRATION_COMPLETED_MESSAGE, ConversationState.REGISTERED, {"age": age})


def handle_registered(user: User, text: str, ctx: BotContext) -> StepResult:
    if text == ctx.settings.HELP_KEYWORD:
        return StepResult(HELP_MESSAGE, ConversationState.REGISTERED)
    return StepResult(DEFAULT_RESPONSE_MESSAGE, ConversationState.REGISTERED)


STATE_HANDLERS: Dict[ConversationState, Callable[[User, str, BotContext], StepResult]] = {
    ConversationState.INITIAL: handle_initial,
    ConversationState.WAITING_NAME: handle_waiting_name,
    ConversationState.WAITING_AGE: handle_waiting_age,
    ConversationState.REGISTERED: handle_registered,
}


def evaluate(user: User, text: str, ctx: BotContext) -> StepResult:
    """
    Applies the transition table without side effects.

    Raises:
        ValueError: If the step produced a transition the table forbids
    """
    result = STATE_HANDLERS[user.state](user, text, ctx)
    if not is_valid_transition(user.state, result.next_state):
        raise ValueError(f"Invalid state transition: {user.state.value} -> {result.next_state.value}")
    return result


def render_reply(result: StepResult, user: User, ctx: BotContext) -> str:
    """Fills the reply template from the user's data (missing name → empty)."""
    params = ctx.message_params(**{"name": "", **user.data})
    return format_message(result.template, params)


async def advance_registration(user: User, text: str, ctx: BotContext) -> Tuple[User, str]:
    """
    Runs one step of the registration flow for a text input.

    State and data are written in a single upsert; inputs that leave both
    unchanged (help, validation errors, default replies) write nothing.

    Returns:
        (user as stored, reply text)
    """
    result = evaluate(user, text, ctx)

    if result.next_state != user.state or result.attributes:
        updated = user.transition(result.next_state, **result.attributes)
        user = await ctx.store.upsert_user(updated)
        logger.info(
            f"State updated: {result.next_state.value}",
            extra={"state": user.state.value}
        )

    return user, render_reply(result, user, ctx)
