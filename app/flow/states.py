"""
app/flow/states.py

Purpose: Defines all conversation states

- Enum for each step of the registration flow
  (INITIAL, WAITING_NAME, WAITING_AGE, REGISTERED)
- Single source of truth for flow stages
- State transition validation
- Metadata for each state
"""

from enum import Enum
from typing import Dict, List, Optional
from dataclasses import dataclass


class ConversationState(str, Enum):
    """
    Defines all possible states in the registration conversation.
    Each state represents a specific step in the user journey.
    """

    INITIAL = "INITIAL"
    WAITING_NAME = "WAITING_NAME"
    WAITING_AGE = "WAITING_AGE"
    REGISTERED = "REGISTERED"


@dataclass
class StateMetadata:
    """
    Metadata associated with each conversation state.
    """
    name: ConversationState
    display_name: str
    step_number: Optional[int] = None
    total_steps: int = 2
    description: str = ""


STATE_METADATA: Dict[ConversationState, StateMetadata] = {
    ConversationState.INITIAL: StateMetadata(
        name=ConversationState.INITIAL,
        display_name="Welcome",
        description="Unregistered user; waits for the register keyword"
    ),
    ConversationState.WAITING_NAME: StateMetadata(
        name=ConversationState.WAITING_NAME,
        display_name="Enter Name",
        step_number=1,
        description="Collect a name of at least 2 characters"
    ),
    ConversationState.WAITING_AGE: StateMetadata(
        name=ConversationState.WAITING_AGE,
        display_name="Enter Age",
        step_number=2,
        description="Collect an integer age between 1 and 120"
    ),
    ConversationState.REGISTERED: StateMetadata(
        name=ConversationState.REGISTERED,
        display_name="Registered",
        description="Registration complete"
    ),
}


# Valid state transitions (self-loops cover validation retries and help)
STATE_TRANSITIONS: Dict[ConversationState, List[ConversationState]] = {
    ConversationState.INITIAL: [
        ConversationState.INITIAL,
        ConversationState.WAITING_NAME,
    ],
    ConversationState.WAITING_NAME: [
        ConversationState.WAITING_NAME,
        ConversationState.WAITING_AGE,
    ],
    ConversationState.WAITING_AGE: [
        ConversationState.WAITING_AGE,
        ConversationState.REGISTERED,
    ],
    ConversationState.REGISTERED: [
        ConversationState.REGISTERED,
    ],
}


def parse_state(value: Optional[str]) -> ConversationState:
    """
    Converts a stored state string into a ConversationState.

    Raises:
        ValueError: If the value is not one of the four states
    """
    if isinstance(value, ConversationState):
        return value
    return ConversationState(str(value).strip())


def is_valid_transition(from_state: ConversationState, to_state: ConversationState) -> bool:
    """
    Checks if a state transition is valid.

    Args:
        from_state: Current state
        to_state: Target state

    Returns:
        True if transition is allowed, False otherwise
    """
    return to_state in STATE_TRANSITIONS.get(from_state, [])


def get_state_metadata(state: ConversationState) -> StateMetadata:
    return STATE_METADATA[state]

