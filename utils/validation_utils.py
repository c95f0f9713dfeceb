"""
utils/validation_utils.py

Purpose: Input validation

- Name length validation
- Age parsing (leading integer) and range validation
"""

import re
from typing import Optional, Tuple

from utils.constants import MIN_NAME_LENGTH, MIN_AGE, MAX_AGE

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def validate_name(name: Optional[str]) -> bool:
    """
    Validates a display name.

    Args:
        name: Raw user input

    Returns:
        True if the trimmed name has at least MIN_NAME_LENGTH characters
    """
    if not name:
        return False
    return len(name.strip()) >= MIN_NAME_LENGTH


def parse_leading_int(text: Optional[str]) -> Optional[int]:
    """
    Extracts the integer at the start of the text.

    Leading whitespace and a sign are allowed and trailing characters are
    ignored, so "30", " 30" and "30 years" all give 30.

    Returns:
        Parsed integer or None if the text does not start with digits
    """
    if not text:
        return None

    match = _LEADING_INT.match(text)
    if not match:
        return None
    return int(match.group(1))


def validate_age(text: Optional[str]) -> Tuple[bool, Optional[int]]:
    """
    Validates an age input.

    Args:
        text: Raw user input

    Returns:
        Tuple of (is_valid, age); age is None when invalid

    Examples:
        >>> validate_age("30")
        (True, 30)
        >>> validate_age("thirty")
        (False, None)
        >>> validate_age("121")
        (False, None)
    """
    age = parse_leading_int(text)
    if age is None or age < MIN_AGE or age > MAX_AGE:
        return False, None
    return True, age

