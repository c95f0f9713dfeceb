import pytest
from pydantic import ValidationError

from app.core.config import Settings
from utils.constants import CONTINUED_MARKER, MAX_MESSAGE_LENGTH_LIMIT, PLATFORM_TEXT_LIMIT


def make_settings(**overrides):
    return Settings(ENVIRONMENT="testing", STORAGE_BACKEND="memory", **overrides)


def test_default_message_length_fits_pushed_parts():
    config = make_settings()

    assert config.MAX_MESSAGE_LENGTH == 4000
    assert config.MAX_MESSAGE_LENGTH + len(CONTINUED_MARKER) <= PLATFORM_TEXT_LIMIT


def test_largest_message_length_fills_the_platform_cap():
    config = make_settings(MAX_MESSAGE_LENGTH=MAX_MESSAGE_LENGTH_LIMIT)

    assert config.MAX_MESSAGE_LENGTH + len(CONTINUED_MARKER) == PLATFORM_TEXT_LIMIT


@pytest.mark.parametrize("length", [0, MAX_MESSAGE_LENGTH_LIMIT + 1, PLATFORM_TEXT_LIMIT, 5000])
def test_out_of_range_message_length_is_rejected(length):
    with pytest.raises(ValidationError):
        make_settings(MAX_MESSAGE_LENGTH=length)
