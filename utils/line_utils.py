"""
utils/line_utils.py

Purpose: LINE message builders and text helpers

- Constructs text message payloads
- Placeholder substitution for reply templates
- Splits oversized text into sendable parts
- Postback data parsing
"""

from typing import Any, Dict, List, Mapping
from urllib.parse import unquote

from utils.constants import MIME_TYPE_EXTENSIONS, DEFAULT_CONTENT_EXTENSION


def create_text_message(text: str) -> Dict[str, Any]:
    """
    Creates a text message object for the reply / push APIs.
    """
    return {"type": "text", "text": text}


def format_message(template: str, params: Mapping[str, Any]) -> str:
    """
    Replaces every "{key}" in the template with str(params[key]).

    Placeholders without a matching key are left verbatim.

    Example:
        >>> format_message("name: {name}, again {name}, {unknown}", {"name": "Al"})
        'name: Al, again Al, {unknown}'
    """
    result = template
    for key, value in params.items():
        result = result.replace("{" + str(key) + "}", str(value))
    return result


def truncate(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Shortens text to max_length characters, ending with suffix when cut.
    """
    if len(text) <= max_length:
        return text
    return text[:max(max_length - len(suffix), 0)] + suffix


def split_message(text: str, max_length: int) -> List[str]:
    """
    Splits text into consecutive slices of at most max_length characters.

    Returns:
        List of slices; joined together they equal the original text.
        An empty text yields a single empty slice.
    """
    if max_length < 1:
        raise ValueError("max_length must be positive")
    if len(text) <= max_length:
        return [text]
    return [text[i:i + max_length] for i in range(0, len(text), max_length)]


def parse_postback_data(data: str) -> Dict[str, str]:
    """
    Parses query-string style postback data ("action=help&item=3").

    Keys and values are percent-decoded; pairs with an empty key or value
    are skipped.
    """
    result: Dict[str, str] = {}
    if not data:
        return result

    for part in data.split("&"):
        key, _, value = part.partition("=")
        if key and value:
            result[unquote(key)] = unquote(value)
    return result


def extension_from_mime_type(mime_type: str) -> str:
    """
    Maps a content MIME type to a file extension (defaults to "jpg").
    """
    base_type = (mime_type or "").split(";")[0].strip().lower()
    return MIME_TYPE_EXTENSIONS.get(base_type, DEFAULT_CONTENT_EXTENSION)
