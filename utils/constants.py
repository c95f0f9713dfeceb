"""
utils/constants.py

Purpose: Centralized static content

- All user-facing messages
- Message templates with {placeholder} fields
- Reusable constants

(Prevents hardcoding across the codebase)
"""

# ============================================================
# SYSTEM MESSAGES
# ============================================================

WELCOME_MESSAGE = """👋 Hello!

Type "{register_keyword}" to start your registration.
Type "{help_keyword}" to see what I can do."""

HELP_MESSAGE = """ℹ️ *Help*

• "{register_keyword}" – start registration (name, then age)
• "{help_keyword}" – show this message

You can also use the menu buttons below the chat."""

ERROR_MESSAGE = "❌ An error occurred. Please try again later."

UNKNOWN_ACTION_MESSAGE = "🤔 Unknown action."

DEFAULT_RESPONSE_MESSAGE = """Hi {name}! 👋

Your registration is complete. Type "{help_keyword}" to see the available commands."""

# Prefix of every pushed continuation part of a long message
CONTINUED_MARKER = "\n\n(continued from previous message)"

# Platform cap on the length of a single text message
PLATFORM_TEXT_LIMIT = 4096

# Longest MAX_MESSAGE_LENGTH that still fits a pushed part with its marker
MAX_MESSAGE_LENGTH_LIMIT = PLATFORM_TEXT_LIMIT - len(CONTINUED_MARKER)

# ============================================================
# REGISTRATION FLOW
# ============================================================

REGISTRATION_START_MESSAGE = """📝 Let's get you registered.

What is your name?"""

INVALID_NAME_MESSAGE = "❌ Please enter a name with at least 2 characters."

NAME_CONFIRMED_MESSAGE = """✅ Thanks, {name}!

How old are you?"""

INVALID_AGE_MESSAGE = "❌ Please enter your age as a number between 1 and 120."

REGISTRATION_COMPLETED_MESSAGE = """🎉 Registration complete!

Name: {name}
Age: {age}"""

# ============================================================
# LIMITS
# ============================================================

MIN_NAME_LENGTH = 2
MIN_AGE = 1
MAX_AGE = 120

# Postback action names
POSTBACK_ACTION_HELP = "help"

# MIME type -> file extension for downloaded content
MIME_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/heif": "heif",
}
DEFAULT_CONTENT_EXTENSION = "jpg"
