"""Constant definitions for voxcord."""

# Media analysis cache
MEDIA_CACHE_TTL_SECONDS = 24 * 60 * 60
MEDIA_CACHE_SWEEP_SECONDS = 60 * 60
MEDIA_CACHE_FLUSH_DELAY_SECONDS = 5.0
DEFAULT_MEDIA_CACHE_PATH = "media-cache.json"

# Conversation admission guard
QUIET_PERIOD_SECONDS = 30.0
TYPING_DELAY_SECONDS = 3.0
GUARD_PRUNE_THRESHOLD = 1024

# History and generation
HISTORY_LIMIT = 10
MAX_TOOL_ROUNDS = 5
PRIMARY_MAX_TOKENS = 8000
FALLBACK_MAX_TOKENS = 1024
LITELLM_TIMEOUT_SECONDS = 60
CLEAR_COMMAND = "/clear"
CLEAR_REMINDERS_COMMAND = "/clear_reminders"

# Tools
SEARCH_STAGGER_SECONDS = 1.0
DEFAULT_SEARCH_COUNTRY = "US"
SEARCH_RESULT_COUNT = 10

# Reminders
REMINDER_CHECK_SECONDS = 60.0

# User-facing replies
EMPTY_ANSWER_MESSAGE = (
    "I apologize, but I couldn't generate a proper response. "
    "Could you please rephrase your message or try again?"
)
FALLBACK_EMPTY_MESSAGE = (
    "I encountered an error and couldn't generate a proper response. "
    "Please try again in a moment."
)
TOOL_LIMIT_MESSAGE = (
    "I had to stop looking things up before finishing this answer. "
    "Please try asking again, maybe a bit more specifically."
)
PROCESSING_ERROR_MESSAGE = (
    "Sorry, I encountered an error processing your message. Please try again."
)
CLEARED_MESSAGE = (
    "Chat history cleared. Earlier messages will no longer be used as context."
)
REMINDERS_CLEARED_MESSAGE = "All your reminders have been removed."
UNSUPPORTED_MEDIA_MESSAGE = (
    "Please send a valid message. I do not support calls, videos, or location "
    "messages."
)
UNSUPPORTED_INVITE_MESSAGE = (
    "Please send a valid message. I do not support group invites."
)
CALL_REJECTED_MESSAGE = (
    "Sorry, I cannot receive calls. However, I can respond to voice messages! "
    "Feel free to send me a voice note instead."
)
TABLE_CREATED_MESSAGE = "Table image generated successfully"
