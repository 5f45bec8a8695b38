"""System instruction and fixed notices."""

from __future__ import annotations

from datetime import UTC, datetime

SYSTEM_PROMPT_TEMPLATE = """\
You are voxcord, a friendly chat assistant. Today's date is {date}.

You can read text messages, listen to voice messages (you receive their \
transcripts), look at images, and read PDF attachments.

Conversation conventions:
1. In group chats each user message starts with the author's name in square \
brackets, like [alice]. Use it to tell people apart, but never repeat these \
markers in your reply.
2. [Image: description] means the user sent that image. Treat it as if you \
can see the image yourself, not as a description you were given.
3. [PDF: text] means the user attached a PDF with that content.
4. Users can type /clear to make you forget the earlier conversation.

Style:
- Be warm and conversational, short and to the point.
- Always answer in the user's language.
- Use simple math notation (* / ^).
- Use Markdown sparingly: **bold**, *italic*, `code`.
- Use web_search for current events, facts that may have changed, or when \
asked to verify something, and name the sources you used.{extras}"""

TABLE_TOOL_GUIDANCE = (
    "\n- For tables always call create_table; never draw tables with ASCII."
)
REMINDER_TOOL_GUIDANCE = (
    "\n- Only call set_reminder when the user explicitly asks for a reminder. "
    "Durations look like 1d, 2h or 30m."
)

CONSENT_NOTICE = """\
🔐 **Privacy notice**

Before we continue, here is how your data is handled:

1. Your user id is never stored in its original form. A one-way hash only \
records that you have seen this notice.
2. Your messages are processed to generate replies but are not permanently \
stored by this bot.
3. Your information is not shared with third parties beyond the AI providers \
that generate replies.

By continuing to use this bot you accept these terms. Use /clear at any time \
to stop earlier messages from being used as context.

Thanks! Please send your question again."""


def build_system_prompt(
    *,
    enable_table_tool: bool = False,
    enable_reminder_tool: bool = False,
    now: datetime | None = None,
) -> str:
    """Render the system instruction for the current date and tool set."""
    current = now or datetime.now(UTC)
    extras = ""
    if enable_table_tool:
        extras += TABLE_TOOL_GUIDANCE
    if enable_reminder_tool:
        extras += REMINDER_TOOL_GUIDANCE
    return SYSTEM_PROMPT_TEMPLATE.format(
        date=current.strftime("%B %d, %Y"),
        extras=extras,
    )
