"""Data models for voxcord."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from voxcord.core.exceptions import MediaProcessingError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime


class Role(StrEnum):
    """Author role of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class AnalysisKind(StrEnum):
    """Kind of cached media analysis."""

    TRANSCRIPTION = "transcription"
    IMAGE = "image"


class MessageKind(StrEnum):
    """Platform message classification used by the normalizer."""

    TEXT = "text"
    VOICE = "voice"
    AUDIO = "audio"
    IMAGE = "image"
    STICKER = "sticker"
    DOCUMENT = "document"
    CALL = "call"
    VIDEO = "video"
    LOCATION = "location"
    GROUP_INVITE = "group_invite"
    OTHER = "other"


UNSUPPORTED_KINDS = frozenset(
    {
        MessageKind.CALL,
        MessageKind.VIDEO,
        MessageKind.LOCATION,
        MessageKind.GROUP_INVITE,
        MessageKind.OTHER,
    },
)


@dataclass(frozen=True, slots=True)
class TextPart:
    """Plain text content part."""

    text: str


@dataclass(frozen=True, slots=True)
class ImagePart:
    """Image content part; ``url`` may be an inline ``data:`` URL."""

    url: str


type ContentPart = TextPart | ImagePart


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the model.

    ``arguments`` is the raw JSON text emitted by the model. It is decoded by
    the tool executor so that malformed arguments surface there.
    """

    id: str
    name: str
    arguments: str = "{}"


@dataclass(slots=True)
class ConversationTurn:
    """One logical contribution to the dialogue."""

    role: Role
    content: list[ContentPart] = field(default_factory=list)
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> ConversationTurn:
        """Build a single-part user turn."""
        return cls(role=Role.USER, content=[TextPart(text)])

    @classmethod
    def assistant(cls, text: str) -> ConversationTurn:
        """Build a single-part assistant turn."""
        return cls(role=Role.ASSISTANT, content=[TextPart(text)])

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> ConversationTurn:
        """Build the result turn paired with a tool call."""
        return cls(
            role=Role.TOOL,
            content=[TextPart(content)],
            tool_call_id=tool_call_id,
        )

    @property
    def text(self) -> str:
        """Concatenate the text parts of this turn."""
        return " ".join(part.text for part in self.content if isinstance(part, TextPart))


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A memoized media analysis result."""

    key: str
    kind: AnalysisKind
    value: str
    created_at: float

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        """Return True once the entry has outlived the TTL."""
        return now - self.created_at > ttl_seconds


@dataclass(frozen=True, slots=True)
class ConversationContext:
    """Per-conversation facts the normalizer and orchestrator need."""

    conversation_id: str
    is_group: bool = False
    region: str | None = None
    author_id: str | None = None


@dataclass(slots=True)
class PlatformMessage:
    """Platform-neutral view of one chat message."""

    id: str
    conversation_id: str
    kind: MessageKind = MessageKind.TEXT
    text: str = ""
    author_id: str = ""
    author_name: str = ""
    from_bot: bool = False
    mentions_bot: bool = False
    mime_type: str | None = None
    filename: str | None = None
    created_at: datetime | None = None
    media_loader: Callable[[], Awaitable[bytes]] | None = field(
        default=None,
        repr=False,
    )

    @property
    def has_media(self) -> bool:
        """Whether this message carries a downloadable attachment."""
        return self.media_loader is not None

    async def load_media(self) -> bytes:
        """Download the attachment bytes on demand."""
        if self.media_loader is None:
            msg = f"Message {self.id} has no media to load"
            raise MediaProcessingError(msg)
        return await self.media_loader()


@dataclass(slots=True)
class ConverseResult:
    """Final answer of one orchestrated exchange."""

    answer: str
    thinking: str | None = None
    artifact: bytes | None = None
    used_fallback: bool = False
