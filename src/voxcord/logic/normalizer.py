"""Turn raw platform history into model-ready conversation turns."""

from __future__ import annotations

import base64
import logging
from enum import StrEnum
from typing import TYPE_CHECKING

import httpx

from voxcord.core.config.constants import (
    CALL_REJECTED_MESSAGE,
    CLEAR_COMMAND,
    UNSUPPORTED_INVITE_MESSAGE,
    UNSUPPORTED_MEDIA_MESSAGE,
)
from voxcord.core.exceptions import MediaProcessingError, TransientProviderError
from voxcord.core.models import (
    UNSUPPORTED_KINDS,
    ConversationTurn,
    ImagePart,
    MessageKind,
    Role,
    TextPart,
)
from voxcord.services.media.pdf import extract_pdf_text, is_pdf

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from voxcord.core.models import ContentPart, ConversationContext, PlatformMessage
    from voxcord.services.media import MediaAnalyzer

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/png"
NORMALIZE_MESSAGE_EXCEPTIONS = (
    MediaProcessingError,
    TransientProviderError,
    httpx.HTTPError,
    OSError,
    ValueError,
)


class ImageMode(StrEnum):
    """How images reach the model."""

    DESCRIBE = "describe"
    NATIVE = "native"


def is_clear_command(text: str | None) -> bool:
    """Whether ``text`` is the ``/clear`` command (and not ``/clear_reminders``)."""
    if not text:
        return False
    words = text.strip().split(maxsplit=1)
    return bool(words) and words[0].lower() == CLEAR_COMMAND


def rejection_reply_for(message: PlatformMessage) -> str | None:
    """The reply for an inbound message kind that is never answered."""
    if message.kind == MessageKind.CALL:
        return CALL_REJECTED_MESSAGE
    if message.kind == MessageKind.GROUP_INVITE:
        return UNSUPPORTED_INVITE_MESSAGE
    if message.kind in UNSUPPORTED_KINDS:
        return UNSUPPORTED_MEDIA_MESSAGE
    return None


def to_data_url(data: bytes, mime_type: str | None) -> str:
    """Inline bytes as a ``data:`` URL; identical bytes give identical URLs."""
    mime = (mime_type or DEFAULT_IMAGE_MIME).split(";", 1)[0].strip()
    if not mime.startswith("image/"):
        mime = DEFAULT_IMAGE_MIME
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def _with_caption(body: str, caption: str) -> str:
    caption = caption.strip()
    return f"{body} {caption}" if caption else body


class HistoryNormalizer:
    """Converts platform messages into ordered conversation turns.

    Messages arrive newest first and are processed oldest to newest. A
    ``/clear`` message drops every turn accumulated before it. Media go
    through the analyzer (and so through the cache); a message that fails
    to convert is logged and skipped without affecting the rest.
    """

    def __init__(
        self,
        analyzer: MediaAnalyzer,
        *,
        image_mode: ImageMode = ImageMode.DESCRIBE,
        pdf_extractor: Callable[[bytes], Awaitable[str]] = extract_pdf_text,
    ) -> None:
        self._analyzer = analyzer
        self.image_mode = image_mode
        self._pdf_extractor = pdf_extractor

    async def normalize(
        self,
        platform_messages: Sequence[PlatformMessage],
        context: ConversationContext,
    ) -> list[ConversationTurn]:
        """Build turns from newest-first ``platform_messages``."""
        turns: list[ConversationTurn] = []
        for message in reversed(platform_messages):
            if message.kind in UNSUPPORTED_KINDS:
                continue
            if is_clear_command(message.text):
                turns.clear()
                continue
            try:
                turn = await self._convert(message, context)
            except NORMALIZE_MESSAGE_EXCEPTIONS as exc:
                logger.warning(
                    "Skipping message %s (%s) in %s: %s",
                    message.id,
                    message.kind.value,
                    context.conversation_id,
                    exc,
                )
                continue
            if turn is not None:
                turns.append(turn)
        return turns

    async def _convert(
        self,
        message: PlatformMessage,
        context: ConversationContext,
    ) -> ConversationTurn | None:
        if message.from_bot:
            text = message.text.strip()
            return ConversationTurn.assistant(text) if text else None

        body = await self._content_parts(message)
        if not body:
            return None

        parts: list[ContentPart] = []
        if context.is_group:
            parts.append(TextPart(f"[{message.author_name or message.author_id}]"))
        parts.extend(body)
        return ConversationTurn(role=Role.USER, content=parts)

    async def _content_parts(self, message: PlatformMessage) -> list[ContentPart]:
        caption = message.text.strip()
        kind = message.kind

        if kind in (MessageKind.VOICE, MessageKind.AUDIO):
            transcript = await self._analyzer.transcribe(await message.load_media())
            text = _with_caption(transcript, caption)
            return [TextPart(text)] if text else []

        if kind in (MessageKind.IMAGE, MessageKind.STICKER):
            locator = to_data_url(await message.load_media(), message.mime_type)
            if self.image_mode == ImageMode.NATIVE:
                parts: list[ContentPart] = [ImagePart(locator)]
                if caption:
                    parts.append(TextPart(caption))
                return parts
            description = await self._analyzer.describe_image(locator)
            return [TextPart(_with_caption(f"[Image: {description}]", caption))]

        if kind == MessageKind.DOCUMENT:
            if is_pdf(message.mime_type, message.filename):
                pdf_text = await self._pdf_extractor(await message.load_media())
                return [TextPart(_with_caption(f"[PDF: {pdf_text}]", caption))]
            label = f"[Document: {message.filename or 'attachment'}]"
            return [TextPart(_with_caption(label, caption))]

        return [TextPart(caption)] if caption else []
