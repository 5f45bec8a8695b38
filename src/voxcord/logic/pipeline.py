"""End-to-end handling of one inbound platform message."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from voxcord.core.config.constants import (
    CLEAR_REMINDERS_COMMAND,
    CLEARED_MESSAGE,
    HISTORY_LIMIT,
    PROCESSING_ERROR_MESSAGE,
    REMINDERS_CLEARED_MESSAGE,
)
from voxcord.core.error_handling import COMMON_HANDLER_EXCEPTIONS, log_exception
from voxcord.core.exceptions import MediaProcessingError, VoxcordError
from voxcord.core.models import ConversationContext, MessageKind, Role
from voxcord.logic.normalizer import is_clear_command, rejection_reply_for
from voxcord.logic.prompts import CONSENT_NOTICE
from voxcord.services.database.core import DATABASE_ERRORS

if TYPE_CHECKING:
    from voxcord.core.models import PlatformMessage
    from voxcord.core.platform import Conversation
    from voxcord.logic.guard import ConversationAdmissionGuard
    from voxcord.logic.normalizer import HistoryNormalizer
    from voxcord.logic.orchestrator import ToolCallOrchestrator
    from voxcord.services.database import AppDB
    from voxcord.services.reminders import ReminderScheduler

logger = logging.getLogger(__name__)

TABLE_ATTACHMENT_FILENAME = "table.png"
PIPELINE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    VoxcordError,
    *COMMON_HANDLER_EXCEPTIONS,
    *DATABASE_ERRORS,
    httpx.HTTPError,
)

_USAGE_KIND_BY_MESSAGE_KIND = {
    MessageKind.TEXT: "message",
    MessageKind.VOICE: "audio",
    MessageKind.AUDIO: "audio",
    MessageKind.IMAGE: "image",
    MessageKind.STICKER: "sticker",
    MessageKind.DOCUMENT: "document",
}


@dataclass(frozen=True, slots=True)
class PipelineSettings:
    """Behavior switches for the message pipeline."""

    history_limit: int = HISTORY_LIMIT
    require_consent: bool = False


def _command_of(text: str) -> str | None:
    words = text.strip().split(maxsplit=1)
    return words[0].lower() if words and words[0].startswith("/") else None


class MessagePipeline:
    """Admission guard → normalizer → orchestrator → reply.

    ``handle`` never raises for processing failures: they are logged and
    answered with a single "please try again" reply. The platform-specific
    exception types to treat the same way are passed as ``extra_exceptions``.
    """

    def __init__(
        self,
        *,
        guard: ConversationAdmissionGuard,
        normalizer: HistoryNormalizer,
        orchestrator: ToolCallOrchestrator,
        db: AppDB | None = None,
        reminders: ReminderScheduler | None = None,
        settings: PipelineSettings | None = None,
        extra_exceptions: tuple[type[BaseException], ...] = (),
    ) -> None:
        self.guard = guard
        self.normalizer = normalizer
        self.orchestrator = orchestrator
        self.db = db
        self.reminders = reminders
        self.settings = settings or PipelineSettings()
        self._handled_exceptions = (*PIPELINE_EXCEPTIONS, *extra_exceptions)

    async def handle(self, message: PlatformMessage, conversation: Conversation) -> bool:
        """Process an inbound message.

        Returns:
            True when the message was admitted by the guard.

        """
        if message.from_bot:
            return False
        if conversation.is_group and not message.mentions_bot:
            return False

        self._record_usage(message, conversation)

        try:
            return await self.guard.run_exclusive(
                conversation.conversation_id,
                lambda: self._respond(message, conversation),
                presence=conversation.start_typing,
            )
        except self._handled_exceptions as exc:
            log_exception(
                logger=logger,
                message="Failed to process message",
                error=exc,
                context={
                    "message_id": message.id,
                    "conversation_id": conversation.conversation_id,
                    "kind": message.kind.value,
                },
            )
            await self._send_error_reply(conversation)
            return True

    async def _send_error_reply(self, conversation: Conversation) -> None:
        try:
            await conversation.send_text(PROCESSING_ERROR_MESSAGE)
        except self._handled_exceptions as exc:
            log_exception(
                logger=logger,
                message="Failed to send error reply",
                error=exc,
                context={"conversation_id": conversation.conversation_id},
            )

    def _record_usage(self, message: PlatformMessage, conversation: Conversation) -> None:
        usage_kind = _USAGE_KIND_BY_MESSAGE_KIND.get(message.kind)
        if self.db is None or usage_kind is None:
            return
        try:
            self.db.record_usage(conversation.region, usage_kind)
        except DATABASE_ERRORS as exc:
            logger.warning("Could not record usage stats: %s", exc)

    async def _respond(self, message: PlatformMessage, conversation: Conversation) -> None:
        rejection = rejection_reply_for(message)
        if rejection is not None:
            await conversation.send_text(rejection)
            return

        if self._needs_consent(message):
            await conversation.send_text(CONSENT_NOTICE)
            return

        if await self._handle_command(message, conversation):
            return

        context = ConversationContext(
            conversation_id=conversation.conversation_id,
            is_group=conversation.is_group,
            region=conversation.region,
            author_id=message.author_id,
        )
        history = await conversation.fetch_history(self.settings.history_limit)
        if all(item.id != message.id for item in history):
            history = [message, *history]

        turns = await self.normalizer.normalize(history, context)
        if not turns or turns[-1].role != Role.USER:
            msg = f"Message {message.id} could not be turned into a prompt"
            raise MediaProcessingError(msg)

        result = await self.orchestrator.converse(turns, context=context)
        if result.artifact is not None:
            await conversation.send_attachment(result.artifact, TABLE_ATTACHMENT_FILENAME)
        await conversation.send_text(result.answer)

    def _needs_consent(self, message: PlatformMessage) -> bool:
        if not self.settings.require_consent or self.db is None:
            return False
        if self.db.has_consented(message.author_id):
            return False
        self.db.record_consent(message.author_id)
        return True

    async def _handle_command(
        self,
        message: PlatformMessage,
        conversation: Conversation,
    ) -> bool:
        if is_clear_command(message.text):
            cleared = await conversation.clear_history()
            logger.info(
                "Cleared conversation %s (platform history deleted: %s)",
                conversation.conversation_id,
                cleared,
            )
            await conversation.send_text(CLEARED_MESSAGE)
            return True

        if _command_of(message.text) == CLEAR_REMINDERS_COMMAND:
            removed = self.reminders.clear(message.author_id) if self.reminders else 0
            logger.info("Removed %s reminder(s) on request", removed)
            await conversation.send_text(REMINDERS_CLEARED_MESSAGE)
            return True

        return False
