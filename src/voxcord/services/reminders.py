"""Reminder parsing, confirmation text and the delivery loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
import time
from typing import TYPE_CHECKING, Protocol, Self

from voxcord.core.config.constants import REMINDER_CHECK_SECONDS
from voxcord.core.error_handling import COMMON_HANDLER_EXCEPTIONS, log_exception
from voxcord.core.exceptions import InvalidDurationError
from voxcord.services.database.core import DATABASE_ERRORS

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from voxcord.services.database import AppDB, Reminder

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(r"^(\d+)([dhm])$")
_UNIT_SECONDS = {"d": 24 * 60 * 60, "h": 60 * 60, "m": 60}


def parse_duration(duration: str) -> int:
    """Convert ``1d``, ``2h`` or ``30m`` into seconds."""
    match = _DURATION_PATTERN.match(duration.strip().lower())
    if match is None:
        raise InvalidDurationError(duration)
    amount = int(match.group(1))
    if amount <= 0:
        raise InvalidDurationError(duration)
    return amount * _UNIT_SECONDS[match.group(2)]


def format_time_left(seconds: float) -> str:
    """Render a duration as e.g. ``1 day, 2 hours, 5 minutes``.

    Units that round down to zero are omitted.
    """
    remaining = int(seconds)
    days, remaining = divmod(remaining, _UNIT_SECONDS["d"])
    hours, remaining = divmod(remaining, _UNIT_SECONDS["h"])
    minutes = remaining // _UNIT_SECONDS["m"]

    parts = []
    for amount, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if amount > 0:
            parts.append(f"{amount} {unit}{'s' if amount > 1 else ''}")
    return ", ".join(parts)


def format_reminder(reminder: Reminder) -> str:
    """Text delivered when a reminder comes due."""
    return f"⏰ **Reminder**\n{reminder.message}"


class ReminderSender(Protocol):
    """Delivers text to a conversation by id."""

    async def send_to_conversation(self, conversation_id: str, text: str) -> None: ...


class ReminderScheduler:
    """Stores reminders and delivers them once they come due.

    A background task checks every minute. Reminders that cannot be
    delivered stay stored and are retried on the next check.
    """

    def __init__(
        self,
        db: AppDB,
        *,
        interval_seconds: float = REMINDER_CHECK_SECONDS,
        clock: Callable[[], float] = time.time,
        delivery_errors: tuple[type[BaseException], ...] = COMMON_HANDLER_EXCEPTIONS,
    ) -> None:
        self._db = db
        self._delivery_errors = delivery_errors
        self._sender: ReminderSender | None = None
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    def set_sender(self, sender: ReminderSender) -> None:
        """Attach the platform once it is connected."""
        self._sender = sender

    def add(self, conversation_id: str, user_id: str, message: str, duration: str) -> str:
        """Store a reminder and return the confirmation text.

        Raises:
            InvalidDurationError: ``duration`` is not ``<n>d``, ``<n>h`` or ``<n>m``.

        """
        seconds = parse_duration(duration)
        self._db.add_reminder(conversation_id, user_id, message, self._clock() + seconds)
        return (
            f'Reminder set. I will remind you about "{message}" in '
            f"{format_time_left(seconds)}. Use /clear_reminders to remove all "
            "your reminders."
        )

    def clear(self, user_id: str) -> int:
        """Remove all reminders of a user."""
        return self._db.clear_user_reminders(user_id)

    async def check_once(self) -> int:
        """Deliver due reminders; return how many were delivered."""
        if self._sender is None:
            return 0

        delivered: list[str] = []
        for reminder in self._db.get_due_reminders(self._clock()):
            try:
                await self._sender.send_to_conversation(
                    reminder.conversation_id,
                    format_reminder(reminder),
                )
            except self._delivery_errors as exc:
                log_exception(
                    logger=logger,
                    message="Failed to deliver reminder",
                    error=exc,
                    context={
                        "reminder_id": reminder.id,
                        "conversation_id": reminder.conversation_id,
                    },
                )
                continue
            delivered.append(reminder.id)

        self._db.delete_reminders(delivered)
        return len(delivered)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                delivered = await self.check_once()
            except DATABASE_ERRORS as exc:
                log_exception(
                    logger=logger,
                    message="Reminder check failed; retrying on the next interval",
                    error=exc,
                    context={"interval_seconds": self.interval_seconds},
                )
                continue
            if delivered:
                logger.info("Delivered %s reminder(s)", delivered)

    def start(self) -> None:
        """Start the periodic check on the running loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="voxcord-reminders")

    async def aclose(self) -> None:
        """Stop the periodic check."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()
