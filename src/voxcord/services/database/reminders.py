"""Reminder storage."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from voxcord.services.database.core import _with_reconnect

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .core import DatabaseProtocol as _Base
else:
    _Base = object

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Reminder:
    """A pending reminder.

    The user id is kept only until the reminder has been delivered or
    cleared with ``/clear_reminders``.
    """

    id: str
    conversation_id: str
    user_id: str
    message: str
    due_at: float


_COLUMNS = "id, conversation_id, user_id, message, due_at"


class ReminderMixin(_Base):
    """Mixin for reminder persistence."""

    def _init_reminder_tables(self) -> None:
        self._create_schema(
            """
            CREATE TABLE IF NOT EXISTS reminders (
                id TEXT PRIMARY KEY,
                conversation_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                message TEXT NOT NULL,
                due_at REAL NOT NULL
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_reminders_due_at ON reminders (due_at)",
        )

    @_with_reconnect
    def add_reminder(
        self,
        conversation_id: str,
        user_id: str,
        message: str,
        due_at: float,
    ) -> Reminder:
        """Store a reminder and return it."""
        reminder = Reminder(
            id=uuid.uuid4().hex[:12],
            conversation_id=str(conversation_id),
            user_id=str(user_id),
            message=message,
            due_at=due_at,
        )
        self._write(
            f"INSERT INTO reminders ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
            (
                reminder.id,
                reminder.conversation_id,
                reminder.user_id,
                reminder.message,
                reminder.due_at,
            ),
        )
        return reminder

    @_with_reconnect
    def get_due_reminders(self, now: float) -> list[Reminder]:
        """Return reminders whose due time has passed, oldest first."""
        rows = self._read(
            f"SELECT {_COLUMNS} FROM reminders WHERE due_at <= ? ORDER BY due_at",
            (now,),
        )
        return [
            Reminder(
                id=row[0],
                conversation_id=row[1],
                user_id=row[2],
                message=row[3],
                due_at=float(row[4]),
            )
            for row in rows
        ]

    @_with_reconnect
    def delete_reminders(self, reminder_ids: Iterable[str]) -> None:
        """Remove delivered reminders."""
        self._write_many(
            "DELETE FROM reminders WHERE id = ?",
            ((reminder_id,) for reminder_id in reminder_ids),
        )

    @_with_reconnect
    def clear_user_reminders(self, user_id: str) -> int:
        """Remove every reminder of a user and return how many were removed."""
        rows = self._read(
            "SELECT COUNT(*) FROM reminders WHERE user_id = ?",
            (str(user_id),),
        )
        count = int(rows[0][0]) if rows else 0
        self._write("DELETE FROM reminders WHERE user_id = ?", (str(user_id),))
        logger.info("Cleared %s reminder(s) for a user", count)
        return count
