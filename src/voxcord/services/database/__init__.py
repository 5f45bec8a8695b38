"""Database service package."""

from __future__ import annotations

import logging

from voxcord.services.database.consent import ConsentMixin, hash_user_id
from voxcord.services.database.core import DatabaseCore
from voxcord.services.database.reminders import Reminder, ReminderMixin
from voxcord.services.database.stats import USAGE_KINDS, UsageStatsMixin

logger = logging.getLogger(__name__)


class AppDB(
    DatabaseCore,
    ConsentMixin,
    ReminderMixin,
    UsageStatsMixin,
):
    """Turso/libSQL-backed persistent state.

    Combines functionality from:
    - DatabaseCore: Connection management
    - ConsentMixin: Privacy notice acceptance, keyed by hashed user id
    - ReminderMixin: Pending reminders
    - UsageStatsMixin: Per-region usage counters
    """

    def __init__(
        self,
        db_url: str | None = None,
        auth_token: str | None = None,
        local_db_path: str = "voxcord.db",
    ) -> None:
        """Initialize the database connection and tables."""
        super().__init__(db_url, auth_token, local_db_path)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize all database tables."""
        self._init_consent_tables()
        self._init_reminder_tables()
        self._init_stats_tables()
        self._sync()
        logger.info("Database ready (%s backend)", self.backend)


__all__ = [
    "USAGE_KINDS",
    "AppDB",
    "Reminder",
    "hash_user_id",
]
