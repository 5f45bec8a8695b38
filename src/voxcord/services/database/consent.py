"""Privacy-notice acceptance records."""

from __future__ import annotations

import hashlib
import logging
import time
from typing import TYPE_CHECKING

from voxcord.services.database.core import _with_reconnect

if TYPE_CHECKING:
    from .core import DatabaseProtocol as _Base
else:
    _Base = object

logger = logging.getLogger(__name__)


def hash_user_id(user_id: str) -> str:
    """One-way hash of a user identifier; raw ids are never stored."""
    return hashlib.sha256(str(user_id).encode()).hexdigest()


class ConsentMixin(_Base):
    """Mixin recording which users have been shown the privacy notice."""

    def _init_consent_tables(self) -> None:
        self._create_schema("""
            CREATE TABLE IF NOT EXISTS consent (
                user_hash TEXT PRIMARY KEY,
                accepted_at REAL NOT NULL
            )
        """)

    @_with_reconnect
    def has_consented(self, user_id: str) -> bool:
        """Check whether the user has already accepted the notice."""
        rows = self._read(
            "SELECT 1 FROM consent WHERE user_hash = ?",
            (hash_user_id(user_id),),
        )
        return bool(rows)

    @_with_reconnect
    def record_consent(self, user_id: str) -> None:
        """Record acceptance of the notice."""
        self._write(
            "INSERT OR REPLACE INTO consent (user_hash, accepted_at) VALUES (?, ?)",
            (hash_user_id(user_id), time.time()),
        )
        logger.info("Recorded privacy notice acceptance")
