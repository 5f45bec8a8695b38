"""Per-region usage counters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from voxcord.services.database.core import _with_reconnect

if TYPE_CHECKING:
    from .core import DatabaseProtocol as _Base
else:
    _Base = object

UNKNOWN_REGION = "unknown"
USAGE_KINDS = ("message", "audio", "image", "sticker", "document")


class UsageStatsMixin(_Base):
    """Mixin counting inbound messages per region and kind."""

    def _init_stats_tables(self) -> None:
        self._create_schema("""
            CREATE TABLE IF NOT EXISTS usage_stats (
                region TEXT NOT NULL,
                kind TEXT NOT NULL,
                count INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (region, kind)
            )
        """)

    @_with_reconnect
    def record_usage(self, region: str | None, kind: str) -> None:
        """Increment the counter for ``kind`` in ``region``."""
        if kind not in USAGE_KINDS:
            msg = f"Unknown usage kind: {kind}"
            raise ValueError(msg)
        self._write(
            "INSERT INTO usage_stats (region, kind, count) VALUES (?, ?, 1) "
            "ON CONFLICT(region, kind) DO UPDATE SET count = count + 1",
            (region or UNKNOWN_REGION, kind),
        )

    @_with_reconnect
    def get_usage_stats(self) -> dict[str, dict]:
        """Return totals and per-region counts for every usage kind."""
        totals = dict.fromkeys(USAGE_KINDS, 0)
        by_region: dict[str, dict[str, int]] = {}

        for region, kind, count in self._read("SELECT region, kind, count FROM usage_stats"):
            region_counts = by_region.setdefault(region, dict.fromkeys(USAGE_KINDS, 0))
            region_counts[kind] = int(count)
            totals[kind] = totals.get(kind, 0) + int(count)

        return {"total": totals, "by_region": by_region}
