"""Content-addressed cache for speech-to-text and vision results."""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Self

from voxcord.core.config.constants import (
    MEDIA_CACHE_FLUSH_DELAY_SECONDS,
    MEDIA_CACHE_SWEEP_SECONDS,
    MEDIA_CACHE_TTL_SECONDS,
)
from voxcord.core.error_handling import log_exception
from voxcord.core.models import AnalysisKind, CacheEntry
from voxcord.services.cache.snapshot import read_snapshot, write_snapshot

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

logger = logging.getLogger(__name__)


def cache_key(kind: AnalysisKind, data: bytes | str) -> str:
    """Return ``sha256(kind ":" data)`` as hex.

    Audio is keyed by its raw bytes and images by their locator string, so two
    identical payloads share one entry regardless of filename or timestamp.
    The kind prefix keeps transcriptions and image descriptions apart even
    when the inputs are textually equal.
    """
    raw = data.encode("utf-8") if isinstance(data, str) else data
    digest = hashlib.sha256()
    digest.update(f"{kind.value}:".encode())
    digest.update(raw)
    return digest.hexdigest()


class MediaAnalysisCache:
    """Memoizes expensive media analysis with a fixed TTL.

    Expired entries are dropped lazily on lookup and proactively by an
    hourly sweep. When a snapshot path is given, mutations are flushed to it
    after a short debounce and once more when the cache is closed.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        ttl_seconds: float = MEDIA_CACHE_TTL_SECONDS,
        sweep_interval_seconds: float = MEDIA_CACHE_SWEEP_SECONDS,
        flush_delay_seconds: float = MEDIA_CACHE_FLUSH_DELAY_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.flush_delay_seconds = flush_delay_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._dirty = False
        self._flush_task: asyncio.Task[None] | None = None
        self._sweep_task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get_entry(self, key: str) -> CacheEntry | None:
        """Return the raw entry for ``key`` without expiry handling."""
        return self._entries.get(key)

    # Lifecycle

    async def __aenter__(self) -> Self:
        self.load()
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()

    def load(self) -> int:
        """Replace the in-memory entries with the snapshot, minus expired ones."""
        if self.path is None:
            return 0
        now = self._clock()
        loaded = read_snapshot(self.path)
        self._entries = {
            key: entry
            for key, entry in loaded.items()
            if not entry.is_expired(now, self.ttl_seconds)
        }
        dropped = len(loaded) - len(self._entries)
        if dropped:
            self._dirty = True
        logger.info(
            "Loaded %s media cache entries from %s (%s expired)",
            len(self._entries),
            self.path,
            dropped,
        )
        return len(self._entries)

    def start(self) -> None:
        """Start the periodic sweep on the running loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(
                self._sweep_loop(),
                name="voxcord-media-cache-sweep",
            )

    async def aclose(self) -> None:
        """Stop background work and write a final snapshot."""
        for task in (self._sweep_task, self._flush_task):
            if task is None or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._sweep_task = None
        self._flush_task = None
        self.flush()

    # Contract

    def lookup(self, data: bytes | str, kind: AnalysisKind) -> str | None:
        """Return the cached value, or None when absent or expired."""
        key = cache_key(kind, data)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock(), self.ttl_seconds):
            del self._entries[key]
            self._mark_dirty()
            return None
        return entry.value

    def store(self, data: bytes | str, kind: AnalysisKind, value: str) -> str:
        """Record ``value`` for ``data``; the last write wins.

        Returns:
            The cache key the value was stored under.

        """
        key = cache_key(kind, data)
        self._entries[key] = CacheEntry(
            key=key,
            kind=kind,
            value=value,
            created_at=self._clock(),
        )
        self._mark_dirty()
        return key

    def sweep(self) -> int:
        """Evict every expired entry and return how many were removed."""
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.is_expired(now, self.ttl_seconds)
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            self._mark_dirty()
        return len(expired)

    # Persistence

    def flush(self) -> bool:
        """Write the snapshot now if anything changed.

        Returns:
            True when a snapshot was written.

        """
        if self.path is None or not self._dirty:
            return False
        try:
            write_snapshot(self.path, self._entries)
        except OSError as exc:
            log_exception(
                logger=logger,
                message="Failed to write media cache snapshot",
                error=exc,
                context={"path": str(self.path), "entries": len(self._entries)},
            )
            return False
        self._dirty = False
        return True

    def _mark_dirty(self) -> None:
        self._dirty = True
        if self.path is None:
            return
        if self._flush_task is not None and not self._flush_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        self._flush_task = loop.create_task(
            self._delayed_flush(),
            name="voxcord-media-cache-flush",
        )

    async def _delayed_flush(self) -> None:
        await asyncio.sleep(self.flush_delay_seconds)
        self.flush()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            evicted = self.sweep()
            if evicted:
                logger.info("Evicted %s expired media cache entries", evicted)
