"""JSON snapshot persistence for the media analysis cache."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from voxcord.core.models import AnalysisKind, CacheEntry

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def _coerce_entry(key: str, raw: object) -> CacheEntry | None:
    if not isinstance(raw, Mapping):
        return None
    try:
        kind = AnalysisKind(raw["kind"])
        value = raw["value"]
        created_at = float(raw["created_at"])
    except (KeyError, TypeError, ValueError):
        return None
    if not isinstance(value, str):
        return None
    return CacheEntry(key=key, kind=kind, value=value, created_at=created_at)


def read_snapshot(path: Path) -> dict[str, CacheEntry]:
    """Load entries from ``path``.

    A missing file yields an empty mapping. An unreadable or corrupt file is
    logged and also yields an empty mapping; the cache only saves cost, so it
    is never allowed to stop startup.
    """
    if not path.exists():
        return {}
    try:
        payload: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Media cache snapshot %s is unreadable: %s", path, exc)
        return {}

    raw_entries = payload.get("entries") if isinstance(payload, Mapping) else None
    if not isinstance(raw_entries, Mapping):
        logger.warning("Media cache snapshot %s has no entries table", path)
        return {}

    entries: dict[str, CacheEntry] = {}
    skipped = 0
    for key, raw in raw_entries.items():
        entry = _coerce_entry(str(key), raw)
        if entry is None:
            skipped += 1
            continue
        entries[entry.key] = entry
    if skipped:
        logger.warning("Skipped %s malformed media cache entries in %s", skipped, path)
    return entries


def write_snapshot(path: Path, entries: Mapping[str, CacheEntry]) -> None:
    """Write ``entries`` to a temp file, then atomically replace ``path``."""
    payload = {
        "version": SNAPSHOT_VERSION,
        "entries": {
            key: {
                "kind": entry.kind.value,
                "value": entry.value,
                "created_at": entry.created_at,
            }
            for key, entry in entries.items()
        },
    }
    body = json.dumps(payload, ensure_ascii=False, sort_keys=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(body, encoding="utf-8")
    tmp_path.replace(path)
