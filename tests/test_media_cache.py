from __future__ import annotations

import json

import pytest

from voxcord.core.models import AnalysisKind
from voxcord.services.cache import MediaAnalysisCache, cache_key
from voxcord.services.cache.snapshot import read_snapshot

from ._fakes import FakeClock

TTL = 24 * 60 * 60


def test_store_then_lookup_within_ttl(media_cache, clock: FakeClock) -> None:
    media_cache.store(b"audio", AnalysisKind.TRANSCRIPTION, "hi")
    clock.advance(TTL - 1)

    assert media_cache.lookup(b"audio", AnalysisKind.TRANSCRIPTION) == "hi"


def test_lookup_after_ttl_returns_none_and_removes_entry(
    media_cache,
    clock: FakeClock,
) -> None:
    key = media_cache.store(b"audio", AnalysisKind.TRANSCRIPTION, "hi")
    clock.advance(TTL + 1)

    assert media_cache.lookup(b"audio", AnalysisKind.TRANSCRIPTION) is None
    assert key not in media_cache
    assert len(media_cache) == 0


def test_kinds_never_collide_for_identical_input(media_cache) -> None:
    payload = "data:image/png;base64,AAAA"
    media_cache.store(payload, AnalysisKind.TRANSCRIPTION, "spoken")
    media_cache.store(payload, AnalysisKind.IMAGE, "seen")

    assert media_cache.lookup(payload, AnalysisKind.TRANSCRIPTION) == "spoken"
    assert media_cache.lookup(payload, AnalysisKind.IMAGE) == "seen"
    assert cache_key(AnalysisKind.TRANSCRIPTION, payload) != cache_key(
        AnalysisKind.IMAGE,
        payload,
    )


def test_cache_key_treats_str_and_utf8_bytes_alike() -> None:
    assert cache_key(AnalysisKind.IMAGE, "héllo") == cache_key(
        AnalysisKind.IMAGE,
        "héllo".encode(),
    )


def test_last_write_wins(media_cache) -> None:
    media_cache.store(b"x", AnalysisKind.IMAGE, "first")
    media_cache.store(b"x", AnalysisKind.IMAGE, "second")

    assert media_cache.lookup(b"x", AnalysisKind.IMAGE) == "second"
    assert len(media_cache) == 1


def test_sweep_evicts_only_expired_entries(media_cache, clock: FakeClock) -> None:
    media_cache.store(b"old", AnalysisKind.IMAGE, "old")
    clock.advance(TTL - 10)
    media_cache.store(b"new", AnalysisKind.IMAGE, "new")
    clock.advance(20)

    assert media_cache.sweep() == 1
    assert media_cache.lookup(b"new", AnalysisKind.IMAGE) == "new"
    assert media_cache.lookup(b"old", AnalysisKind.IMAGE) is None


def test_flush_and_load_round_trip_skips_expired(tmp_path) -> None:
    clock = FakeClock()
    path = tmp_path / "cache.json"
    cache = MediaAnalysisCache(path, clock=clock)
    cache.store(b"audio", AnalysisKind.TRANSCRIPTION, "hi")
    clock.advance(TTL - 5)
    cache.store(b"img", AnalysisKind.IMAGE, "cat")
    cache.flush()

    clock.advance(10)
    reloaded = MediaAnalysisCache(path, clock=clock)

    assert reloaded.load() == 1
    assert reloaded.lookup(b"img", AnalysisKind.IMAGE) == "cat"
    assert reloaded.lookup(b"audio", AnalysisKind.TRANSCRIPTION) is None


def test_snapshot_format_is_keyed_by_content_hash(tmp_path) -> None:
    path = tmp_path / "cache.json"
    cache = MediaAnalysisCache(path, clock=FakeClock(50.0))
    key = cache.store(b"audio", AnalysisKind.TRANSCRIPTION, "hi")

    assert cache.flush() is False  # already written by store()
    payload = json.loads(path.read_text(encoding="utf-8"))

    assert payload["version"] == 1
    assert payload["entries"][key] == {
        "kind": "transcription",
        "value": "hi",
        "created_at": 50.0,
    }


def test_corrupt_snapshot_starts_empty(tmp_path) -> None:
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")

    assert read_snapshot(path) == {}
    assert MediaAnalysisCache(path).load() == 0


def test_malformed_entries_are_skipped(tmp_path) -> None:
    path = tmp_path / "cache.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "entries": {
                    "good": {"kind": "image", "value": "cat", "created_at": 1.0},
                    "bad-kind": {"kind": "smell", "value": "x", "created_at": 1.0},
                    "bad-value": {"kind": "image", "value": 3, "created_at": 1.0},
                },
            },
        ),
        encoding="utf-8",
    )

    assert list(read_snapshot(path)) == ["good"]


@pytest.mark.asyncio
async def test_context_manager_flushes_on_exit(tmp_path) -> None:
    path = tmp_path / "cache.json"
    clock = FakeClock()

    async with MediaAnalysisCache(
        path,
        clock=clock,
        flush_delay_seconds=3600,
    ) as cache:
        cache.store(b"audio", AnalysisKind.TRANSCRIPTION, "hi")
        assert not path.exists()

    reloaded = MediaAnalysisCache(path, clock=clock)
    assert reloaded.load() == 1
