from __future__ import annotations

import pytest

from voxcord.services.database import AppDB, hash_user_id


@pytest.fixture
def db(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("TURSO_DATABASE_URL", raising=False)
    monkeypatch.delenv("TURSO_AUTH_TOKEN", raising=False)
    database = AppDB(local_db_path=str(tmp_path / "voxcord.db"))
    yield database
    database.close()


def test_consent_is_recorded_by_hash_only(db: AppDB) -> None:
    assert db.has_consented("12345") is False

    db.record_consent("12345")

    assert db.has_consented("12345") is True
    rows = db._read("SELECT user_hash FROM consent")
    assert [row[0] for row in rows] == [hash_user_id("12345")]
    assert "12345" not in rows[0][0]


def test_due_reminders_are_returned_oldest_first(db: AppDB) -> None:
    late = db.add_reminder("chat", "user", "later", due_at=200.0)
    early = db.add_reminder("chat", "user", "sooner", due_at=100.0)
    db.add_reminder("chat", "user", "future", due_at=900.0)

    due = db.get_due_reminders(now=500.0)

    assert [reminder.id for reminder in due] == [early.id, late.id]


def test_delete_and_clear_reminders(db: AppDB) -> None:
    first = db.add_reminder("chat", "alice", "a", due_at=1.0)
    db.add_reminder("chat", "alice", "b", due_at=2.0)
    db.add_reminder("chat", "bob", "c", due_at=3.0)

    db.delete_reminders([first.id])
    assert db.clear_user_reminders("alice") == 1
    assert [r.user_id for r in db.get_due_reminders(now=10.0)] == ["bob"]


def test_usage_stats_are_totalled_per_region(db: AppDB) -> None:
    db.record_usage("en-US", "message")
    db.record_usage("en-US", "message")
    db.record_usage("de", "audio")
    db.record_usage(None, "image")

    stats = db.get_usage_stats()

    assert stats["total"] == {
        "message": 2,
        "audio": 1,
        "image": 1,
        "sticker": 0,
        "document": 0,
    }
    assert stats["by_region"]["en-US"]["message"] == 2
    assert stats["by_region"]["unknown"]["image"] == 1


def test_unknown_usage_kind_is_rejected(db: AppDB) -> None:
    with pytest.raises(ValueError, match="Unknown usage kind"):
        db.record_usage("de", "video")


def test_local_backend_without_turso_settings(db: AppDB) -> None:
    assert db.backend == "local"
    db.close()
    db.record_usage("de", "sticker")
    assert db.get_usage_stats()["total"]["sticker"] == 1
