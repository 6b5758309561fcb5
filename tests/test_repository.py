"""Tests for the session store: CRUD, ordering, change signal, errors,
schema migration and the Rating scale."""

from dataclasses import replace
from datetime import datetime, timedelta

import pytest
from sqlalchemy import text

from mindfultimer.database import (
    Database, Rating, SessionRecord, SessionRepository, StorageError,
)

from helpers import SignalCollector


def make_record(finished_at=datetime(2024, 5, 1, 7, 30), meditated=600, **kw):
    return SessionRecord(
        finished_at=finished_at,
        started_at=finished_at - timedelta(seconds=meditated + 30),
        total_elapsed_seconds=meditated + 30,
        meditated_seconds=meditated,
        **kw,
    )


# ═══════════════════════════════════════════════════════════════════════
#  CRUD
# ═══════════════════════════════════════════════════════════════════════


class TestCrud:

    def test_insert_assigns_id(self, repository):
        first = repository.insert(make_record())
        second = repository.insert(make_record())
        assert first is not None
        assert second != first

    def test_get_by_id_round_trips_fields(self, repository):
        record = make_record(pause_count=2, rating=Rating.GOOD, notes="calm")
        session_id = repository.insert(record)
        assert repository.get_by_id(session_id) == replace(record, id=session_id)

    def test_get_missing_returns_none(self, repository):
        assert repository.get_by_id(999) is None

    def test_all_sessions_newest_first(self, repository):
        base = datetime(2024, 5, 1, 7, 0)
        for days in (1, 3, 2):
            repository.insert(make_record(finished_at=base + timedelta(days=days)))

        finished = [r.finished_at.day for r in repository.all_sessions()]
        assert finished == [4, 3, 2]

    def test_update_rating_and_notes(self, repository):
        session_id = repository.insert(make_record())
        record = repository.get_by_id(session_id)

        repository.update(replace(record, rating=Rating.EXCELLENT, notes="deep"))

        stored = repository.get_by_id(session_id)
        assert stored.rating == Rating.EXCELLENT
        assert stored.notes == "deep"
        assert stored.meditated_seconds == record.meditated_seconds

    def test_update_unknown_id_raises(self, repository):
        with pytest.raises(StorageError):
            repository.update(make_record(id=404))

    def test_update_uninserted_raises(self, repository):
        with pytest.raises(StorageError):
            repository.update(make_record())

    def test_delete(self, repository):
        session_id = repository.insert(make_record())
        repository.delete(repository.get_by_id(session_id))
        assert repository.get_by_id(session_id) is None

    def test_delete_by_id(self, repository):
        keep = repository.insert(make_record())
        drop = repository.insert(make_record())
        repository.delete_by_id(drop)
        assert [r.id for r in repository.all_sessions()] == [keep]

    def test_delete_missing_raises(self, repository):
        with pytest.raises(StorageError):
            repository.delete_by_id(12345)

    def test_records_are_immutable(self, repository):
        record = repository.get_by_id(repository.insert(make_record()))
        with pytest.raises(AttributeError):
            record.rating = Rating.POOR


# ═══════════════════════════════════════════════════════════════════════
#  CHANGE SIGNAL & ERRORS
# ═══════════════════════════════════════════════════════════════════════


class TestSessionsChanged:

    def test_emitted_after_insert(self, repository):
        c = SignalCollector()
        repository.sessions_changed.connect(c)
        session_id = repository.insert(make_record())
        assert [r.id for r in c.last] == [session_id]

    def test_emitted_after_update_and_delete(self, repository):
        session_id = repository.insert(make_record())
        c = SignalCollector()
        repository.sessions_changed.connect(c)

        repository.update(replace(repository.get_by_id(session_id), notes="x"))
        assert c.last[0].notes == "x"

        repository.delete_by_id(session_id)
        assert c.last == []

    def test_not_emitted_on_failure(self, repository):
        c = SignalCollector()
        repository.sessions_changed.connect(c)
        with pytest.raises(StorageError):
            repository.delete_by_id(1)
        assert len(c) == 0

    def test_write_stands_when_refresh_fails(self, repository, monkeypatch):
        real_all_sessions = repository.all_sessions
        c = SignalCollector()
        repository.sessions_changed.connect(c)

        def broken():
            raise StorageError("read failed")

        monkeypatch.setattr(repository, "all_sessions", broken)
        session_id = repository.insert(make_record())
        repository.update(replace(repository.get_by_id(session_id), notes="kept"))
        assert len(c) == 0

        monkeypatch.setattr(repository, "all_sessions", real_all_sessions)
        assert [r.notes for r in repository.all_sessions()] == ["kept"]

        monkeypatch.setattr(repository, "all_sessions", broken)
        repository.delete_by_id(session_id)
        assert repository.get_by_id(session_id) is None


class TestStorageErrors:

    def test_database_failure_becomes_storage_error(self, database, repository):
        with database.engine.begin() as conn:
            conn.execute(text("DROP TABLE meditation_sessions"))

        with pytest.raises(StorageError):
            repository.insert(make_record())
        with pytest.raises(StorageError):
            repository.all_sessions()

    def test_original_error_is_chained(self, database, repository):
        with database.engine.begin() as conn:
            conn.execute(text("DROP TABLE meditation_sessions"))

        with pytest.raises(StorageError) as info:
            repository.get_by_id(1)
        assert info.value.__cause__ is not None


# ═══════════════════════════════════════════════════════════════════════
#  MIGRATIONS
# ═══════════════════════════════════════════════════════════════════════


class TestMigrations:

    @pytest.fixture
    def legacy_db(self, tmp_path):
        """A database created before pauses, ratings and notes existed."""
        db = Database(f"sqlite:///{tmp_path / 'legacy.db'}")
        with db.engine.begin() as conn:
            conn.execute(text(
                "CREATE TABLE meditation_sessions ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "finished_at DATETIME NOT NULL, "
                "started_at DATETIME NOT NULL, "
                "total_elapsed_seconds INTEGER NOT NULL, "
                "meditated_seconds INTEGER NOT NULL)"
            ))
            conn.execute(text(
                "INSERT INTO meditation_sessions "
                "(finished_at, started_at, total_elapsed_seconds, meditated_seconds) "
                "VALUES ('2024-05-01 07:30:00.000000', "
                "'2024-05-01 07:20:00.000000', 600, 540)"
            ))
        yield db
        db.dispose()

    def test_old_rows_get_defaults(self, qapp, legacy_db):
        legacy_db.init()
        [record] = SessionRepository(legacy_db).all_sessions()
        assert record.meditated_seconds == 540
        assert record.pause_count == 0
        assert record.rating == Rating.AVERAGE
        assert record.notes is None

    def test_migrated_table_accepts_new_rows(self, qapp, legacy_db):
        legacy_db.init()
        repo = SessionRepository(legacy_db)
        session_id = repo.insert(make_record(rating=Rating.POOR, pause_count=1))
        assert repo.get_by_id(session_id).rating == Rating.POOR

    def test_init_is_idempotent(self, qapp, legacy_db):
        legacy_db.init()
        legacy_db.init()
        assert len(SessionRepository(legacy_db).all_sessions()) == 1


# ═══════════════════════════════════════════════════════════════════════
#  RATING
# ═══════════════════════════════════════════════════════════════════════


class TestRating:

    def test_scale_order(self):
        assert [r.score for r in Rating] == [1, 2, 3, 4, 5]
        assert Rating.VERY_POOR.score < Rating.EXCELLENT.score

    @pytest.mark.parametrize("stored", [None, "", "superb"])
    def test_unknown_values_read_as_average(self, stored):
        assert Rating.parse(stored) == Rating.AVERAGE

    def test_parse_known_value(self):
        assert Rating.parse("good") == Rating.GOOD

    def test_label(self):
        assert Rating.VERY_POOR.label == "Very poor"
