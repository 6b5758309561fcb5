"""Session history store.

The repository is the only code that touches the ``meditation_sessions``
table.  It hands out immutable :class:`SessionRecord` values instead of
live ORM objects; edit one with ``dataclasses.replace`` and pass it back
to :meth:`SessionRepository.update`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from PyQt6.QtCore import QObject, pyqtSignal
from sqlalchemy.exc import SQLAlchemyError

from .db import Database
from .models import MeditationSession, Rating

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A read or write against the session store failed."""


@dataclass(frozen=True)
class SessionRecord:
    finished_at: datetime
    started_at: datetime
    total_elapsed_seconds: int
    meditated_seconds: int
    pause_count: int = 0
    rating: Rating = Rating.AVERAGE
    notes: str | None = None
    id: int | None = None

    @property
    def paused_seconds(self) -> int:
        return max(0, self.total_elapsed_seconds - self.meditated_seconds)


def _to_record(row: MeditationSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        finished_at=row.finished_at,
        started_at=row.started_at,
        total_elapsed_seconds=row.total_elapsed_seconds or 0,
        meditated_seconds=row.meditated_seconds or 0,
        pause_count=row.pause_count or 0,
        rating=Rating.parse(row.rating),
        notes=row.notes,
    )


def _apply(row: MeditationSession, record: SessionRecord) -> None:
    row.finished_at = record.finished_at
    row.started_at = record.started_at
    row.total_elapsed_seconds = record.total_elapsed_seconds
    row.meditated_seconds = record.meditated_seconds
    row.pause_count = record.pause_count
    row.rating = record.rating.value
    row.notes = record.notes


class SessionRepository(QObject):
    """CRUD over finished sessions plus a change notification.

    Signals
    -------
    sessions_changed(records: list[SessionRecord])
        Emitted after every successful insert, update or delete with the
        full history, newest first.  Skipped when re-reading the
        history fails; the write itself still stands.
    """

    sessions_changed = pyqtSignal(object)

    def __init__(self, database: Database, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._db = database

    # ── writes ────────────────────────────────────────────────────────

    def insert(self, record: SessionRecord) -> int:
        """Store a new session and return its assigned id."""
        with self._guard("insert"):
            with self._db.session() as db:
                row = MeditationSession()
                _apply(row, record)
                db.add(row)
                db.flush()
                new_id = row.id
        logger.info(
            "saved session %s (%ss meditated, %s pauses)",
            new_id, record.meditated_seconds, record.pause_count,
        )
        self._notify()
        return new_id

    def update(self, record: SessionRecord) -> None:
        if record.id is None:
            raise StorageError("cannot update a session that was never inserted")
        with self._guard("update"):
            with self._db.session() as db:
                row = db.get(MeditationSession, record.id)
                if row is None:
                    raise StorageError(f"no session with id {record.id}")
                _apply(row, record)
        self._notify()

    def delete(self, record: SessionRecord) -> None:
        if record.id is None:
            raise StorageError("cannot delete a session that was never inserted")
        self.delete_by_id(record.id)

    def delete_by_id(self, session_id: int) -> None:
        with self._guard("delete"):
            with self._db.session() as db:
                row = db.get(MeditationSession, session_id)
                if row is None:
                    raise StorageError(f"no session with id {session_id}")
                db.delete(row)
        logger.info("deleted session %s", session_id)
        self._notify()

    # ── reads ─────────────────────────────────────────────────────────

    def get_by_id(self, session_id: int) -> SessionRecord | None:
        with self._guard("get"):
            with self._db.session() as db:
                row = db.get(MeditationSession, session_id)
                return _to_record(row) if row is not None else None

    def all_sessions(self) -> list[SessionRecord]:
        """Every stored session, most recently finished first."""
        with self._guard("list"):
            with self._db.session() as db:
                rows = (
                    db.query(MeditationSession)
                    .order_by(
                        MeditationSession.finished_at.desc(),
                        MeditationSession.id.desc(),
                    )
                    .all()
                )
                return [_to_record(r) for r in rows]

    # ── internal ──────────────────────────────────────────────────────

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error("session %s failed: %s", operation, exc)
            raise StorageError(f"session {operation} failed") from exc

    def _notify(self) -> None:
        # The write already committed; a failed refresh must not undo that
        try:
            records = self.all_sessions()
        except StorageError:
            logger.warning("session list refresh failed; change not broadcast")
            return
        self.sessions_changed.emit(records)
