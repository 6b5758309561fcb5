"""Post-session rating and notes for a single stored session."""

from __future__ import annotations

import logging
from dataclasses import replace

from PyQt6.QtCore import QObject, pyqtSignal

from .database.models import Rating
from .database.repository import SessionRecord, SessionRepository

logger = logging.getLogger(__name__)


class SessionSummary(QObject):
    """Holds one session record and writes rating / notes edits back.

    Used both right after a session (opened from ``session_ready``) and
    later from the history list.  Edits made while the record is missing
    (deleted, or an unknown id) are ignored.

    Signals
    -------
    record_changed(record: SessionRecord)
        Emitted after an edit has been saved.
    """

    record_changed = pyqtSignal(object)

    def __init__(
        self,
        repository: SessionRepository,
        session_id: int,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._repository = repository
        self._record: SessionRecord | None = repository.get_by_id(session_id)
        if self._record is None:
            logger.warning("session %s not found", session_id)

    @property
    def record(self) -> SessionRecord | None:
        return self._record

    def update_rating(self, rating: Rating) -> None:
        self._save(rating=rating)

    def update_notes(self, notes: str) -> None:
        self._save(notes=notes)

    def _save(self, **changes) -> None:
        if self._record is None:
            return
        updated = replace(self._record, **changes)
        self._repository.update(updated)
        self._record = updated
        self.record_changed.emit(updated)
