"""Turn a finished countdown into a stored session record."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from ..database.models import Rating
from ..database.repository import SessionRecord

if TYPE_CHECKING:
    from .engine import TimerState

logger = logging.getLogger(__name__)


def _to_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000)


def build_record(state: "TimerState", finished_at_ms: int) -> SessionRecord:
    """Package *state* as a new, not yet stored, session record.

    Elapsed time is wall-clock time since start, pauses included.
    Meditated time is what the countdown actually consumed.
    """
    started_at_ms = state.session_start_ms
    if started_at_ms is None:
        started_at_ms = finished_at_ms
    total_elapsed = max(0, (finished_at_ms - started_at_ms) // 1000)
    meditated = max(0, state.total_duration - state.time_left)

    return SessionRecord(
        finished_at=_to_datetime(finished_at_ms),
        started_at=_to_datetime(started_at_ms),
        total_elapsed_seconds=total_elapsed,
        meditated_seconds=meditated,
        pause_count=state.pause_count,
        rating=Rating.AVERAGE,
        notes=None,
    )


class SessionFinalizer:
    """Builds and inserts the record for one finished session.

    *repository* only needs ``insert(record) -> id``.  A
    :class:`~mindfultimer.database.StorageError` from it is not caught
    here: the caller decides whether to retry.
    """

    def __init__(self, repository) -> None:
        self._repository = repository

    def finalize(self, state: "TimerState", finished_at_ms: int) -> int:
        record = build_record(state, finished_at_ms)
        session_id = self._repository.insert(record)
        logger.debug(
            "finalized session %s: elapsed=%ss meditated=%ss",
            session_id, record.total_elapsed_seconds, record.meditated_seconds,
        )
        return session_id
