"""Timer state machine for MindfulTimer.

States
------
STOPPED    Not running, waiting for the user to start.
RUNNING    Counting down toward an absolute target instant.
PAUSED     Countdown frozen (remembers the exact time left).
FINISHED   Countdown reached 0; alarm rings until the session is finished.

Transitions
-----------
STOPPED → RUNNING              (start)
RUNNING → PAUSED               (pause)
PAUSED → RUNNING               (resume)
RUNNING → RUNNING              (add_minute)
RUNNING | PAUSED → STOPPED     (reset, nothing is saved)
RUNNING → FINISHED             (time left reaches 0)
RUNNING | FINISHED → STOPPED   (finish_session, record saved)
RUNNING → FINISHED             (finish_session, save failed)

Every other intent in every other state is silently ignored, so the UI
can fire redundant clicks without guarding them.

Time left is never decremented per tick.  Each tick recomputes it from
``target - now``, so a late or dropped tick costs display smoothness,
never accuracy.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from ..database.repository import StorageError
from ..settings import DEFAULT_BELL_INTERVAL, DEFAULT_DURATION
from .finalizer import SessionFinalizer

logger = logging.getLogger(__name__)


# ── enums ─────────────────────────────────────────────────────────────────


class TimerStatus(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


# ── constants ─────────────────────────────────────────────────────────────

ADD_MINUTE_SECONDS = 60
TICK_INTERVAL_MS = 200  # UI smoothness only; accuracy comes from the target

Clock = Callable[[], int]


def wall_clock_ms() -> int:
    """Milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def _ceil_seconds(ms: int) -> int:
    # 0 only once the target has actually been reached
    return -(-ms // 1000) if ms > 0 else 0


@dataclass(frozen=True)
class TimerState:
    """Read-only snapshot of the engine, as published to observers."""

    status: TimerStatus
    total_duration: int
    time_left: int
    bell_interval: int
    bell_enabled: bool
    pause_count: int = 0
    target_ms: int | None = None
    session_start_ms: int | None = None


# ── engine ────────────────────────────────────────────────────────────────


class TimerEngine(QObject):
    """Qt-based meditation countdown with interval bells, an end alarm
    and session saving.

    Collaborators
    -------------
    repository
        Anything with ``insert(record) -> id`` (normally a
        :class:`~mindfultimer.database.SessionRepository`).
    sound
        Anything with ``play_bell()``, ``play_alarm()`` and
        ``stop_alarm()`` (normally a
        :class:`~mindfultimer.audio.SoundManager`).
    settings
        Optional :class:`~mindfultimer.settings.SettingsStore`.  Default
        duration and bell interval follow it while STOPPED; the bell
        on/off switch follows it always.

    Signals
    -------
    tick(time_left: int)
        Emitted whenever the whole-second countdown value changes.
    status_changed(new_status: TimerStatus)
        Emitted on every state transition.
    state_changed(state: TimerState)
        Emitted after any change, with a fresh snapshot.
    bell_rang(time_left: int)
        Emitted when an interval bell is struck.
    session_ready(session_id: int)
        Emitted once the finished session has been saved.  Slots that are
        not connected at that moment never see it.
    """

    tick = pyqtSignal(int)
    status_changed = pyqtSignal(object)
    state_changed = pyqtSignal(object)
    bell_rang = pyqtSignal(int)
    session_ready = pyqtSignal(int)

    def __init__(
        self,
        repository,
        sound,
        settings=None,
        parent: QObject | None = None,
        *,
        clock: Clock = wall_clock_ms,
        tick_interval_ms: int = TICK_INTERVAL_MS,
    ) -> None:
        super().__init__(parent)

        self._sound = sound
        self._finalizer = SessionFinalizer(repository)
        self._clock = clock
        self._settings = settings

        # ── configuration ─────────────────────────────────────────────
        self._total: int = DEFAULT_DURATION
        self._bell_interval: int = DEFAULT_BELL_INTERVAL
        self._bell_enabled: bool = False
        if settings is not None:
            self._total = max(0, settings.default_duration)
            self._bell_interval = max(1, settings.bell_interval)
            self._bell_enabled = settings.use_bell
            settings.default_duration_changed.connect(self._on_default_duration)
            settings.bell_interval_changed.connect(self._on_bell_interval)
            settings.use_bell_changed.connect(self._on_use_bell)

        # ── countdown state ───────────────────────────────────────────
        self._status: TimerStatus = TimerStatus.STOPPED
        self._time_left: int = self._total
        self._remaining_ms: int = self._total * 1000  # exact, while not RUNNING
        self._target_ms: int | None = None
        self._session_start_ms: int | None = None
        self._finished_at_ms: int | None = None
        self._pause_count: int = 0

        # ── Qt timer ──────────────────────────────────────────────────
        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(tick_interval_ms)
        self._qt_timer.timeout.connect(self._on_tick)

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def state(self) -> TimerState:
        return TimerState(
            status=self._status,
            total_duration=self._total,
            time_left=self._time_left,
            bell_interval=self._bell_interval,
            bell_enabled=self._bell_enabled,
            pause_count=self._pause_count,
            target_ms=self._target_ms,
            session_start_ms=self._session_start_ms,
        )

    @property
    def status(self) -> TimerStatus:
        return self._status

    @property
    def time_left(self) -> int:
        """Whole seconds left on the clock."""
        return self._time_left

    @property
    def total_duration(self) -> int:
        """Total seconds for this session (including added minutes)."""
        return self._total

    @property
    def pause_count(self) -> int:
        return self._pause_count

    @property
    def percent_complete(self) -> float:
        """0.0 → 1.0 progress through the current session."""
        if self._total <= 0:
            return 0.0
        elapsed = self._total - self._time_left
        return max(0.0, min(1.0, elapsed / self._total))

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    def start(self) -> None:
        """Begin a fresh session.  Only valid from STOPPED."""
        if self._status != TimerStatus.STOPPED:
            return
        now = self._clock()
        self._session_start_ms = now
        self._finished_at_ms = None
        self._pause_count = 0
        self._time_left = self._total
        self._remaining_ms = self._total * 1000
        self._target_ms = now + self._remaining_ms

        logger.debug("start: %ss", self._total)
        self._set_status(TimerStatus.RUNNING)
        self.tick.emit(self._time_left)
        self._qt_timer.start()

    def pause(self) -> None:
        """Freeze the countdown.  Only valid while RUNNING."""
        if self._status != TimerStatus.RUNNING:
            return
        # Settle bells / completion up to this instant first
        self._on_tick()
        if self._status != TimerStatus.RUNNING:
            return
        self._qt_timer.stop()
        self._target_ms = None
        self._pause_count += 1
        logger.debug("pause #%s at %ss", self._pause_count, self._time_left)
        self._set_status(TimerStatus.PAUSED)

    def resume(self) -> None:
        """Continue from exactly where :meth:`pause` left off."""
        if self._status != TimerStatus.PAUSED:
            return
        self._target_ms = self._clock() + self._remaining_ms
        logger.debug("resume at %ss", self._time_left)
        self._set_status(TimerStatus.RUNNING)
        self._qt_timer.start()

    def add_minute(self) -> None:
        """Extend the running session by one minute."""
        if self._status != TimerStatus.RUNNING:
            return
        self._target_ms += ADD_MINUTE_SECONDS * 1000
        self._total += ADD_MINUTE_SECONDS
        self._remaining_ms = self._remaining_ms_at(self._clock())
        self._time_left = _ceil_seconds(self._remaining_ms)
        self.tick.emit(self._time_left)
        self._publish()

    def reset(self) -> None:
        """Abandon the current session (unsaved) and return to STOPPED."""
        if self._status not in (TimerStatus.RUNNING, TimerStatus.PAUSED):
            return
        self._qt_timer.stop()
        self._target_ms = None
        self._session_start_ms = None
        self._time_left = self._total
        self._remaining_ms = self._total * 1000
        logger.debug("reset")
        self._set_status(TimerStatus.STOPPED)
        self.tick.emit(self._time_left)

    def finish_session(self) -> int | None:
        """Save the session and return to STOPPED.

        Valid while RUNNING (ending early) or FINISHED.  Returns the new
        record id, or ``None`` when there was nothing to finish.

        Raises :class:`~mindfultimer.database.StorageError` when the
        record cannot be saved.  The engine is then left FINISHED with
        its figures frozen, and calling this again retries the save.
        """
        if self._status not in (TimerStatus.RUNNING, TimerStatus.FINISHED):
            return None

        self._sound.stop_alarm()
        self._qt_timer.stop()
        if self._finished_at_ms is None:
            self._finished_at_ms = self._clock()

        if self._status == TimerStatus.RUNNING:
            # Ending early: freeze the figures but go straight to STOPPED
            self._remaining_ms = self._remaining_ms_at(self._finished_at_ms)
            self._time_left = _ceil_seconds(self._remaining_ms)
            self._target_ms = None

        try:
            session_id = self._finalizer.finalize(self.state, self._finished_at_ms)
        except StorageError:
            if self._status != TimerStatus.FINISHED:
                self._set_status(TimerStatus.FINISHED)
            raise

        self._finished_at_ms = None
        self._session_start_ms = None
        self._time_left = self._total
        self._remaining_ms = self._total * 1000
        self._set_status(TimerStatus.STOPPED)
        self.session_ready.emit(session_id)
        return session_id

    def set_total_duration(self, seconds: int) -> None:
        """Configure the session length.  Ignored unless STOPPED."""
        if self._status != TimerStatus.STOPPED:
            return
        self._total = max(0, int(seconds))
        self._time_left = self._total
        self._remaining_ms = self._total * 1000
        self.tick.emit(self._time_left)
        self._publish()

    def set_interval_bell(self, enabled: bool, seconds: int) -> None:
        """Switch interval bells on/off and set their spacing (min 1 s)."""
        self._bell_enabled = bool(enabled)
        self._bell_interval = max(1, int(seconds))
        self._publish()

    def shutdown(self) -> None:
        """Stop ticking and let go of the settings store."""
        self._qt_timer.stop()
        if self._settings is not None:
            self._settings.default_duration_changed.disconnect(self._on_default_duration)
            self._settings.bell_interval_changed.disconnect(self._on_bell_interval)
            self._settings.use_bell_changed.disconnect(self._on_use_bell)
            self._settings = None

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — timer mechanics
    # ══════════════════════════════════════════════════════════════════

    def _remaining_ms_at(self, now: int) -> int:
        # Clamped both ways: a clock moved backward can't add time
        return max(0, min(self._target_ms - now, self._total * 1000))

    def _on_tick(self) -> None:
        if self._status != TimerStatus.RUNNING:
            return
        previous = self._time_left
        self._remaining_ms = self._remaining_ms_at(self._clock())
        self._time_left = _ceil_seconds(self._remaining_ms)

        if self._bell_due(previous, self._time_left):
            self._sound.play_bell()
            self.bell_rang.emit(self._time_left)

        if self._time_left != previous:
            self.tick.emit(self._time_left)
            self._publish()

        if self._time_left <= 0:
            self._complete()

    def _bell_due(self, previous: int, current: int) -> bool:
        """True when the countdown moved down across a bell threshold.

        Thresholds are positive multiples of the interval; several
        crossed in one late tick still ring a single bell.
        """
        if not self._bell_enabled or current >= previous:
            return False
        threshold = (previous - 1) // self._bell_interval * self._bell_interval
        return 0 < threshold and current <= threshold

    def _complete(self) -> None:
        self._qt_timer.stop()
        self._target_ms = None
        self._time_left = 0
        self._remaining_ms = 0
        logger.info("countdown finished (%ss)", self._total)
        self._set_status(TimerStatus.FINISHED)
        self._sound.play_alarm()

    def _set_status(self, new_status: TimerStatus) -> None:
        self._status = new_status
        self.status_changed.emit(new_status)
        self._publish()

    def _publish(self) -> None:
        self.state_changed.emit(self.state)

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — settings
    # ══════════════════════════════════════════════════════════════════

    def _on_default_duration(self, seconds: int) -> None:
        # set_total_duration is itself a no-op outside STOPPED
        self.set_total_duration(seconds)

    def _on_bell_interval(self, seconds: int) -> None:
        if self._status == TimerStatus.STOPPED:
            self._bell_interval = max(1, int(seconds))
            self._publish()

    def _on_use_bell(self, enabled: bool) -> None:
        self._bell_enabled = bool(enabled)
        self._publish()
