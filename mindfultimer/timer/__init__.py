"""Timer package."""

from .engine import (
    TimerEngine,
    TimerState,
    TimerStatus,
    ADD_MINUTE_SECONDS,
    TICK_INTERVAL_MS,
    wall_clock_ms,
)
from .finalizer import SessionFinalizer, build_record

__all__ = [
    "TimerEngine",
    "TimerState",
    "TimerStatus",
    "ADD_MINUTE_SECONDS",
    "TICK_INTERVAL_MS",
    "wall_clock_ms",
    "SessionFinalizer",
    "build_record",
]
