"""Shared test helpers for MindfulTimer."""

from mindfultimer.database import StorageError
from mindfultimer.timer.engine import TimerEngine, TimerStatus


class SignalCollector:
    """Utility to capture pyqtSignal emissions into a list."""

    def __init__(self):
        self.items: list = []

    def slot(self, *args):
        self.items.append(args if len(args) > 1 else args[0] if args else None)

    def __call__(self, *args):
        self.slot(*args)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, idx):
        return self.items[idx]

    @property
    def last(self):
        return self.items[-1] if self.items else None

    def clear(self):
        self.items.clear()


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += round(seconds * 1000)


class FakeSound:
    """Records calls instead of making noise."""

    def __init__(self):
        self.bells = 0
        self.alarms = 0
        self.alarm_stops = 0

    def play_bell(self):
        self.bells += 1

    def play_alarm(self):
        self.alarms += 1

    def stop_alarm(self):
        self.alarm_stops += 1


class FlakyRepository:
    """Wraps a real repository; ``insert`` fails while ``failing`` is set."""

    def __init__(self, inner, failing: bool = True):
        self.inner = inner
        self.failing = failing
        self.attempts = 0

    def insert(self, record):
        self.attempts += 1
        if self.failing:
            raise StorageError("disk full")
        return self.inner.insert(record)


def run_for(engine: TimerEngine, clock: FakeClock, seconds: float, step_ms: int = 200) -> None:
    """Advance the clock in *step_ms* slices, ticking after each one."""
    steps = round(seconds * 1000) // step_ms
    for _ in range(steps):
        if engine.status != TimerStatus.RUNNING:
            return
        clock.now += step_ms
        engine._on_tick()


def run_to_finish(engine: TimerEngine, clock: FakeClock) -> None:
    """Jump straight past the target and tick once."""
    clock.now = engine.state.target_ms
    engine._on_tick()
