"""Run a meditation session from the terminal: python -m mindfultimer [minutes]."""

import logging
import sys

from PyQt6.QtCore import QCoreApplication, QTimer

from .audio.sounds import SoundManager
from .database import Database, SessionRepository, StorageError
from .settings import SettingsStore
from .timer.engine import TimerEngine, TimerStatus

logger = logging.getLogger("mindfultimer")

ALARM_RING_MS = 4000


def _fmt_time(seconds: int) -> str:
    m, s = divmod(max(0, seconds), 60)
    return f"{m}:{s:02d}"


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QCoreApplication(sys.argv)
    app.setApplicationName("MindfulTimer")
    app.setOrganizationName("MindfulTimer")

    database = Database()
    database.init()
    repository = SessionRepository(database)
    settings = SettingsStore()
    sound = SoundManager()
    sound.apply_settings(settings.sound_enabled, settings.sound_volume)
    settings.sound_changed.connect(sound.apply_settings)

    engine = TimerEngine(repository, sound, settings)
    if len(sys.argv) > 1:
        engine.set_total_duration(int(float(sys.argv[1]) * 60))

    def on_tick(remaining: int) -> None:
        if remaining % 10 == 0 or remaining <= 5:
            logger.info("%s left", _fmt_time(remaining))

    def finish() -> None:
        try:
            engine.finish_session()
        except StorageError:
            logger.exception("session could not be saved")
            app.exit(1)

    def on_status(status: TimerStatus) -> None:
        if status == TimerStatus.FINISHED:
            QTimer.singleShot(ALARM_RING_MS, finish)

    def on_ready(session_id: int) -> None:
        record = repository.get_by_id(session_id)
        logger.info(
            "session %s saved: %s meditated",
            session_id, _fmt_time(record.meditated_seconds) if record else "?",
        )
        engine.shutdown()
        app.quit()

    engine.tick.connect(on_tick)
    engine.status_changed.connect(on_status)
    engine.session_ready.connect(on_ready)

    logger.info("MindfulTimer ready: %s session", _fmt_time(engine.total_duration))
    engine.start()

    code = app.exec()
    database.dispose()
    sys.exit(code)


if __name__ == "__main__":
    main()
