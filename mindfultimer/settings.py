"""Application settings with JSON persistence.

Settings are stored at:
    ~/Library/Application Support/MindfulTimer/settings.json

(or under ``$MINDFULTIMER_HOME`` when that variable is set).

Usage::

    store = SettingsStore()
    store.default_duration_changed.connect(engine_slot)
    store.update_default_duration(20 * 60)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path

from PyQt6.QtCore import QObject, pyqtSignal

logger = logging.getLogger(__name__)

APP_SUPPORT_DIR = Path(
    os.environ.get("MINDFULTIMER_HOME")
    or Path.home() / "Library" / "Application Support" / "MindfulTimer"
)
SETTINGS_PATH = APP_SUPPORT_DIR / "settings.json"

DEFAULT_DURATION = 5 * 60     # seconds
DEFAULT_BELL_INTERVAL = 60    # seconds


@dataclass
class Settings:
    """All user-configurable preferences."""

    # ── timer ─────────────────────────────────────────────────────────
    default_duration: int = DEFAULT_DURATION
    bell_interval: int = DEFAULT_BELL_INTERVAL
    use_bell: bool = True

    # ── audio ─────────────────────────────────────────────────────────
    sound_enabled: bool = True
    sound_volume: int = 70                 # 0-100


def _sanitize(settings: Settings) -> Settings:
    """Replace values of the wrong type or range with their defaults."""
    defaults = Settings()
    clean = {}
    for f in fields(Settings):
        value = getattr(settings, f.name)
        default = getattr(defaults, f.name)
        if isinstance(default, bool):
            ok = isinstance(value, bool)
        else:
            ok = isinstance(value, int) and not isinstance(value, bool) and value >= 0
        clean[f.name] = value if ok else default
    if clean["bell_interval"] <= 0:
        clean["bell_interval"] = defaults.bell_interval
    clean["sound_volume"] = min(clean["sound_volume"], 100)
    return Settings(**clean)


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from disk, falling back to defaults."""
    path = path or SETTINGS_PATH
    if not path.exists():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        # Only use keys that exist in the dataclass
        valid_keys = {f.name for f in fields(Settings)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return _sanitize(Settings(**filtered))
    except (OSError, ValueError, AttributeError) as exc:
        logger.warning("could not read %s (%s); using defaults", path, exc)
        return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Write settings to disk as JSON."""
    path = path or SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(asdict(settings), indent=2) + "\n",
        encoding="utf-8",
    )


class SettingsStore(QObject):
    """Observable, persisted preferences.

    Each ``update_*`` call writes the file and then re-emits the matching
    signal so every observer sees the new value.
    """

    default_duration_changed = pyqtSignal(int)
    bell_interval_changed = pyqtSignal(int)
    use_bell_changed = pyqtSignal(bool)
    sound_changed = pyqtSignal(bool, int)  # enabled, volume

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        path: Path | None = None,
    ) -> None:
        super().__init__(parent)
        self._path = path or SETTINGS_PATH
        self._settings = load_settings(self._path)

    @property
    def settings(self) -> Settings:
        """A copy of the current settings."""
        return replace(self._settings)

    @property
    def default_duration(self) -> int:
        return self._settings.default_duration

    @property
    def bell_interval(self) -> int:
        return self._settings.bell_interval

    @property
    def use_bell(self) -> bool:
        return self._settings.use_bell

    @property
    def sound_enabled(self) -> bool:
        return self._settings.sound_enabled

    @property
    def sound_volume(self) -> int:
        return self._settings.sound_volume

    def update_default_duration(self, seconds: int) -> None:
        self._store(default_duration=max(0, int(seconds)))
        self.default_duration_changed.emit(self._settings.default_duration)

    def update_bell_interval(self, seconds: int) -> None:
        self._store(bell_interval=max(1, int(seconds)))
        self.bell_interval_changed.emit(self._settings.bell_interval)

    def update_use_bell(self, enabled: bool) -> None:
        self._store(use_bell=bool(enabled))
        self.use_bell_changed.emit(self._settings.use_bell)

    def update_sound(self, enabled: bool, volume: int) -> None:
        self._store(sound_enabled=bool(enabled), sound_volume=max(0, min(int(volume), 100)))
        self.sound_changed.emit(self._settings.sound_enabled, self._settings.sound_volume)

    def _store(self, **changes) -> None:
        updated = replace(self._settings, **changes)
        save_settings(updated, self._path)
        self._settings = updated
        logger.debug("settings updated: %s", changes)
