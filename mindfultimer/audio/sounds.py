"""Bell and alarm synthesis and playback using numpy + QSoundEffect.

Both sounds are generated programmatically as WAV files using sine-wave
synthesis with ADSR envelopes.  Files are cached to disk so subsequent
launches are instant.

Sound names
-----------
- ``bell``   — singing-bowl strike for interval bells
- ``alarm``  — soft three-tone chime, looped until stopped
"""

from __future__ import annotations

import io
import logging
import wave
from pathlib import Path

import numpy as np

from PyQt6.QtCore import QObject, QUrl
from PyQt6.QtMultimedia import QSoundEffect

from ..settings import APP_SUPPORT_DIR

logger = logging.getLogger(__name__)

SOUNDS_DIR = APP_SUPPORT_DIR / "sounds"

SOUND_NAMES = ("bell", "alarm")

SAMPLE_RATE = 44100


# ═══════════════════════════════════════════════════════════════════════════
#  WAV SYNTHESIS HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def _make_envelope(
    length: int,
    attack: int = 200,
    decay: int = 400,
    sustain_level: float = 0.7,
    release: int = 800,
) -> np.ndarray:
    """ADSR envelope (all durations in samples)."""
    env = np.ones(length, dtype=np.float64)
    a = min(attack, length)
    if a > 0:
        env[:a] = np.linspace(0.0, 1.0, a)
    d_end = min(a + decay, length)
    if decay > 0 and d_end > a:
        env[a:d_end] = np.linspace(1.0, sustain_level, d_end - a)
    s_end = max(length - release, d_end)
    if s_end > d_end:
        env[d_end:s_end] = sustain_level
    if release > 0 and s_end < length:
        env[s_end:] = np.linspace(sustain_level, 0.0, length - s_end)
    return env


def _sine(freq: float, duration_s: float) -> np.ndarray:
    """Pure sine wave at *freq* Hz for *duration_s* seconds."""
    t = np.linspace(0, duration_s, int(SAMPLE_RATE * duration_s), endpoint=False)
    return np.sin(2 * np.pi * freq * t)


def _to_wav_bytes(samples: np.ndarray) -> bytes:
    """Convert a float64 numpy array (-1..1) to 16-bit PCM WAV bytes."""
    samples = np.clip(samples, -1.0, 1.0)
    int_samples = (samples * 32767).astype(np.int16)

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(int_samples.tobytes())
    return buf.getvalue()


# ═══════════════════════════════════════════════════════════════════════════
#  SOUND GENERATORS
# ═══════════════════════════════════════════════════════════════════════════


def _generate_bell() -> bytes:
    """Interval bell — struck bowl (G4) with inharmonic partials, long decay."""
    duration = 3.0
    fundamental = 392.0
    # Singing bowls ring with partials well off the harmonic series
    partials = ((1.0, 0.40), (2.76, 0.12), (5.40, 0.05))
    t = np.linspace(0, duration, int(SAMPLE_RATE * duration), endpoint=False)
    combined = np.zeros_like(t)
    for ratio, amp in partials:
        decay = np.exp(-t * (1.2 + ratio * 0.6))
        combined += np.sin(2 * np.pi * fundamental * ratio * t) * amp * decay
    env = _make_envelope(
        len(combined),
        attack=int(SAMPLE_RATE * 0.005),
        decay=0,
        sustain_level=1.0,
        release=int(SAMPLE_RATE * 0.4),
    )
    return _to_wav_bytes(combined * env)


def _generate_alarm() -> bytes:
    """End-of-session alarm — gentle descending chime (E5→C5→G4) plus rest.

    The trailing silence is part of the sample so the loop breathes.
    """
    notes = [659.25, 523.25, 392.00]
    parts: list[np.ndarray] = []
    for freq in notes:
        tone = _sine(freq, 0.45) * 0.45 + _sine(freq * 2, 0.45) * 0.06
        env = _make_envelope(len(tone), attack=300, decay=3000, sustain_level=0.4, release=9000)
        parts.append(tone * env)
        parts.append(np.zeros(int(SAMPLE_RATE * 0.08)))
    parts.append(np.zeros(int(SAMPLE_RATE * 0.8)))
    return _to_wav_bytes(np.concatenate(parts))


_GENERATORS = {
    "bell": _generate_bell,
    "alarm": _generate_alarm,
}


# ═══════════════════════════════════════════════════════════════════════════
#  SOUND MANAGER
# ═══════════════════════════════════════════════════════════════════════════


class SoundManager(QObject):
    """Plays the interval bell and the end-of-session alarm.

    Usage::

        mgr = SoundManager(parent=self)
        mgr.set_volume(70)
        mgr.play_bell()
        mgr.play_alarm()   # loops ...
        mgr.stop_alarm()
    """

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        sounds_dir: Path | None = None,
    ) -> None:
        super().__init__(parent)
        self._enabled = True
        self._volume = 0.7  # 0.0–1.0
        self._sounds_dir = sounds_dir or SOUNDS_DIR
        self._effects: dict[str, QSoundEffect] = {}

        self._ensure_wav_files()
        self._load_effects()

    # ── public API ────────────────────────────────────────────────────

    def set_volume(self, level: int) -> None:
        """Set volume (0-100).  Updates all loaded effects."""
        self._volume = max(0, min(level, 100)) / 100.0
        for effect in self._effects.values():
            effect.setVolume(self._volume)

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self.stop_alarm()

    def apply_settings(self, enabled: bool, volume: int) -> None:
        """Slot for ``SettingsStore.sound_changed``."""
        self.set_volume(volume)
        self.set_enabled(enabled)

    def play_bell(self) -> None:
        """Strike the bell once.  No-op if disabled."""
        if not self._enabled:
            return
        effect = self._effects.get("bell")
        if effect is not None:
            effect.play()

    def play_alarm(self) -> None:
        """Start the alarm; it keeps looping until :meth:`stop_alarm`."""
        if not self._enabled:
            return
        effect = self._effects.get("alarm")
        if effect is not None:
            effect.stop()
            effect.play()
            logger.debug("alarm started")

    def stop_alarm(self) -> None:
        effect = self._effects.get("alarm")
        if effect is not None:
            # isPlaying() lags play(); stop unconditionally
            effect.stop()

    @property
    def volume(self) -> int:
        """Current volume as 0-100 integer."""
        return round(self._volume * 100)

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ── internal ──────────────────────────────────────────────────────

    def _ensure_wav_files(self) -> None:
        """Generate any missing WAV files to the cache directory."""
        self._sounds_dir.mkdir(parents=True, exist_ok=True)
        for name, gen_fn in _GENERATORS.items():
            path = self._sounds_dir / f"{name}.wav"
            if not path.exists():
                path.write_bytes(gen_fn())

    def _load_effects(self) -> None:
        """Create QSoundEffect instances from cached WAV files."""
        for name in SOUND_NAMES:
            path = self._sounds_dir / f"{name}.wav"
            if path.exists():
                effect = QSoundEffect(self)
                effect.setSource(QUrl.fromLocalFile(str(path)))
                effect.setVolume(self._volume)
                if name == "alarm":
                    effect.setLoopCount(QSoundEffect.Loop.Infinite.value)
                self._effects[name] = effect
