"""Desktop notifications and alarm sounds.

Both are best-effort: a missing notifier binary or audio player means the
feature is silently absent. Commands are launched without waiting on them; each launcher keeps its
handles and reaps the finished ones on the next launch.
"""

from __future__ import annotations

import io
import logging
import math
import shutil
import struct
import subprocess
import sys
import tempfile
import wave
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def request_permission(self) -> bool: ...

    def show(self, title: str, body: str) -> None: ...


class SoundPlayer(Protocol):
    def play(self, sound_id: str) -> None: ...


class NullNotifier:
    """Notifier for environments without desktop notifications."""

    def request_permission(self) -> bool:
        return False

    def show(self, title: str, body: str) -> None:
        pass


class NullSoundPlayer:
    def play(self, sound_id: str) -> None:
        pass


class DesktopNotifier:
    """Notifications through ``osascript`` (macOS) or ``notify-send`` (Linux)."""

    def __init__(self, app_name: str = "Pomofocus"):
        self.app_name = app_name
        self._command = self._detect_command()
        self._processes: list[subprocess.Popen] = []

    @staticmethod
    def _detect_command() -> str | None:
        if sys.platform == "darwin":
            return shutil.which("osascript")
        if sys.platform.startswith("linux"):
            return shutil.which("notify-send")
        return None

    def request_permission(self) -> bool:
        """Granted when a notification command is available."""
        granted = self._command is not None
        if not granted:
            logger.debug("Desktop notifications unavailable on this system")
        return granted

    def show(self, title: str, body: str) -> None:
        if self._command is None:
            return

        if sys.platform == "darwin":
            script = f"display notification {_applescript_str(body)} with title {_applescript_str(title)}"
            args = [self._command, "-e", script]
        else:
            args = [self._command, "--app-name", self.app_name, title, body]

        try:
            _launch(args, self._processes)
        except OSError as e:
            logger.warning(f"Could not show notification: {e}")


def _launch(args: list[str], running: list[subprocess.Popen]) -> subprocess.Popen:
    """Start a command without waiting, reaping earlier ones that have exited."""
    running[:] = [process for process in running if process.poll() is None]
    process = subprocess.Popen(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    running.append(process)
    return process


def _applescript_str(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


# (frequency Hz, duration s) segments; 0 Hz is silence
SOUND_PATTERNS: dict[str, list[tuple[int, float]]] = {
    "bell": [(880, 0.10), (0, 0.05), (1046, 0.15)],
    "chime": [(1318, 0.12), (0, 0.04), (1046, 0.12), (0, 0.04), (784, 0.20)],
    "digital": [(1000, 0.08), (0, 0.06), (1000, 0.08), (0, 0.06), (1000, 0.08)],
    "soft": [(523, 0.30)],
}


def generate_tone(pattern: list[tuple[int, float]], sample_rate: int = 44100, volume: float = 0.4) -> bytes:
    """Render a tone pattern as mono 16-bit WAV data."""
    max_amplitude = 32767 * volume
    fade = int(sample_rate * 0.01)
    samples: list[int] = []

    for frequency, duration in pattern:
        count = int(sample_rate * duration)
        if frequency == 0:
            samples.extend([0] * count)
            continue
        for i in range(count):
            value = max_amplitude * math.sin(2 * math.pi * frequency * i / sample_rate)
            # Fade in and out to avoid clicks
            if i < fade:
                value *= i / fade
            elif i > count - fade:
                value *= (count - i) / fade
            samples.append(int(value))

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(struct.pack(f"<{len(samples)}h", *samples))
    return buffer.getvalue()


class SystemSoundPlayer:
    """Plays generated alarm tones with the platform's command line player."""

    def __init__(self, cache_dir: Path | None = None):
        self.cache_dir = cache_dir or Path(tempfile.gettempdir()) / "pomofocus-sounds"
        self._player = self._detect_player()
        self._processes: list[subprocess.Popen] = []

    @staticmethod
    def _detect_player() -> str | None:
        if sys.platform == "darwin":
            return shutil.which("afplay")
        if sys.platform.startswith("linux"):
            return shutil.which("paplay") or shutil.which("aplay")
        return None

    def sound_file(self, sound_id: str) -> Path:
        """Path to the WAV for a sound id, rendering it on first use."""
        pattern = SOUND_PATTERNS.get(sound_id)
        if pattern is None:
            logger.debug(f"Unknown sound {sound_id!r}, using bell")
            sound_id, pattern = "bell", SOUND_PATTERNS["bell"]

        path = self.cache_dir / f"{sound_id}.wav"
        if not path.exists():
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(generate_tone(pattern))
        return path

    def play(self, sound_id: str) -> None:
        if self._player is None:
            logger.debug("No audio player available")
            return

        try:
            path = self.sound_file(sound_id)
            _launch([self._player, str(path)], self._processes)
        except OSError as e:
            logger.warning(f"Could not play sound: {e}")
