"""Dataclasses shared across audio helpers and the reference store."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ReferenceSample:
    """Durable (audio, transcript) pair used to condition speech generation."""

    audio_path: Path
    transcript: str

    @property
    def name(self) -> str:
        return self.audio_path.stem


@dataclass(frozen=True, slots=True)
class RecordingHandle:
    """Scratch recording started by the audio session controller."""

    path: Path
    started_at: datetime


@dataclass(slots=True)
class PlaybackHandle:
    """Lifetime of one playback operation; ``finished`` is set exactly once."""

    path: Path
    finished: threading.Event = field(default_factory=threading.Event)
    stopped: bool = False

    @property
    def done(self) -> bool:
        return self.finished.is_set()
