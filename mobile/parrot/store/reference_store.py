"""Durable reference samples: paired audio + transcript files on local storage."""

from __future__ import annotations

import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from ..audio.session import AudioSessionController
from ..audio.types import PlaybackHandle, RecordingHandle, ReferenceSample
from ..config import CONFIG
from ..errors import LoadError, StorageError, ValidationError
from ..services.logger import LogBuffer
from .selection import SelectionSlot


class ReferenceSampleStore:
    """Manage the reference directory, the loaded sample list and the selection.

    The directory listing is the source of truth; there is no index file.
    """

    def __init__(
        self,
        root: Path,
        audio: AudioSessionController,
        logger: LogBuffer,
        selection: SelectionSlot | None = None,
    ) -> None:
        self.root = Path(root)
        self.audio = audio
        self.logger = logger
        self.selection = selection or SelectionSlot()
        self._samples: List[ReferenceSample] = []
        self._lock = threading.RLock()

    @property
    def samples(self) -> Tuple[ReferenceSample, ...]:
        with self._lock:
            return tuple(self._samples)

    def load_reference_samples(self) -> List[ReferenceSample]:
        try:
            loaded = self._scan()
        except LoadError as exc:
            self.logger.add(f"Failed to load references: {exc}")
            loaded = []
        with self._lock:
            self._samples = loaded
        return list(loaded)

    def save_reference_audio(self, source: Path, transcript: str) -> ReferenceSample:
        if not transcript or not transcript.strip():
            raise ValidationError("Reference text must not be empty")
        source = Path(source)
        suffix = source.suffix.lower()
        if suffix not in CONFIG.audio_extensions:
            raise ValidationError(f"Unsupported audio format: {source.name}")
        with self._lock:
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageError(f"Cannot create {self.root}: {exc}") from exc
            base = self._unique_base_name()
            audio_path = self.root / f"{base}{suffix}"
            text_path = audio_path.with_suffix(CONFIG.transcript_extension)
            try:
                shutil.copyfile(source, audio_path)
                self._write_transcript(text_path, transcript)
            except OSError as exc:
                self._discard(audio_path, text_path)
                raise StorageError(f"Failed to save reference: {exc}") from exc
            self.logger.add(f"Reference saved ({base})")
            self.load_reference_samples()
        return ReferenceSample(audio_path=audio_path, transcript=transcript)

    def select_reference(self, sample: ReferenceSample | None) -> None:
        self.selection.set(sample)

    def clear_selection(self) -> None:
        self.selection.clear()

    @property
    def selected_reference(self) -> ReferenceSample | None:
        return self.selection.value

    # Forwarding to the audio session

    def start_recording(self) -> Optional[RecordingHandle]:
        return self.audio.start_recording()

    def stop_recording(self) -> Optional[Path]:
        return self.audio.stop_recording()

    def play_audio(self, path: Path) -> Optional[PlaybackHandle]:
        return self.audio.play(path)

    def stop_playback(self) -> None:
        self.audio.stop_playback()

    @property
    def is_recording(self) -> bool:
        return self.audio.is_recording

    @property
    def is_playing(self) -> bool:
        return self.audio.is_playing

    # Internals

    def _scan(self) -> List[ReferenceSample]:
        try:
            entries = sorted(self.root.iterdir(), key=lambda item: item.name)
        except OSError as exc:
            raise LoadError(f"{self.root}: {exc.strerror or exc}") from exc
        samples: List[ReferenceSample] = []
        for audio_path in entries:
            if audio_path.suffix.lower() not in CONFIG.audio_extensions or not audio_path.is_file():
                continue
            text_path = audio_path.with_suffix(CONFIG.transcript_extension)
            try:
                with text_path.open(encoding="utf-8", newline="") as fh:
                    transcript = fh.read()
            except FileNotFoundError:
                continue
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.add(f"Skipping {audio_path.name}: {exc}")
                continue
            if not transcript.strip():
                self.logger.add(f"Skipping {audio_path.name}: empty transcript")
                continue
            samples.append(ReferenceSample(audio_path=audio_path, transcript=transcript))
        return samples

    def _unique_base_name(self) -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S.%fZ")
        base = stamp
        counter = 1
        while any(
            (self.root / f"{base}{suffix}").exists()
            for suffix in (*CONFIG.audio_extensions, CONFIG.transcript_extension)
        ):
            base = f"{stamp}-{counter}"
            counter += 1
        return base

    def _write_transcript(self, path: Path, transcript: str) -> None:
        with path.open("w", encoding="utf-8", newline="") as fh:
            fh.write(transcript)

    def _discard(self, *paths: Path) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                self.logger.add(f"Could not roll back {path.name}: {exc}")


__all__ = ["ReferenceSampleStore"]
