"""Microphone capture and speaker playback behind a small start/stop contract."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

import numpy as np
import soundfile as sf

from ..config import CONFIG
from ..errors import DeviceError
from ..services.logger import LogBuffer
from .types import PlaybackHandle, RecordingHandle

Dispatch = Callable[[Callable[[], None]], None]
FinishedCallback = Callable[[PlaybackHandle], None]


def _run_inline(fn: Callable[[], None]) -> None:
    fn()


class AudioSessionController:
    """Single owner of the capture and playback streams.

    All public methods are meant to be called from one sequencing context (the
    Kivy main thread). Playback completion arrives on the PortAudio thread and is
    handed to ``dispatch`` before any state is touched. Without a dispatch the
    finished stream is closed on the next play, stop or close call.
    """

    def __init__(
        self,
        scratch_dir: Path,
        logger: LogBuffer,
        *,
        dispatch: Dispatch | None = None,
        input_device: int | str | None = None,
    ) -> None:
        self.scratch_dir = Path(scratch_dir)
        self.logger = logger
        self.sample_rate = CONFIG.sample_rate
        self.channels = CONFIG.channels
        self.input_device = input_device
        self._dispatch = dispatch or _run_inline
        self._inline = dispatch is None
        self._sd = self._try_import_sounddevice()
        self._lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._input_stream = None
        self._writer: sf.SoundFile | None = None
        self._recording: RecordingHandle | None = None
        self._last_recording: Path | None = None
        self._output_stream = None
        self._spent_stream = None
        self._playback: PlaybackHandle | None = None
        self._is_recording = False
        self._is_playing = False

    def _try_import_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception:
            return None

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def current_playback(self) -> PlaybackHandle | None:
        return self._playback

    # Recording

    def start_recording(self) -> Optional[RecordingHandle]:
        if self._is_recording:
            self.logger.add("Recording already active; restarting capture")
            self.stop_recording()

        started_at = datetime.now(timezone.utc)
        path = self.scratch_dir / f"recording_{started_at.strftime('%Y%m%dT%H%M%S')}_{uuid.uuid4().hex[:8]}.wav"
        try:
            self._ensure_microphone_permission()
            sd = self._require_device()
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            with self._write_lock:
                self._writer = sf.SoundFile(
                    str(path),
                    mode="w",
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    format="WAV",
                    subtype="PCM_16",
                )
            self._input_stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                device=self.input_device,
                callback=self._on_input,
            )
            self._input_stream.start()
        except Exception as exc:
            self.logger.error(f"Could not start recording: {exc}")
            self._close_input()
            path.unlink(missing_ok=True)
            return None

        # The previous take is only replaced once the new capture is running.
        if self._last_recording is not None:
            self.discard_recording(self._last_recording)
            self._last_recording = None
        self._recording = RecordingHandle(path=path, started_at=started_at)
        self._is_recording = True
        self.logger.add("Recording started")
        return self._recording

    def stop_recording(self) -> Optional[Path]:
        handle = self._recording
        if handle is None:
            self._is_recording = False
            return None
        self._close_input()
        self._recording = None
        self._is_recording = False
        self._last_recording = handle.path
        self.logger.add(f"Recording stopped ({handle.path.name})")
        return handle.path

    def discard_recording(self, path: Path) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            self.logger.add(f"Could not remove scratch recording {Path(path).name}: {exc}")

    def set_input_device(self, device: int | str | None) -> None:
        self.input_device = device

    def _on_input(self, indata: np.ndarray, frames: int, time_info, status) -> None:  # noqa: ARG002
        if status:
            self.logger.add(f"Input status: {status}")
        with self._write_lock:
            if self._writer is not None:
                self._writer.write(np.array(indata, dtype=np.int16, copy=True))

    def _close_input(self) -> None:
        stream, self._input_stream = self._input_stream, None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except Exception as exc:
                self.logger.add(f"sounddevice error: {exc}")
        with self._write_lock:
            writer, self._writer = self._writer, None
        if writer is not None:
            writer.close()

    # Playback

    def play(self, path: Path, on_finished: FinishedCallback | None = None) -> Optional[PlaybackHandle]:
        """Stop whatever is playing and start ``path``.

        ``is_playing`` is not lowered between the two, so a switch from one file
        to another reads as continuous playback.
        """
        path = Path(path)
        self._halt_output()
        try:
            sd = self._require_device()
            data, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
            handle = PlaybackHandle(path=path)
            stream = sd.OutputStream(
                samplerate=sample_rate,
                channels=data.shape[1],
                dtype="float32",
                callback=self._make_feeder(data, sd.CallbackStop),
                finished_callback=lambda: self._on_output_finished(handle, on_finished),
            )
            with self._lock:
                self._output_stream = stream
                self._playback = handle
                self._is_playing = True
            stream.start()
        except Exception as exc:
            self.logger.error(f"Could not play {path.name}: {exc}")
            self._halt_output()
            self._is_playing = False
            return None
        self.logger.add(f"Playing {path.name}")
        return handle

    def stop_playback(self) -> None:
        was_playing = self._playback is not None
        self._halt_output()
        self._is_playing = False
        if was_playing:
            self.logger.add("Playback stopped")

    def close(self) -> None:
        self.stop_recording()
        self.stop_playback()

    @staticmethod
    def _make_feeder(data: np.ndarray, stop_exc: type[Exception]):
        cursor = 0

        def _fill(outdata: np.ndarray, frames: int, time_info, status) -> None:  # noqa: ARG001
            nonlocal cursor
            chunk = data[cursor : cursor + frames]
            cursor += len(chunk)
            outdata[: len(chunk)] = chunk
            if len(chunk) < frames:
                outdata[len(chunk) :] = 0
                raise stop_exc()

        return _fill

    def _halt_output(self) -> None:
        self._release_spent()
        # State is cleared before abort() so a completion fired during abort sees
        # a stale handle and leaves the flags alone.
        with self._lock:
            stream, self._output_stream = self._output_stream, None
            handle, self._playback = self._playback, None
            if handle is not None:
                handle.stopped = True
        if stream is not None:
            try:
                stream.abort()
                stream.close()
            except Exception as exc:
                self.logger.add(f"sounddevice error: {exc}")

    def _on_output_finished(self, handle: PlaybackHandle, on_finished: FinishedCallback | None) -> None:
        def _apply() -> None:
            stream = None
            with self._lock:
                if self._playback is handle:
                    stream, self._output_stream = self._output_stream, None
                    self._playback = None
                    self._is_playing = False
            if stream is not None:
                if self._inline:
                    # Still on the PortAudio thread, which must not close its own stream.
                    with self._lock:
                        self._spent_stream = stream
                else:
                    self._close_quietly(stream)
                self.logger.add(f"Finished playing {handle.path.name}")
            handle.finished.set()
            if on_finished:
                on_finished(handle)

        self._dispatch(_apply)

    def _release_spent(self) -> None:
        with self._lock:
            stream, self._spent_stream = self._spent_stream, None
        if stream is not None:
            self._close_quietly(stream)

    def _close_quietly(self, stream) -> None:
        try:
            stream.close()
        except Exception as exc:
            self.logger.add(f"sounddevice error: {exc}")

    # Device access

    def _require_device(self):
        if self._sd is None:
            raise DeviceError("sounddevice is not available (PortAudio missing?)")
        return self._sd

    def _ensure_microphone_permission(self) -> None:
        try:
            from android.permissions import Permission, check_permission, request_permissions  # type: ignore
        except ImportError:
            return
        if not check_permission(Permission.RECORD_AUDIO):
            request_permissions([Permission.RECORD_AUDIO])
            raise DeviceError("Microphone permission requested; start recording again once granted")


__all__ = ["AudioSessionController"]
