"""Pytest configuration helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest


def _ensure_repo_on_path() -> None:
    """Allow tests to import from repo modules without setting PYTHONPATH."""
    repo_root = Path(__file__).resolve().parents[1]
    path_str = str(repo_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_repo_on_path()

import soundfile as sf  # noqa: E402

from mobile.parrot.services.logger import LogBuffer  # noqa: E402


class FakeInputStream:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.callback = kwargs["callback"]
        self.active = False
        self.closed = False

    def start(self) -> None:
        self.active = True

    def stop(self) -> None:
        self.active = False

    def close(self) -> None:
        self.closed = True

    def push(self, samples: np.ndarray) -> None:
        frames = np.asarray(samples, dtype=np.int16).reshape(-1, 1)
        self.callback(frames, len(frames), None, None)


class FakeOutputStream:
    def __init__(self, device: "FakeSoundDevice", **kwargs) -> None:
        self.device = device
        self.kwargs = kwargs
        self.callback = kwargs["callback"]
        self.finished_callback = kwargs["finished_callback"]
        self.active = False
        self.aborted = False
        self.closed = False
        self.played: list[np.ndarray] = []

    def start(self) -> None:
        self.active = True

    def abort(self) -> None:
        self.active = False
        self.aborted = True
        self.finished_callback()

    def close(self) -> None:
        self.closed = True

    def run_to_end(self, blocksize: int = 1024) -> None:
        channels = self.kwargs["channels"]
        while True:
            block = np.zeros((blocksize, channels), dtype=np.float32)
            try:
                self.callback(block, blocksize, None, None)
            except self.device.CallbackStop:
                self.played.append(block)
                break
            self.played.append(block)
        self.active = False
        self.finished_callback()


class FakeSoundDevice:
    """Records the streams the audio controller opens instead of touching hardware."""

    class CallbackStop(Exception):
        pass

    def __init__(self) -> None:
        self.inputs: list[FakeInputStream] = []
        self.outputs: list[FakeOutputStream] = []
        self.input_error: Exception | None = None

    def InputStream(self, **kwargs) -> FakeInputStream:  # noqa: N802
        if self.input_error is not None:
            raise self.input_error
        stream = FakeInputStream(**kwargs)
        self.inputs.append(stream)
        return stream

    def OutputStream(self, **kwargs) -> FakeOutputStream:  # noqa: N802
        stream = FakeOutputStream(self, **kwargs)
        self.outputs.append(stream)
        return stream


@pytest.fixture()
def fake_sd(monkeypatch):
    from mobile.parrot.audio import session as session_mod

    device = FakeSoundDevice()
    monkeypatch.setattr(session_mod.AudioSessionController, "_try_import_sounddevice", lambda self: device)
    return device


@pytest.fixture()
def logger():
    return LogBuffer(100)


@pytest.fixture()
def make_wav(tmp_path):
    def _make(name: str = "tone.wav", seconds: float = 0.25, sample_rate: int = 24_000) -> Path:
        t = np.arange(int(seconds * sample_rate)) / sample_rate
        samples = (np.sin(2 * np.pi * 440 * t) * 0.3).astype(np.float32)
        path = tmp_path / name
        sf.write(str(path), samples, sample_rate, subtype="PCM_16")
        return path

    return _make
