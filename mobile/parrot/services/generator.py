"""Speech generation on top of the external F5-TTS model.

The model is a black box: it receives text plus an optional reference sample and
returns float samples. This module owns its lifecycle (uninitialized until the
weights are downloaded and loaded) and turns its progress hook into a sequence
of events consumed by the UI.
"""

from __future__ import annotations

import enum
import queue
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple

import numpy as np
import soundfile as sf

try:  # pragma: no cover - optional heavy dependency
    from f5_tts.api import F5TTS  # type: ignore
except Exception:  # pragma: no cover
    F5TTS = None  # type: ignore

from ..audio.types import ReferenceSample
from ..config import CONFIG
from ..errors import GenerationCancelled, GenerationError, NotInitializedError, ValidationError
from .downloader import ModelDownloader
from .logger import LogBuffer

ProgressCallback = Callable[[float], None]

# Reference clip shipped inside the f5_tts wheel, used when nothing is selected.
BUNDLED_REFERENCE = "infer/examples/basic/basic_ref_en.wav"
BUNDLED_REFERENCE_TEXT = "Some call me nature, others call me mother nature."


class GeneratorState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


@dataclass(frozen=True, slots=True)
class GenerationResult:
    samples: np.ndarray
    sample_rate: int
    elapsed: float

    @property
    def duration(self) -> float:
        if not self.sample_rate:
            return 0.0
        return len(self.samples) / float(self.sample_rate)


@dataclass(frozen=True, slots=True)
class GenerationEvent:
    kind: str
    fraction: float = 0.0
    result: GenerationResult | None = None
    error: Exception | None = None

    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self.kind != self.PROGRESS


class SynthesisBackend(ABC):
    sample_rate: int = CONFIG.sample_rate

    def load(self, progress: ProgressCallback | None = None) -> None:
        if progress:
            progress(1.0)

    @abstractmethod
    def synthesize(
        self, text: str, reference: ReferenceSample | None, progress: ProgressCallback
    ) -> np.ndarray:
        raise NotImplementedError


class _TqdmProgress:
    """Stands in for the ``tqdm`` module f5_tts iterates its batches through."""

    def __init__(self, callback: ProgressCallback) -> None:
        self.callback = callback

    def tqdm(self, iterable, total: int | None = None, **_kwargs):
        if total is None:
            try:
                total = len(iterable)
            except TypeError:
                total = 0
        for index, item in enumerate(iterable, start=1):
            yield item
            if total:
                self.callback(index / total)


class F5Backend(SynthesisBackend):
    """F5-TTS through the ``f5_tts`` package; renders a tone in mock mode."""

    def __init__(
        self,
        downloader: ModelDownloader | None = None,
        *,
        mock: bool = False,
        device: str | None = None,
    ) -> None:
        self.downloader = downloader
        self.device = device
        self.sample_rate = CONFIG.sample_rate
        self._mock = mock or F5TTS is None
        self._model = None
        self._lock = threading.Lock()

    @property
    def mock(self) -> bool:
        return self._mock

    def load(self, progress: ProgressCallback | None = None) -> None:
        if self._mock:
            if progress:
                progress(1.0)
            return
        with self._lock:
            if self._model is not None:
                return
            kwargs = {}
            if self.downloader is not None:
                kwargs.update(self._checkpoint_kwargs(self.downloader.ensure(progress)))
            self._model = F5TTS(device=self.device, **kwargs)
            self.sample_rate = int(getattr(self._model, "target_sample_rate", CONFIG.sample_rate))

    def synthesize(
        self, text: str, reference: ReferenceSample | None, progress: ProgressCallback
    ) -> np.ndarray:
        if self._mock:
            return self._render_tone(text, progress)
        if self._model is None:
            raise NotInitializedError("F5-TTS model is not loaded")
        ref_file, ref_text = self._conditioning(reference)
        wav, sample_rate, _spectrogram = self._model.infer(
            ref_file=ref_file,
            ref_text=ref_text,
            gen_text=text,
            show_info=lambda *_args: None,
            progress=_TqdmProgress(progress),
        )
        self.sample_rate = int(sample_rate)
        return np.asarray(wav, dtype=np.float32)

    @staticmethod
    def _checkpoint_kwargs(paths: dict) -> dict:
        kwargs = {}
        for name, path in paths.items():
            if name.endswith((".safetensors", ".pt")):
                kwargs["ckpt_file"] = str(path)
            elif name.endswith("vocab.txt"):
                kwargs["vocab_file"] = str(path)
        return kwargs

    @staticmethod
    def _conditioning(reference: ReferenceSample | None) -> Tuple[str, str]:
        if reference is not None:
            return str(reference.audio_path), reference.transcript
        from importlib.resources import files

        return str(files("f5_tts").joinpath(BUNDLED_REFERENCE)), BUNDLED_REFERENCE_TEXT

    def _render_tone(self, text: str, progress: ProgressCallback) -> np.ndarray:
        duration = min(10.0, 0.5 + 0.06 * len(text))
        total = int(duration * self.sample_rate)
        steps = 8
        bounds = np.linspace(0, total, steps + 1, dtype=int)
        pieces = []
        for step in range(steps):
            t = np.arange(bounds[step], bounds[step + 1]) / self.sample_rate
            pieces.append(0.2 * np.sin(2 * np.pi * 220.0 * t))
            progress((step + 1) / steps)
        return np.concatenate(pieces).astype(np.float32)


class GenerationTask:
    """One in-flight synthesis run; iterate it to receive progress and the outcome.

    Events are consumed once: a second iterator only sees what the first left.
    """

    def __init__(
        self,
        backend: SynthesisBackend,
        text: str,
        reference: ReferenceSample | None,
        logger: LogBuffer,
    ) -> None:
        self.backend = backend
        self.text = text
        self.reference = reference
        self.logger = logger
        self._events: "queue.Queue[GenerationEvent]" = queue.Queue()
        self._cancel = threading.Event()
        self._done = threading.Event()
        self._fraction = 0.0
        self._outcome: GenerationEvent | None = None
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> "GenerationTask":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def outcome(self) -> GenerationEvent | None:
        return self._outcome

    def __iter__(self) -> Iterator[GenerationEvent]:
        while True:
            event = self._events.get()
            yield event
            if event.terminal:
                return

    def wait(self, timeout: float | None = None) -> GenerationResult:
        if not self._done.wait(timeout):
            raise TimeoutError("Speech generation still running")
        assert self._outcome is not None
        if self._outcome.error is not None:
            raise self._outcome.error
        assert self._outcome.result is not None
        return self._outcome.result

    def _report(self, fraction: float) -> None:
        if self._cancel.is_set():
            raise GenerationCancelled("Speech generation cancelled")
        value = max(self._fraction, min(1.0, max(0.0, float(fraction))))
        self._fraction = value
        self._events.put(GenerationEvent(GenerationEvent.PROGRESS, fraction=value))

    def _run(self) -> None:
        start = time.perf_counter()
        try:
            self._report(0.0)
            samples = self.backend.synthesize(self.text, self.reference, self._report)
            if self._cancel.is_set():
                raise GenerationCancelled("Speech generation cancelled")
            if self._fraction < 1.0:
                self._report(1.0)
            result = GenerationResult(
                samples=np.asarray(samples, dtype=np.float32),
                sample_rate=int(self.backend.sample_rate),
                elapsed=time.perf_counter() - start,
            )
            outcome = GenerationEvent(GenerationEvent.COMPLETED, fraction=1.0, result=result)
            self.logger.add(f"Speech generation completed in {result.elapsed:.2f}s")
        except GenerationError as exc:
            outcome = GenerationEvent(GenerationEvent.FAILED, fraction=self._fraction, error=exc)
            self.logger.add(str(exc))
        except Exception as exc:
            error = GenerationError(f"Speech generation failed: {exc}")
            error.__cause__ = exc
            outcome = GenerationEvent(GenerationEvent.FAILED, fraction=self._fraction, error=error)
            self.logger.error(str(error))
        self._outcome = outcome
        self._done.set()
        self._events.put(outcome)


def relay_progress(task: GenerationTask, on_progress: ProgressCallback) -> GenerationEvent | None:
    """Drain ``task``, passing each progress fraction on, and return its terminal event."""
    for event in task:
        if event.kind == GenerationEvent.PROGRESS:
            on_progress(event.fraction)
    return task.outcome


class SpeechGenerator:
    """Explicit ``UNINITIALIZED -> READY`` lifecycle around a synthesis backend."""

    def __init__(self, backend: SynthesisBackend, logger: LogBuffer) -> None:
        self.backend = backend
        self.logger = logger
        self.error_message: str | None = None
        self._state = GeneratorState.UNINITIALIZED
        self._active: GenerationTask | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> GeneratorState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is GeneratorState.READY

    @property
    def active_task(self) -> GenerationTask | None:
        task = self._active
        if task is not None and task.done:
            return None
        return task

    def initialize(self, download_progress: ProgressCallback | None = None) -> bool:
        if self.is_ready:
            return True
        self.logger.add("Initializing speech model...")
        start = time.perf_counter()
        try:
            self.backend.load(download_progress)
        except Exception as exc:
            self.error_message = str(exc)
            self.logger.error(f"Failed to initialize speech model: {exc}")
            return False
        with self._lock:
            self._state = GeneratorState.READY
        self.error_message = None
        self.logger.add(f"Speech model ready in {time.perf_counter() - start:.2f}s")
        return True

    def generate(self, text: str, reference: ReferenceSample | None = None) -> GenerationTask:
        if not self.is_ready:
            self.logger.add("Generation requested before the model was initialized")
            raise NotInitializedError("Speech model is not initialized")
        if not text or not text.strip():
            raise ValidationError("Text must not be empty")
        with self._lock:
            if self.active_task is not None:
                raise GenerationError("A speech generation is already running")
            self.logger.add(f"Generating speech for: {text[:50]}")
            self._active = GenerationTask(self.backend, text, reference, self.logger).start()
            return self._active

    def save_audio(self, result: GenerationResult, path: Path) -> float:
        start = time.perf_counter()
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        sf.write(str(path), result.samples, result.sample_rate, subtype="PCM_16")
        elapsed = time.perf_counter() - start
        self.logger.add(f"Audio saved to {path.name} in {elapsed:.2f}s")
        return elapsed


__all__ = [
    "F5Backend",
    "GenerationEvent",
    "GenerationResult",
    "GenerationTask",
    "GeneratorState",
    "SpeechGenerator",
    "SynthesisBackend",
    "relay_progress",
]
