"""Shared slot holding the currently selected reference sample."""

from __future__ import annotations

import threading
from typing import Callable, List, Optional

from ..audio.types import ReferenceSample

Listener = Callable[[Optional[ReferenceSample]], None]


class SelectionSlot:
    """At most one selected sample, observed by the screens that hold this slot."""

    def __init__(self, initial: ReferenceSample | None = None) -> None:
        self._value = initial
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    @property
    def value(self) -> ReferenceSample | None:
        return self._value

    def set(self, sample: ReferenceSample | None) -> None:
        with self._lock:
            if sample == self._value:
                return
            self._value = sample
            listeners = list(self._listeners)
        for listener in listeners:
            listener(sample)

    def clear(self) -> None:
        self.set(None)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe


__all__ = ["SelectionSlot"]
