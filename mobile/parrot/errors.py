"""Error taxonomy for the Parrot client."""

from __future__ import annotations


class ParrotError(Exception):
    pass


class ValidationError(ParrotError):
    """Caller supplied invalid input (empty transcript, empty prompt)."""


class StorageError(ParrotError):
    """A filesystem operation failed; partial writes were rolled back."""


class DeviceError(ParrotError):
    """Microphone or speaker unavailable. Logged, never surfaced to the UI."""


class LoadError(ParrotError):
    """Reference directory or a sample pair could not be read. Logged only."""


class NotInitializedError(ParrotError):
    """Speech generation requested before the engine reached the ready state."""


class GenerationError(ParrotError):
    pass


class GenerationCancelled(GenerationError):
    pass


__all__ = [
    "ParrotError",
    "ValidationError",
    "StorageError",
    "DeviceError",
    "LoadError",
    "NotInitializedError",
    "GenerationError",
    "GenerationCancelled",
]
