"""Persistent user preferences for the speech engine and audio devices."""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path

from ..config import CONFIG


@dataclass(slots=True)
class AppSettings:
    default_text: str = CONFIG.default_text
    model_repo: str = CONFIG.model_repo
    hf_endpoint: str = CONFIG.hf_endpoint
    mock_engine: bool = False
    input_device: str = ""


class SettingsStore:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._settings = self._load()

    def _load(self) -> AppSettings:
        if not self.path.exists():
            return AppSettings()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            raw = {}
        if not isinstance(raw, dict):
            raw = {}
        settings = AppSettings()
        settings.default_text = str(raw.get("default_text", settings.default_text))
        settings.model_repo = str(raw.get("model_repo", settings.model_repo))
        settings.hf_endpoint = str(raw.get("hf_endpoint", settings.hf_endpoint))
        settings.mock_engine = _as_bool(raw.get("mock_engine", settings.mock_engine))
        settings.input_device = str(raw.get("input_device", settings.input_device))
        return settings

    def get(self) -> AppSettings:
        return self._settings

    def update(self, **kwargs) -> AppSettings:
        for key, value in kwargs.items():
            if not hasattr(self._settings, key):
                continue
            current = getattr(self._settings, key)
            if isinstance(current, bool):
                setattr(self._settings, key, _as_bool(value))
            else:
                setattr(self._settings, key, str(value or ""))
        self._persist()
        return self._settings

    def input_device(self) -> int | str | None:
        """Resolve the stored device to what sounddevice accepts (index, name or default)."""
        value = self._settings.input_device.strip()
        if not value:
            return None
        return int(value) if value.isdigit() else value

    def _persist(self) -> None:
        self.path.write_text(json.dumps(asdict(self._settings)), encoding="utf-8")


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


__all__ = ["AppSettings", "SettingsStore"]
