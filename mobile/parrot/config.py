"""Static client configuration shared by the audio, storage and engine layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True, slots=True)
class ClientConfig:
    sample_rate: int = 24_000
    channels: int = 1
    references_dir: str = "References"
    recordings_dir: str = "recordings"
    models_dir: str = "models"
    output_file: str = "output.wav"
    settings_file: str = "settings.json"
    log_history: int = 200
    audio_extensions: Tuple[str, ...] = (".wav", ".flac")
    transcript_extension: str = ".txt"
    hf_endpoint: str = "https://huggingface.co"
    model_repo: str = "SWivid/F5-TTS"
    model_files: Tuple[str, ...] = (
        "F5TTS_v1_Base/model_1250000.safetensors",
        "F5TTS_v1_Base/vocab.txt",
    )
    default_text: str = "Hello! This is a test of the F5 text to speech system."


CONFIG = ClientConfig()

__all__ = ["CONFIG", "ClientConfig"]
