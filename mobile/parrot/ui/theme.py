"""Central theme tokens for the Kivy client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from kivy.metrics import dp

Color = Tuple[float, float, float, float]


def rgba(value: str, alpha: float = 1.0) -> Color:
    """Convert hex to normalized RGBA."""
    value = value.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected 6 hex chars, got {value!r}")
    r = int(value[0:2], 16) / 255.0
    g = int(value[2:4], 16) / 255.0
    b = int(value[4:6], 16) / 255.0
    return (r, g, b, alpha)


@dataclass(frozen=True)
class Palette:
    background: Color
    surface: Color
    surface_alt: Color
    card: Color
    outline: Color
    generate: Color
    playback: Color
    record: Color
    selected: Color
    danger: Color
    text_primary: Color
    text_secondary: Color
    text_muted: Color


@dataclass(frozen=True)
class Typography:
    title: str
    subtitle: str
    body: str
    caption: str


@dataclass(frozen=True)
class Spacing:
    grid: float
    section: float
    card_padding: float
    toolbar: float


@dataclass(frozen=True)
class ParrotTheme:
    palette: Palette
    typography: Typography
    spacing: Spacing

    @staticmethod
    def default() -> "ParrotTheme":
        palette = Palette(
            background=rgba("#0C1014"),
            surface=rgba("#141A20"),
            surface_alt=rgba("#1B232B"),
            card=rgba("#18212A"),
            outline=rgba("#2C3945"),
            generate=rgba("#2BB5A8"),
            playback=rgba("#5B5FE0"),
            record=rgba("#E5484D"),
            selected=rgba("#2BB5A8", 0.22),
            danger=rgba("#F9707A"),
            text_primary=rgba("#F2F5F7"),
            text_secondary=rgba("#B8C4CE"),
            text_muted=rgba("#7D8B97"),
        )
        typography = Typography(
            title="H5",
            subtitle="Subtitle1",
            body="Body1",
            caption="Caption",
        )
        spacing = Spacing(
            grid=dp(12),
            section=dp(20),
            card_padding=dp(18),
            toolbar=dp(8),
        )
        return ParrotTheme(palette=palette, typography=typography, spacing=spacing)


__all__ = ["ParrotTheme", "Palette", "Typography", "Spacing", "rgba"]
