"""UI helpers (theme, reusable widgets)."""

from .theme import ParrotTheme, Palette, Spacing, Typography, rgba

__all__ = ["ParrotTheme", "Palette", "Spacing", "Typography", "rgba"]
