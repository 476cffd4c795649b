"""Logging, model download and speech generation services."""
