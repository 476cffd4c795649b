"""Parrot: reference-conditioned speech generation client."""

__version__ = "0.1.0"
