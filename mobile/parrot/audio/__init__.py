"""Audio capture, playback and shared audio dataclasses."""
