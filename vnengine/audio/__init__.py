"""Audio module - cue playback and background music."""

from vnengine.audio.manager import AudioManager

__all__ = ["AudioManager"]
