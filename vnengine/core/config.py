"""
Playback configuration.

Mirrors the "settings" block of a game's config.json:

    {
        "settings": {
            "textSpeed": 5,
            "autoDelay": 3000,
            "bgmVolume": 50,
            "sfxVolume": 50,
            "voiceVolume": 50
        }
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Typewriter milliseconds per character, indexed by the 1-10 text speed
# slider. Speed 5 is the 50ms default.
_TEXT_SPEED_INTERVALS_MS = (90, 80, 70, 60, 50, 40, 30, 20, 10, 5)


def text_speed_to_interval(speed: int) -> float:
    """Convert a 1-10 text speed setting to seconds per character."""
    speed = max(1, min(10, int(speed)))
    return _TEXT_SPEED_INTERVALS_MS[speed - 1] / 1000.0


class PlaybackConfig:
    """Timing and volume settings for narrative playback."""

    def __init__(
        self,
        typewriter_interval: float = 0.05,
        fade_duration: float = 0.5,
        slide_duration: float = 0.3,
        slide_offset: float = 20.0,
        bounce_duration: float = 0.4,
        bounce_scale: float = 0.8,
        transition_delay: float = 0.1,
        auto_advance: bool = False,
        auto_delay: float = 3.0,
        master_volume: float = 1.0,
        bgm_volume: float = 0.5,
        sfx_volume: float = 0.5,
        voice_volume: float = 0.5,
        narration_label: str = "Narration",
    ):
        self.typewriter_interval = typewriter_interval
        self.fade_duration = fade_duration
        self.slide_duration = slide_duration
        self.slide_offset = slide_offset
        self.bounce_duration = bounce_duration
        self.bounce_scale = bounce_scale
        self.transition_delay = transition_delay
        self.auto_advance = auto_advance
        self.auto_delay = auto_delay
        self.master_volume = master_volume
        self.bgm_volume = bgm_volume
        self.sfx_volume = sfx_volume
        self.voice_volume = voice_volume
        self.narration_label = narration_label

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlaybackConfig:
        """
        Build a config from a parsed config.json document.

        Volumes are percentages (0-100) and autoDelay is milliseconds, as
        the settings screen stores them. Unknown keys are ignored.
        """
        settings = data.get("settings", data)
        config = cls()

        if "textSpeed" in settings:
            config.typewriter_interval = text_speed_to_interval(settings["textSpeed"])
        if "autoDelay" in settings:
            config.auto_delay = max(0, settings["autoDelay"]) / 1000.0
        if "autoAdvance" in settings:
            config.auto_advance = bool(settings["autoAdvance"])
        if "transitionDelay" in settings:
            config.transition_delay = max(0, settings["transitionDelay"]) / 1000.0

        for key, attr in (
            ("masterVolume", "master_volume"),
            ("bgmVolume", "bgm_volume"),
            ("sfxVolume", "sfx_volume"),
            ("voiceVolume", "voice_volume"),
        ):
            if key in settings:
                setattr(config, attr, _percent(settings[key]))

        return config

    def volume_settings(self) -> dict:
        """Volumes in the shape AudioManager.apply_settings() expects."""
        return {
            "master": self.master_volume,
            "categories": {
                "bgm": self.bgm_volume,
                "sfx": self.sfx_volume,
                "voice": self.voice_volume,
            },
        }


def _percent(value: Any) -> float:
    return max(0.0, min(1.0, float(value) / 100.0))


def load_config(path: str | Path) -> PlaybackConfig:
    """Load config.json, falling back to defaults if it is missing or broken."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Config file not found, using defaults: {path}")
        return PlaybackConfig()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read config {path}: {e}")
        return PlaybackConfig()

    return PlaybackConfig.from_dict(data)
