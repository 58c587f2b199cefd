"""
Audio cue manager backed by pygame.mixer.

Implements the cue trigger the narrative engine consumes:

    audio.play_cue(SoundChannel.VOICE, "voice/hero_01.ogg", 0.8)

Playback is fire-and-forget. Every failure path logs and returns a falsy
value; nothing in here raises into the caller.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable

import pygame

from vnengine.core.events import EventBus, AudioEvent

logger = logging.getLogger(__name__)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class AudioManager:
    """
    Plays dialogue cues, sound effects and background music.

    Effective volume of any sound is master * category * cue gain, where
    the category is one of bgm, sfx or voice.

    Also keeps:
    - a cache of loaded sounds keyed by resolved path
    - short aliases registered by preload() or register_sound()
    """

    CATEGORIES = ("bgm", "sfx", "voice")
    MIXER_CHANNELS = 16

    def __init__(
        self,
        event_bus: EventBus | None = None,
        base_path: str | Path = "",
    ):
        self.event_bus = event_bus
        self.base_path = Path(base_path)

        self._master_volume = 1.0
        self._category_volumes = {"bgm": 0.5, "sfx": 0.7, "voice": 0.8}

        self._sound_cache: dict[str, pygame.mixer.Sound] = {}
        self._aliases: dict[str, str] = {}
        self._current_bgm = ""
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def current_bgm(self) -> str:
        return self._current_bgm

    def init(self, frequency: int = 44100, buffer: int = 512) -> None:
        """Open the mixer, or adopt one the host already opened."""
        if not pygame.mixer.get_init():
            try:
                pygame.mixer.init(frequency=frequency, size=-16, channels=2, buffer=buffer)
            except pygame.error as e:
                logger.error(f"Audio unavailable, cues will be skipped: {e}")
                return
            logger.info("Mixer opened")

        pygame.mixer.set_num_channels(self.MIXER_CHANNELS)
        self._initialized = True

    def quit(self) -> None:
        self.stop_all()
        self.clear_cache()
        pygame.mixer.quit()
        self._initialized = False

    # Volume

    def set_master_volume(self, volume: float) -> None:
        self._master_volume = _clamp(volume)
        self._sync_music_volume()

    def set_category_volume(self, category: str, volume: float) -> None:
        """Set bgm, sfx or voice volume. Unknown categories are ignored."""
        if category not in self._category_volumes:
            logger.debug(f"Ignoring volume for unknown category '{category}'")
            return
        self._category_volumes[category] = _clamp(volume)
        if category == "bgm":
            self._sync_music_volume()

    def get_volume(self, category: str) -> float:
        """Master volume times the category volume."""
        return self._master_volume * self._category_volumes.get(category, 1.0)

    def _sync_music_volume(self) -> None:
        if self._initialized:
            pygame.mixer.music.set_volume(self.get_volume("bgm"))

    def get_settings(self) -> dict:
        return {"master": self._master_volume, "categories": dict(self._category_volumes)}

    def apply_settings(self, settings: dict) -> None:
        """Apply a get_settings()-shaped dict, e.g. PlaybackConfig.volume_settings()."""
        self.set_master_volume(settings.get("master", self._master_volume))
        for category, volume in settings.get("categories", {}).items():
            self.set_category_volume(category, volume)

    # Resources

    def register_sound(self, name: str, file_path: str) -> None:
        """Make a sound addressable by a short name."""
        self._aliases[name] = file_path

    def preload(self, sounds: Iterable[dict]) -> bool:
        """
        Load a batch of sounds into the cache.

        Args:
            sounds: Dicts with "name" and "url" keys (and an ignored "type")

        Returns:
            True if every sound loaded
        """
        sounds = list(sounds)
        loaded = 0
        for sound in sounds:
            name = sound.get("name")
            url = sound.get("url", name)
            if name:
                self.register_sound(name, url)
            if self._get_sound(url) is not None:
                loaded += 1

        logger.info(f"{loaded}/{len(sounds)} sounds loaded.")
        return loaded == len(sounds)

    def clear_cache(self) -> None:
        self._sound_cache.clear()

    def _resolve(self, asset_ref: str) -> str:
        asset_ref = self._aliases.get(asset_ref, asset_ref)
        path = Path(asset_ref)
        if not path.is_absolute() and str(self.base_path) not in ("", "."):
            path = self.base_path / path
        return str(path)

    def _get_sound(self, asset_ref: str) -> pygame.mixer.Sound | None:
        """Cached sound for asset_ref, loading it on first use."""
        if not self._initialized:
            return None

        file_path = self._resolve(asset_ref)
        if file_path not in self._sound_cache:
            if not Path(file_path).exists():
                logger.warning(f"Audio file not found: {file_path}")
                return None
            try:
                self._sound_cache[file_path] = pygame.mixer.Sound(file_path)
            except pygame.error as e:
                logger.error(f"Failed to load sound {file_path}: {e}")
                return None

        return self._sound_cache[file_path]

    # Playback

    def play_cue(self, channel: Enum | str, asset_ref: str, gain: float = 1.0) -> bool:
        """
        Play a dialogue sound cue on the voice or sfx channel.

        Returns:
            True if the sound started
        """
        category = channel.value if isinstance(channel, Enum) else str(channel)
        played = self.play_sfx(asset_ref, category=category, volume=gain)

        if played is None:
            if self.event_bus:
                self.event_bus.publish(AudioEvent.CUE_FAILED, channel=category, asset=asset_ref)
            return False

        if self.event_bus:
            self.event_bus.publish(AudioEvent.CUE_PLAYED, channel=category, asset=asset_ref, gain=gain)
        return True

    def play_sfx(
        self,
        asset_ref: str,
        category: str = "sfx",
        volume: float = 1.0,
        loops: int = 0,
    ) -> pygame.mixer.Channel | None:
        """
        Play a one-shot sound.

        Returns:
            The channel used, or None if failed.
        """
        sound = self._get_sound(asset_ref)
        if not sound:
            return None

        final_vol = self.get_volume(category) * _clamp(volume)

        channel = pygame.mixer.find_channel()
        if not channel:
            # Steal the oldest channel if all are busy
            channel = pygame.mixer.find_channel(True)
        if not channel:
            logger.warning(f"No free audio channel for {asset_ref}")
            return None

        channel.set_volume(final_vol)
        channel.play(sound, loops=loops)
        return channel

    def play_bgm(self, asset_ref: str, loop: bool = True, fade_ms: int = 2000) -> bool:
        """Play background music, replacing the current track."""
        if not self._initialized:
            logger.warning("Audio system not initialized, cannot play music.")
            return False

        file_path = self._resolve(asset_ref)
        try:
            pygame.mixer.music.load(file_path)
            pygame.mixer.music.play(loops=-1 if loop else 0, fade_ms=fade_ms)
            pygame.mixer.music.set_volume(self.get_volume("bgm"))
        except pygame.error as e:
            logger.error(f"Failed to load music '{file_path}': {e}")
            return False

        self._current_bgm = asset_ref
        logger.info(f"Playing BGM: {asset_ref}")
        if self.event_bus:
            self.event_bus.publish(AudioEvent.BGM_STARTED, file=asset_ref)
        return True

    def stop_bgm(self, fade_ms: int = 1000) -> None:
        """Stop background music."""
        if not self._current_bgm:
            return

        if self._initialized:
            if fade_ms > 0:
                pygame.mixer.music.fadeout(fade_ms)
            else:
                pygame.mixer.music.stop()

        self._current_bgm = ""
        if self.event_bus:
            self.event_bus.publish(AudioEvent.BGM_STOPPED)

    def stop_all(self) -> None:
        """Stop music and every playing sound."""
        self.stop_bgm(fade_ms=0)
        if self._initialized:
            pygame.mixer.stop()
