"""
Visual novel engine runtime.

Quick Start:
    from vnengine.core import PlaybackConfig
    from narrative import NarrativeSession, SceneLoader

    session = NarrativeSession(PlaybackConfig(auto_advance=True))
    session.start_scene(SceneLoader("data/scenes").load("intro"))

    while session.sequencer.is_playing:
        session.update(1 / 60)
"""

__version__ = "0.1.0"

from vnengine.core import (
    EventBus,
    Event,
    NarrativeEvent,
    AudioEvent,
    Scheduler,
    Timer,
    PlaybackConfig,
    load_config,
)

__all__ = [
    # Events
    "EventBus",
    "Event",
    "NarrativeEvent",
    "AudioEvent",
    # Timers
    "Scheduler",
    "Timer",
    # Config
    "PlaybackConfig",
    "load_config",
]
