"""
Core engine module.

Exports:
- EventBus, Event, NarrativeEvent, AudioEvent: Event system
- Scheduler, Timer: Cooperative timers
- PlaybackConfig, load_config: Configuration
"""

from vnengine.core.events import EventBus, Event, NarrativeEvent, AudioEvent
from vnengine.core.scheduler import Scheduler, Timer
from vnengine.core.config import PlaybackConfig, load_config, text_speed_to_interval

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
    "text_speed_to_interval",
]
