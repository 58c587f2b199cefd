"""
Narrative module - branching dialogue playback.

Provides:
- Scene / entry / choice data model
- Timed text reveal effects
- Single-entry dialogue presenter
- History ledger with statistics and export
- Playback sequencer (the scene state machine)
- Scene loading, game state and a wired session for hosts
"""

from narrative.models import (
    Choice,
    DialogueEntry,
    EffectKind,
    ExportFormat,
    HistoryRecord,
    HistoryStats,
    PlaybackPhase,
    PlaybackState,
    Scene,
    SoundChannel,
    SoundCue,
    SpeakerArt,
)
from narrative.effects import EffectRunner, TextDisplay
from narrative.history import HistoryLedger
from narrative.presenter import DialoguePresenter
from narrative.sequencer import PlaybackSequencer
from narrative.loader import SceneLoader, SceneLoadError, parse_scene
from narrative.game_state import GameState
from narrative.session import NarrativeSession

__all__ = [
    "Choice",
    "DialogueEntry",
    "EffectKind",
    "ExportFormat",
    "HistoryRecord",
    "HistoryStats",
    "PlaybackPhase",
    "PlaybackState",
    "Scene",
    "SoundChannel",
    "SoundCue",
    "SpeakerArt",
    "EffectRunner",
    "TextDisplay",
    "HistoryLedger",
    "DialoguePresenter",
    "PlaybackSequencer",
    "SceneLoader",
    "SceneLoadError",
    "parse_scene",
    "GameState",
    "NarrativeSession",
]
