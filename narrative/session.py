"""
Narrative session - a fully wired playback engine for a host application.

Owns one instance of each component (scheduler, effect runner, presenter,
history ledger, sequencer) and plays the host's part of the contract:
- updates GameState flags and counters from engine events
- records choices into GameState
- applies the auto-advance policy
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from vnengine.audio.manager import AudioManager
from vnengine.core.config import PlaybackConfig
from vnengine.core.events import Event, EventBus, NarrativeEvent
from vnengine.core.scheduler import Scheduler, Timer
from narrative.effects import EffectRunner, TextDisplay
from narrative.game_state import GameState
from narrative.history import HistoryLedger
from narrative.loader import SceneLoader
from narrative.models import ExportFormat, HistoryRecord, HistoryStats, PlaybackPhase, Scene
from narrative.presenter import DialoguePresenter
from narrative.sequencer import PlaybackSequencer

logger = logging.getLogger(__name__)


class NarrativeSession:
    """
    Host-side facade over the playback engine.

    Usage:
        session = NarrativeSession(config, audio=audio_manager)
        session.start_scene(scene)

        while running:
            session.update(dt)
            if confirm_pressed:
                session.advance()
    """

    def __init__(
        self,
        config: Optional[PlaybackConfig] = None,
        event_bus: Optional[EventBus] = None,
        audio: Optional[AudioManager] = None,
        game_state: Optional[GameState] = None,
        scheduler: Optional[Scheduler] = None,
        scene_loader: Optional[SceneLoader] = None,
    ):
        self.config = config or PlaybackConfig()
        self.event_bus = event_bus or EventBus()
        self.scheduler = scheduler or Scheduler()
        self.audio = audio
        self.game_state = game_state or GameState()
        self.scene_loader = scene_loader

        self.display = TextDisplay()
        self.runner = EffectRunner(self.scheduler, self.display, self.config)
        self.ledger = HistoryLedger(narration_label=self.config.narration_label)
        self.presenter = DialoguePresenter(self.runner, self.ledger, audio)
        self.sequencer = PlaybackSequencer(self.presenter, self.event_bus)

        self._auto_timer: Optional[Timer] = None

        if audio is not None:
            audio.apply_settings(self.config.volume_settings())

        self._subscribe_events()

    def _subscribe_events(self) -> None:
        bus = self.event_bus
        bus.subscribe(NarrativeEvent.ENTRY_PRESENTED, self._on_entry_presented, weak=False)
        bus.subscribe(NarrativeEvent.CHOICE_RESOLVED, self._on_choice_resolved, weak=False)
        bus.subscribe(NarrativeEvent.SCENE_COMPLETED, self._on_scene_completed, weak=False)

    # Properties

    @property
    def phase(self) -> PlaybackPhase:
        return self.sequencer.phase

    @property
    def auto_advance(self) -> bool:
        return self.config.auto_advance

    def set_auto_advance(self, enabled: bool, delay: Optional[float] = None) -> None:
        """Turn auto-advance on or off; delay is in seconds."""
        self.config.auto_advance = enabled
        if delay is not None:
            self.config.auto_delay = max(0.0, delay)

        if not enabled:
            self._cancel_auto_advance()
        elif self.phase == PlaybackPhase.AWAITING_ADVANCE:
            self._schedule_auto_advance()

    # Host operations

    def start_scene(self, scene: Scene | str) -> None:
        """Start a scene, or load it by id through the scene loader."""
        if isinstance(scene, str):
            if self.scene_loader is None:
                raise ValueError(f"No scene loader configured to load '{scene}'")
            scene = self.scene_loader.load(scene)

        self._cancel_auto_advance()
        self.game_state.set_scene(scene.id)
        self.sequencer.start_scene(scene)

    def stop(self) -> None:
        self._cancel_auto_advance()
        self.sequencer.stop()

    def advance(self) -> bool:
        self._cancel_auto_advance()
        return self.sequencer.advance()

    def select_choice(self, index: int) -> bool:
        return self.sequencer.select_choice(index)

    def skip(self) -> bool:
        return self.sequencer.skip()

    def confirm(self) -> bool:
        """
        Single "next" button: skip a running reveal, otherwise advance.
        """
        if self.phase == PlaybackPhase.PRESENTING:
            return self.skip()
        return self.advance()

    def update(self, dt: float) -> None:
        """Advance timers by dt seconds. Call once per frame."""
        self.game_state.add_play_time(dt)
        self.scheduler.update(dt)

    def get_history(self) -> list[HistoryRecord]:
        return self.sequencer.get_history()

    def get_stats(self) -> HistoryStats:
        return self.sequencer.get_stats()

    def export_history(self, format: ExportFormat | str = ExportFormat.JSON) -> str:
        return self.sequencer.export_history(format)

    def clear_history(self) -> None:
        self.sequencer.clear_history()

    def get_game_stats(self) -> dict[str, Any]:
        return {
            "playTime": self.game_state.get_formatted_play_time(),
            "dialogueCount": self.game_state.get_variable("dialogue_count"),
            "visitedScenes": len(self.game_state.visited_scenes),
            "achievements": len(self.game_state.get_achievements()),
            "dialogueStats": self.get_stats().to_json_dict(),
        }

    def end(self) -> None:
        """Shut playback down at game exit."""
        self.stop()
        if self.audio is not None:
            self.audio.stop_all()
        self.game_state.set_flag("game_ended", True)

    # Event handlers

    def _on_entry_presented(self, event: Event) -> None:
        self.game_state.set_flag("last_dialogue_completed", True)
        self.game_state.increment_variable("dialogue_count")

        if self.config.auto_advance and not event.get("choices"):
            self._schedule_auto_advance()

    def _on_choice_resolved(self, event: Event) -> None:
        self.game_state.record_choice(
            event["scene_id"],
            event["choice_index"],
            event["choice_label"],
        )

    def _on_scene_completed(self, event: Event) -> None:
        self._cancel_auto_advance()
        self.game_state.set_flag(f"scene_completed:{event['scene_id']}", True)

    # Auto-advance

    def _schedule_auto_advance(self) -> None:
        self._cancel_auto_advance()
        self._auto_timer = self.scheduler.call_later(self.config.auto_delay, self._auto_advance)

    def _cancel_auto_advance(self) -> None:
        if self._auto_timer is not None:
            self._auto_timer.cancel()
            self._auto_timer = None

    def _auto_advance(self) -> None:
        self._auto_timer = None
        self.sequencer.advance()
