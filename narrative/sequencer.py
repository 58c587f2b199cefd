"""
Playback sequencer - the scene state machine.

Phases:
    IDLE --start_scene--> PRESENTING
    PRESENTING --entry ready, no choices--> AWAITING_ADVANCE
    PRESENTING --entry ready, choices--> AWAITING_CHOICE
    AWAITING_ADVANCE --advance--> PRESENTING (next entry) | COMPLETE
    AWAITING_CHOICE --select_choice--> PRESENTING (target entry) | COMPLETE
    any --start_scene--> PRESENTING (new scene)
    any --stop--> IDLE

Input that arrives in a phase which does not accept it is dropped, so a
double click can never produce two transitions.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from vnengine.core.events import Event, EventBus, EventHandler, NarrativeEvent
from narrative.history import HistoryLedger
from narrative.models import (
    Choice,
    DialogueEntry,
    ExportFormat,
    HistoryRecord,
    HistoryStats,
    PlaybackPhase,
    PlaybackState,
    Scene,
)
from narrative.presenter import DialoguePresenter

logger = logging.getLogger(__name__)


class PlaybackSequencer:
    """
    Drives a scene through the presenter, one entry at a time.

    This is the host-facing entry point of the narrative engine.

    Usage:
        sequencer = PlaybackSequencer(presenter, event_bus)
        sequencer.on_entry_presented(lambda e: print(e["entry"].text))
        sequencer.start_scene(scene)
        ...
        sequencer.advance()          # when waiting for the player
        sequencer.select_choice(1)   # when a choice is open
    """

    def __init__(
        self,
        presenter: DialoguePresenter,
        event_bus: Optional[EventBus] = None,
    ):
        self.presenter = presenter
        self.ledger: HistoryLedger = presenter.ledger
        self.event_bus = event_bus or EventBus()

        self._scene: Optional[Scene] = None
        self._index = 0
        self._phase = PlaybackPhase.IDLE

        # Bumped on every teardown; work scheduled against an older epoch
        # must not touch the new scene
        self._epoch = 0

        presenter.on_ready(self._on_entry_ready)

    # State

    @property
    def phase(self) -> PlaybackPhase:
        return self._phase

    @property
    def scene(self) -> Optional[Scene]:
        return self._scene

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def state(self) -> PlaybackState:
        return PlaybackState(scene=self._scene, current_index=self._index, phase=self._phase)

    @property
    def current_entry(self) -> Optional[DialogueEntry]:
        if self._scene is None:
            return None
        return self._scene.entry(self._index)

    @property
    def pending_choices(self) -> tuple[Choice, ...]:
        """Choices open for selection, empty unless AWAITING_CHOICE."""
        if self._phase != PlaybackPhase.AWAITING_CHOICE:
            return ()
        return self.current_entry.choices

    @property
    def is_playing(self) -> bool:
        return self._phase not in (PlaybackPhase.IDLE, PlaybackPhase.COMPLETE)

    # Observers

    def on_entry_presented(self, handler: EventHandler) -> None:
        self.event_bus.subscribe(NarrativeEvent.ENTRY_PRESENTED, handler, weak=False)

    def on_choice_resolved(self, handler: EventHandler) -> None:
        self.event_bus.subscribe(NarrativeEvent.CHOICE_RESOLVED, handler, weak=False)

    def on_scene_completed(self, handler: EventHandler) -> None:
        self.event_bus.subscribe(NarrativeEvent.SCENE_COMPLETED, handler, weak=False)

    # Host operations

    def start_scene(self, scene: Scene) -> None:
        """Replace whatever is playing with scene, starting at its first entry."""
        if self._scene is not None:
            self._teardown()

        self._scene = scene
        self._index = 0
        self._phase = PlaybackPhase.PRESENTING
        epoch = self._epoch

        logger.info(f"Starting scene '{scene.id}' ({len(scene.dialogues)} entries)")
        self._publish(NarrativeEvent.SCENE_STARTED, scene_id=scene.id, scene=scene)
        if epoch != self._epoch:
            return

        if not scene.dialogues:
            self._complete()
            return

        self._present(0)

    def stop(self) -> None:
        """Tear down the current scene and return to IDLE."""
        if self._scene is None:
            return

        scene_id = self._scene.id
        self._teardown()
        self._scene = None
        self._index = 0
        self._phase = PlaybackPhase.IDLE
        logger.info(f"Stopped scene '{scene_id}'")
        self._publish(NarrativeEvent.SCENE_STOPPED, scene_id=scene_id)

    def advance(self) -> bool:
        """
        Move past an entry without choices.

        Returns:
            False if the sequencer was not waiting for advance input
        """
        if self._phase != PlaybackPhase.AWAITING_ADVANCE:
            self._reject("advance")
            return False

        self._go_to(self._index + 1)
        return True

    def select_choice(self, choice_index: int) -> bool:
        """
        Pick one of the current entry's choices.

        Returns:
            False if no choice was open or choice_index is not one of them
        """
        if self._phase != PlaybackPhase.AWAITING_CHOICE:
            self._reject("select_choice")
            return False

        entry = self.current_entry
        if not 0 <= choice_index < len(entry.choices):
            logger.debug(
                f"Ignoring select_choice({choice_index}): entry {self._index} "
                f"has {len(entry.choices)} choices"
            )
            return False

        choice = entry.choices[choice_index]
        entry_index = self._index
        epoch = self._epoch

        self.ledger.record_choice(
            scene_id=self._scene.id,
            entry_index=entry_index,
            choice_index=choice_index,
            label=choice.label,
            speaker=entry.speaker,
        )
        self._publish(
            NarrativeEvent.CHOICE_RESOLVED,
            scene_id=self._scene.id,
            entry_index=entry_index,
            choice_index=choice_index,
            choice_label=choice.label,
            speaker=entry.speaker,
        )
        if epoch != self._epoch:
            # A handler switched scenes in response to the choice
            return True

        target = choice.next_index if choice.next_index is not None else entry_index + 1
        self._go_to(target)
        return True

    def skip(self) -> bool:
        """Finish the running reveal immediately."""
        if self._phase != PlaybackPhase.PRESENTING:
            self._reject("skip")
            return False
        self.presenter.skip()
        return True

    def get_history(self) -> list[HistoryRecord]:
        return self.ledger.all()

    def get_stats(self) -> HistoryStats:
        return self.ledger.stats()

    def export_history(self, format: ExportFormat | str = ExportFormat.JSON) -> str:
        return self.ledger.export(format)

    def clear_history(self) -> None:
        self.ledger.clear()

    # Transitions

    def _present(self, index: int) -> None:
        self._index = index
        self._phase = PlaybackPhase.PRESENTING
        entry = self._scene.dialogues[index]

        if not self.presenter.present(entry):
            logger.error(f"Presenter refused entry {index} of '{self._scene.id}'")

    def _go_to(self, index: int) -> None:
        if 0 <= index < len(self._scene.dialogues):
            self._present(index)
            return

        if index != len(self._scene.dialogues):
            logger.warning(
                f"Entry index {index} out of range for scene '{self._scene.id}', "
                f"completing scene"
            )
        self._complete()

    def _complete(self) -> None:
        self._index = len(self._scene.dialogues)
        self._phase = PlaybackPhase.COMPLETE
        logger.info(f"Scene '{self._scene.id}' complete")
        self._publish(NarrativeEvent.SCENE_COMPLETED, scene_id=self._scene.id)

    def _teardown(self) -> None:
        self.presenter.cancel()
        self._epoch += 1

    def _on_entry_ready(self, entry: DialogueEntry, choices: tuple[Choice, ...]) -> None:
        if self._phase != PlaybackPhase.PRESENTING or entry is not self.current_entry:
            logger.debug("Ignoring ready signal for an entry that is no longer current")
            return

        self._phase = (
            PlaybackPhase.AWAITING_CHOICE if choices else PlaybackPhase.AWAITING_ADVANCE
        )
        self._publish(
            NarrativeEvent.ENTRY_PRESENTED,
            scene_id=self._scene.id,
            index=self._index,
            entry=entry,
            choices=choices,
        )

    def _reject(self, action: str) -> None:
        logger.debug(f"Ignoring {action}() in phase {self._phase.name}")

    def _publish(self, event_type: Enum, **data) -> Event:
        return self.event_bus.publish(event_type, **data)
