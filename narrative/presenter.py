"""
Dialogue presenter - shows one entry at a time.

present() sets the speaker label and starts the entry's reveal. When the
reveal completes, in this order:
1. the entry is appended to the history ledger
2. the entry's sound cue is triggered (failures are logged, never raised)
3. the ready callback receives the entry and its choices
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional, Protocol

from narrative.effects import EffectRunner
from narrative.history import HistoryLedger
from narrative.models import Choice, DialogueEntry, SoundChannel

if TYPE_CHECKING:
    from narrative.effects import PendingReveal

logger = logging.getLogger(__name__)

ReadyCallback = Callable[[DialogueEntry, tuple[Choice, ...]], None]


class CueTrigger(Protocol):
    """Audio capability the presenter consumes."""

    def play_cue(self, channel: SoundChannel, asset_ref: str, gain: float) -> bool:
        ...


class DialoguePresenter:
    """
    Presents dialogue entries through an EffectRunner.

    Only one entry can be in flight: present() is rejected until the
    current entry's reveal has completed or been cancelled.
    """

    def __init__(
        self,
        runner: EffectRunner,
        ledger: HistoryLedger,
        audio: Optional[CueTrigger] = None,
    ):
        self.runner = runner
        self.ledger = ledger
        self.audio = audio

        self._current: Optional[DialogueEntry] = None
        self._busy = False
        self._on_ready: Optional[ReadyCallback] = None

    @property
    def busy(self) -> bool:
        """True while an entry's reveal is in flight."""
        return self._busy

    @property
    def current_entry(self) -> Optional[DialogueEntry]:
        return self._current

    @property
    def pending_reveal(self) -> Optional[PendingReveal]:
        return self.runner.pending

    def on_ready(self, callback: Optional[ReadyCallback]) -> None:
        """Set the callback for when an entry has finished presenting."""
        self._on_ready = callback

    def present(self, entry: DialogueEntry) -> bool:
        """
        Start presenting an entry.

        Returns:
            False if another entry is still being revealed
        """
        if self._busy:
            logger.debug("Presenter busy, rejecting present()")
            return False

        self._busy = True
        self._current = entry
        self.runner.display.speaker = entry.speaker or ""
        self.runner.reveal(entry.text or "", entry.effect, self._on_reveal_complete)
        return True

    def skip(self) -> None:
        """Complete the current reveal now."""
        self.runner.skip()

    def cancel(self) -> None:
        """Abandon the entry in flight without recording it."""
        self.runner.cancel()
        self._busy = False
        self._current = None

    def _on_reveal_complete(self) -> None:
        entry = self._current
        if entry is None:
            return

        self.ledger.record(entry)
        self._play_cue(entry)

        self._busy = False
        if self._on_ready is not None:
            self._on_ready(entry, entry.choices)

    def _play_cue(self, entry: DialogueEntry) -> None:
        cue = entry.sound_cue
        if cue is None or self.audio is None:
            return

        try:
            played = self.audio.play_cue(cue.channel, cue.asset_ref, cue.gain)
        except Exception as e:
            logger.error(f"Sound cue {cue.asset_ref!r} failed: {e}")
            return

        if played is False:
            logger.warning(f"Sound cue {cue.asset_ref!r} did not play on {cue.channel.value}")
