"""
Narrative data model - scenes, entries, choices and history records.

Scene content is immutable once loaded: every model here is frozen and
uses tuples for sequences. JSON field names are camelCase; Python code
may use either the snake_case attribute or the alias.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class NarrativeModel(BaseModel):
    """
    Base class for narrative content.

    Pydantic gives validation, JSON serialization and defaults; freezing
    keeps entries safe to share between the sequencer, the presenter and
    history snapshots.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys and JSON-safe values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class EffectKind(str, Enum):
    """Text reveal strategies."""
    TYPEWRITER = "typewriter"
    FADE = "fade"
    SLIDE = "slide"
    BOUNCE = "bounce"
    INSTANT = "instant"

    @classmethod
    def parse(cls, value: Any) -> EffectKind:
        """Parse a kind name; anything unrecognized displays instantly."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.TYPEWRITER
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown text effect {value!r}, displaying instantly")
            return cls.INSTANT


class SoundChannel(str, Enum):
    """Channels a dialogue sound cue can play on."""
    VOICE = "voice"
    SFX = "sfx"


class ExportFormat(str, Enum):
    """History export formats."""
    JSON = "json"
    TEXT = "txt"

    @classmethod
    def parse(cls, value: Any) -> ExportFormat:
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower()
        if name in ("text", "plaintext", "plain"):
            return cls.TEXT
        return cls(name)


class SoundCue(NarrativeModel):
    """A voice line or sound effect triggered when an entry finishes revealing."""
    channel: SoundChannel = SoundChannel.SFX
    asset_ref: str
    gain: float = 1.0

    @field_validator("gain", mode="before")
    @classmethod
    def _clamp_gain(cls, value: Any) -> float:
        if value is None:
            return 1.0
        gain = float(value)
        if not 0.0 <= gain <= 1.0:
            logger.warning(f"Sound cue gain {gain} outside [0, 1], clamping")
        return max(0.0, min(1.0, gain))


class SpeakerArt(NarrativeModel):
    """Character sprite shown while an entry is on screen."""
    asset: str
    position: str = "center"


class Choice(NarrativeModel):
    """
    One option offered at a branching entry.

    next_index is the entry index to jump to; None means "continue with
    the next entry".
    """
    label: str = ""
    next_index: Optional[int] = None


class DialogueEntry(NarrativeModel):
    """One line of dialogue or narration."""
    speaker: Optional[str] = None
    text: str = ""
    effect: EffectKind = EffectKind.TYPEWRITER
    background: Optional[str] = None
    speaker_art: Optional[SpeakerArt] = None
    sound_cue: Optional[SoundCue] = None
    choices: tuple[Choice, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _substitute_missing_text(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("text") is None:
            logger.warning(
                f"Dialogue entry without text (speaker={data.get('speaker')!r}), "
                f"presenting it as empty"
            )
            data = {**data, "text": ""}
        return data

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return value if isinstance(value, str) else str(value)

    @field_validator("effect", mode="before")
    @classmethod
    def _parse_effect(cls, value: Any) -> EffectKind:
        return EffectKind.parse(value)

    @field_validator("choices", mode="before")
    @classmethod
    def _none_is_no_choices(cls, value: Any) -> Any:
        return () if value is None else value

    @property
    def has_choices(self) -> bool:
        return len(self.choices) > 0


class Scene(NarrativeModel):
    """An ordered script of dialogue entries."""
    id: str
    name: str = ""
    dialogues: tuple[DialogueEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.dialogues)

    def entry(self, index: int) -> Optional[DialogueEntry]:
        """Entry at index, or None when out of range."""
        if 0 <= index < len(self.dialogues):
            return self.dialogues[index]
        return None


class HistoryRecord(NarrativeModel):
    """An entry as it was presented, with its presentation time."""
    entry: DialogueEntry
    presented_at_epoch_millis: int

    @property
    def speaker(self) -> Optional[str]:
        return self.entry.speaker

    @property
    def text(self) -> str:
        return self.entry.text


class ChoiceRecord(NarrativeModel):
    """A choice the player made, attributed to the speaker who offered it."""
    scene_id: str
    entry_index: int
    choice_index: int
    label: str
    speaker: Optional[str] = None
    decided_at_epoch_millis: int


class HistoryStats(NarrativeModel):
    """Aggregate statistics over the history ledger."""
    total_entries: int = 0
    per_speaker_counts: dict[str, int] = Field(default_factory=dict)
    total_words: int = 0
    average_words_per_entry: int = 0


class PlaybackPhase(Enum):
    """Sequencer state machine phases."""
    IDLE = auto()
    PRESENTING = auto()
    AWAITING_ADVANCE = auto()
    AWAITING_CHOICE = auto()
    COMPLETE = auto()


@dataclass(frozen=True)
class PlaybackState:
    """Read-only snapshot of the sequencer's state."""
    scene: Optional[Scene]
    current_index: int
    phase: PlaybackPhase

    @property
    def current_entry(self) -> Optional[DialogueEntry]:
        if self.scene is None:
            return None
        return self.scene.entry(self.current_index)
