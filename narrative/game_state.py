"""
Game state - flags, counters and progress driven by narrative events.

The playback engine never writes here itself; the host updates it in
response to entry-presented and choice-resolved events.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class Achievement:
    """An unlocked achievement."""
    id: str
    name: str = ""
    description: str = ""


@dataclass
class ChoiceLogEntry:
    """A choice as the game state remembers it."""
    scene_id: str
    choice_index: int
    label: str


class GameState:
    """
    Story progression store.

    Features:
    - Boolean flags and integer variables
    - Choice log and visited scenes
    - Achievements (each unlocked once)
    - Play time
    - Dict snapshot for save files
    """

    def __init__(self):
        self._flags: dict[str, bool] = {}
        self._variables: dict[str, Any] = {}
        self._choices: list[ChoiceLogEntry] = []
        self._achievements: dict[str, Achievement] = {}
        self.visited_scenes: set[str] = set()
        self.current_scene: Optional[str] = None
        self.play_time: float = 0.0

    # Flags and variables

    def set_flag(self, name: str, value: bool = True) -> None:
        self._flags[name] = bool(value)

    def get_flag(self, name: str, default: bool = False) -> bool:
        return self._flags.get(name, default)

    def set_variable(self, name: str, value: Any) -> None:
        self._variables[name] = value

    def get_variable(self, name: str, default: Any = 0) -> Any:
        return self._variables.get(name, default)

    def increment_variable(self, name: str, amount: int = 1) -> int:
        """Add amount to a numeric variable (missing counts as 0)."""
        value = self._variables.get(name, 0) + amount
        self._variables[name] = value
        return value

    # Progress

    def set_scene(self, scene_id: str) -> None:
        self.current_scene = scene_id
        self.visited_scenes.add(scene_id)

    def record_choice(self, scene_id: str, choice_index: int, label: str) -> None:
        self._choices.append(ChoiceLogEntry(scene_id, choice_index, label))

    def get_choices(self, scene_id: Optional[str] = None) -> list[ChoiceLogEntry]:
        if scene_id is None:
            return list(self._choices)
        return [c for c in self._choices if c.scene_id == scene_id]

    def add_achievement(self, achievement: Achievement) -> bool:
        """Unlock an achievement. Returns False if it was already unlocked."""
        if achievement.id in self._achievements:
            return False
        self._achievements[achievement.id] = achievement
        logger.info(f"Achievement unlocked: {achievement.name or achievement.id}")
        return True

    def has_achievement(self, achievement_id: str) -> bool:
        return achievement_id in self._achievements

    def get_achievements(self) -> list[Achievement]:
        return list(self._achievements.values())

    def add_play_time(self, dt: float) -> None:
        self.play_time += max(0.0, dt)

    def get_formatted_play_time(self) -> str:
        """Play time as HH:MM:SS."""
        total = int(self.play_time)
        hours, rest = divmod(total, 3600)
        minutes, seconds = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    # Persistence

    def to_dict(self) -> dict[str, Any]:
        return {
            "flags": dict(self._flags),
            "variables": dict(self._variables),
            "choices": [asdict(c) for c in self._choices],
            "achievements": [asdict(a) for a in self._achievements.values()],
            "visitedScenes": sorted(self.visited_scenes),
            "currentScene": self.current_scene,
            "playTime": self.play_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameState:
        state = cls()
        state._flags = {k: bool(v) for k, v in data.get("flags", {}).items()}
        state._variables = dict(data.get("variables", {}))
        state._choices = [ChoiceLogEntry(**c) for c in data.get("choices", [])]
        for a in data.get("achievements", []):
            state._achievements[a["id"]] = Achievement(**a)
        state.visited_scenes = set(data.get("visitedScenes", []))
        state.current_scene = data.get("currentScene")
        state.play_time = float(data.get("playTime", 0.0))
        return state
