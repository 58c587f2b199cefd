"""
Scene loader - reads scene scripts from JSON.

Scene files look like:

    {
        "id": "intro",
        "name": "Opening",
        "dialogues": [
            {"speaker": "Narration", "text": "It was an ordinary morning.", "effect": "fade"},
            {
                "speaker": "Stranger",
                "text": "Hello!",
                "soundCue": {"channel": "sfx", "assetRef": "sfx/magic.ogg", "gain": 0.8},
                "choices": [
                    {"label": "Who are you?", "nextIndex": 5},
                    {"label": "..."}
                ]
            }
        ]
    }

Older scripts that use characterName / textEffect / character /
characterPosition / sound / nextDialogue keys are upgraded on load.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import jsonschema
from pydantic import ValidationError

from narrative.errors import ContentError
from narrative.models import Scene

logger = logging.getLogger(__name__)


class SceneLoadError(ContentError):
    """A scene file could not be read or failed validation."""


SCENE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "dialogues"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string"},
        "dialogues": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "speaker": {"type": ["string", "null"]},
                    "text": {"type": ["string", "null"]},
                    "effect": {"type": ["string", "null"]},
                    "background": {"type": ["string", "null"]},
                    "speakerArt": {
                        "type": ["object", "null"],
                        "required": ["asset"],
                        "properties": {
                            "asset": {"type": "string"},
                            "position": {"type": "string"},
                        },
                    },
                    "soundCue": {
                        "type": ["object", "null"],
                        "required": ["assetRef"],
                        "properties": {
                            "channel": {"enum": ["voice", "sfx"]},
                            "assetRef": {"type": "string"},
                            "gain": {"type": "number"},
                        },
                    },
                    "choices": {
                        "type": ["array", "null"],
                        "items": {
                            "type": "object",
                            "properties": {
                                "label": {"type": "string"},
                                "nextIndex": {"type": ["integer", "null"]},
                            },
                        },
                    },
                },
            },
        },
    },
}


def upgrade_legacy_entry(data: dict[str, Any]) -> dict[str, Any]:
    """Rename old-style entry keys to the current ones."""
    entry = dict(data)

    if "characterName" in entry and "speaker" not in entry:
        entry["speaker"] = entry.pop("characterName")
    if "textEffect" in entry and "effect" not in entry:
        entry["effect"] = entry.pop("textEffect")

    if "character" in entry and "speakerArt" not in entry:
        asset = entry.pop("character")
        position = entry.pop("characterPosition", "center")
        if asset:
            entry["speakerArt"] = {"asset": asset, "position": position}

    if "sound" in entry and "soundCue" not in entry:
        sound = entry.pop("sound")
        if isinstance(sound, dict):
            entry["soundCue"] = {
                "channel": sound.get("type", "sfx"),
                "assetRef": sound.get("file", ""),
                "gain": sound.get("volume", 1.0),
            }

    if isinstance(entry.get("choices"), list):
        entry["choices"] = [
            {
                "label": choice.get("label", choice.get("text", "")),
                "nextIndex": choice.get("nextIndex", choice.get("nextDialogue")),
            }
            if isinstance(choice, dict) else choice
            for choice in entry["choices"]
        ]

    return entry


def parse_scene(data: dict[str, Any]) -> Scene:
    """
    Build a Scene from parsed JSON.

    Raises:
        SceneLoadError: if the document does not describe a scene
    """
    if not isinstance(data, dict):
        raise SceneLoadError(f"Scene document must be an object, got {type(data).__name__}")

    upgraded = dict(data)
    dialogues = data.get("dialogues")
    if isinstance(dialogues, list):
        upgraded["dialogues"] = [
            upgrade_legacy_entry(d) if isinstance(d, dict) else d
            for d in dialogues
        ]

    try:
        jsonschema.validate(instance=upgraded, schema=SCENE_SCHEMA)
    except jsonschema.ValidationError as e:
        raise SceneLoadError(f"Invalid scene '{data.get('id', '?')}': {e.message}") from e

    try:
        return Scene.model_validate(upgraded)
    except ValidationError as e:
        raise SceneLoadError(f"Invalid scene '{data.get('id', '?')}': {e}") from e


def load_scene_file(path: str | Path) -> Scene:
    """Read and parse one scene file."""
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SceneLoadError(f"Failed to read scene {path}: {e}") from e

    return parse_scene(data)


class SceneLoader:
    """
    Loads and caches scenes from a directory of <scene_id>.json files.

    Usage:
        loader = SceneLoader("game/data/scenes")
        scene = loader.load("intro")
    """

    def __init__(self, scenes_path: str | Path = "data/scenes"):
        self.scenes_path = Path(scenes_path)
        self._scenes: dict[str, Scene] = {}

    def load(self, scene_id: str) -> Scene:
        """
        Load a scene by id.

        Raises:
            SceneLoadError: if the file is missing or invalid
        """
        if scene_id in self._scenes:
            return self._scenes[scene_id]

        path = self.scenes_path / f"{scene_id}.json"
        if not path.exists():
            raise SceneLoadError(f"Scene not found: {path}")

        scene = load_scene_file(path)
        self._scenes[scene_id] = scene
        return scene

    def get(self, scene_id: str) -> Optional[Scene]:
        """Cached scene, or None if it has not been loaded."""
        return self._scenes.get(scene_id)

    def load_all(self) -> int:
        """
        Load every scene file in the directory.

        Invalid files are logged and skipped.

        Returns:
            Number of scenes loaded
        """
        if not self.scenes_path.exists():
            logger.warning(f"Scene directory not found: {self.scenes_path}")
            return 0

        count = 0
        for file_path in sorted(self.scenes_path.glob("*.json")):
            try:
                scene = load_scene_file(file_path)
            except SceneLoadError as e:
                logger.error(str(e))
                continue
            self._scenes[scene.id] = scene
            count += 1

        logger.info(f"Loaded {count} scenes from {self.scenes_path}")
        return count
