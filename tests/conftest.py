import itertools

import pytest
from unittest.mock import MagicMock, patch


@pytest.fixture(autouse=True)
def mock_pygame():
    """
    Global mock for pygame audio to allow headless testing.
    Autoused for all tests so no test ever opens a real mixer.
    """
    with patch('pygame.init'), \
         patch('pygame.mixer'), \
         patch('pygame.time'):
        yield


@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    from vnengine.core.events import EventBus
    return EventBus()


@pytest.fixture
def scheduler():
    """Fresh Scheduler starting at t=0."""
    from vnengine.core.scheduler import Scheduler
    return Scheduler()


@pytest.fixture
def config():
    """Default playback config without the pre-transition settle delay."""
    from vnengine.core.config import PlaybackConfig
    return PlaybackConfig(transition_delay=0.0)


@pytest.fixture
def ledger():
    """History ledger with a deterministic millisecond clock."""
    from narrative.history import HistoryLedger
    ticks = itertools.count(1000, 10)
    return HistoryLedger(clock=lambda: next(ticks))


@pytest.fixture
def runner(scheduler, config):
    from narrative.effects import EffectRunner
    return EffectRunner(scheduler, config=config)


@pytest.fixture
def audio():
    """Cue trigger collaborator that records calls."""
    cue = MagicMock()
    cue.play_cue.return_value = True
    return cue


@pytest.fixture
def presenter(runner, ledger, audio):
    from narrative.presenter import DialoguePresenter
    return DialoguePresenter(runner, ledger, audio)


@pytest.fixture
def sequencer(presenter, event_bus):
    from narrative.sequencer import PlaybackSequencer
    return PlaybackSequencer(presenter, event_bus)


@pytest.fixture
def make_scene():
    """Factory: make_scene("a", entry, ...) -> Scene; strings become instant entries."""
    from narrative.models import DialogueEntry, Scene

    def factory(*texts, scene_id="test", effect="instant"):
        entries = []
        for i, text in enumerate(texts):
            if isinstance(text, DialogueEntry):
                entries.append(text)
            else:
                entries.append(DialogueEntry(speaker=f"S{i}", text=text, effect=effect))
        return Scene(id=scene_id, name=scene_id, dialogues=tuple(entries))

    return factory
