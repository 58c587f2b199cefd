import json

import pytest
from vnengine.core.events import NarrativeEvent
from narrative.models import Choice, DialogueEntry, EffectKind, PlaybackPhase, Scene


def branching_scene():
    """Ten entries; entry 5 branches with a default, a jump to 6 and a jump to 9."""
    entries = [DialogueEntry(speaker="N", text=f"line {i}", effect=EffectKind.INSTANT) for i in range(10)]
    entries[5] = DialogueEntry(
        speaker="Stranger",
        text="Who do you think I am?",
        effect=EffectKind.INSTANT,
        choices=(
            Choice(label="No idea"),
            Choice(label="A friend", next_index=6),
            Choice(label="...", next_index=9),
        ),
    )
    return Scene(id="branch", name="Branch", dialogues=tuple(entries))


def collect(event_bus, event_type):
    events = []
    event_bus.subscribe(event_type, events.append, weak=False)
    return events


def advance_to(sequencer, index):
    while sequencer.current_index < index:
        assert sequencer.advance()


def test_starts_idle(sequencer):
    assert sequencer.phase is PlaybackPhase.IDLE
    assert sequencer.state.scene is None


def test_linear_scene_completes_after_every_entry(sequencer, make_scene):
    scene = make_scene("a", "b", "c")
    sequencer.start_scene(scene)

    for _ in range(3):
        assert sequencer.phase is PlaybackPhase.AWAITING_ADVANCE
        sequencer.advance()

    assert sequencer.phase is PlaybackPhase.COMPLETE
    assert sequencer.current_index == len(scene.dialogues)
    assert [r.text for r in sequencer.get_history()] == ["a", "b", "c"]


def test_timed_scene_waits_for_reveal(sequencer, scheduler):
    scene = Scene(id="t", dialogues=[
        DialogueEntry(text="fade in", effect=EffectKind.FADE),
        DialogueEntry(text="typed", effect=EffectKind.TYPEWRITER),
    ])
    sequencer.start_scene(scene)

    assert sequencer.phase is PlaybackPhase.PRESENTING
    assert sequencer.get_history() == []

    scheduler.update(0.6)
    assert sequencer.phase is PlaybackPhase.AWAITING_ADVANCE
    assert len(sequencer.get_history()) == 1

    sequencer.advance()
    assert sequencer.phase is PlaybackPhase.PRESENTING
    scheduler.update(len("typed") * 0.05 + 0.01)
    sequencer.advance()

    assert sequencer.phase is PlaybackPhase.COMPLETE
    assert [r.text for r in sequencer.get_history()] == ["fade in", "typed"]


def test_advance_ignored_while_presenting(sequencer, scheduler):
    scene = Scene(id="t", dialogues=[DialogueEntry(text="slow", effect=EffectKind.FADE)] * 2)
    sequencer.start_scene(scene)

    assert sequencer.advance() is False
    assert sequencer.phase is PlaybackPhase.PRESENTING
    assert sequencer.current_index == 0
    assert sequencer.get_history() == []


def test_advance_ignored_while_awaiting_choice(sequencer):
    scene = branching_scene()
    sequencer.start_scene(scene)
    advance_to(sequencer, 5)
    history_len = len(sequencer.get_history())

    assert sequencer.phase is PlaybackPhase.AWAITING_CHOICE
    assert sequencer.advance() is False
    assert sequencer.phase is PlaybackPhase.AWAITING_CHOICE
    assert sequencer.current_index == 5
    assert len(sequencer.get_history()) == history_len


def test_double_advance_is_a_single_transition(sequencer, scheduler):
    scene = Scene(id="t", dialogues=[DialogueEntry(text=str(i), effect=EffectKind.FADE) for i in range(3)])
    sequencer.start_scene(scene)
    scheduler.update(1.0)

    assert sequencer.advance() is True
    assert sequencer.advance() is False
    assert sequencer.current_index == 1


def test_choice_jumps_past_intermediate_entries(sequencer):
    sequencer.start_scene(branching_scene())
    advance_to(sequencer, 5)

    assert sequencer.select_choice(2) is True

    assert sequencer.current_index == 9
    texts = [r.text for r in sequencer.get_history()]
    assert texts[-1] == "line 9"
    assert not {"line 6", "line 7", "line 8"} & set(texts)


def test_choice_with_explicit_next_index(sequencer):
    sequencer.start_scene(branching_scene())
    advance_to(sequencer, 5)

    sequencer.select_choice(1)

    assert sequencer.current_index == 6


def test_choice_without_next_index_behaves_like_advance(sequencer):
    scene = Scene(id="c", dialogues=[
        DialogueEntry(text="pick", effect=EffectKind.INSTANT, choices=[Choice(label="ok")]),
        DialogueEntry(text="after", effect=EffectKind.INSTANT),
    ])
    sequencer.start_scene(scene)
    sequencer.select_choice(0)

    assert sequencer.current_index == 1
    assert sequencer.phase is PlaybackPhase.AWAITING_ADVANCE


def test_out_of_range_next_index_completes_scene(sequencer):
    scene = Scene(id="c", dialogues=[
        DialogueEntry(text="pick", effect=EffectKind.INSTANT, choices=[
            Choice(label="far", next_index=42),
            Choice(label="back", next_index=-1),
        ]),
    ])
    sequencer.start_scene(scene)
    sequencer.select_choice(0)

    assert sequencer.phase is PlaybackPhase.COMPLETE
    assert sequencer.current_index == 1

    sequencer.start_scene(scene)
    sequencer.select_choice(1)
    assert sequencer.phase is PlaybackPhase.COMPLETE


def test_select_choice_guards(sequencer, make_scene):
    sequencer.start_scene(make_scene("no choices here"))
    assert sequencer.select_choice(0) is False
    assert sequencer.phase is PlaybackPhase.AWAITING_ADVANCE

    sequencer.start_scene(branching_scene())
    advance_to(sequencer, 5)
    assert sequencer.select_choice(3) is False
    assert sequencer.select_choice(-1) is False
    assert sequencer.phase is PlaybackPhase.AWAITING_CHOICE


def test_choice_resolved_event_and_decision_log(sequencer, event_bus, ledger):
    resolved = collect(event_bus, NarrativeEvent.CHOICE_RESOLVED)
    sequencer.start_scene(branching_scene())
    advance_to(sequencer, 5)

    sequencer.select_choice(1)

    assert len(resolved) == 1
    event = resolved[0]
    assert (event["entry_index"], event["choice_index"], event["choice_label"]) == (5, 1, "A friend")
    assert event["speaker"] == "Stranger"

    decision = ledger.decisions()[0]
    assert (decision.scene_id, decision.entry_index, decision.label) == ("branch", 5, "A friend")


def test_entry_presented_once_per_entry(sequencer, event_bus, make_scene):
    presented = collect(event_bus, NarrativeEvent.ENTRY_PRESENTED)
    sequencer.start_scene(make_scene("a", "b"))
    sequencer.advance()
    sequencer.advance()

    assert [e["index"] for e in presented] == [0, 1]
    assert [e["entry"].text for e in presented] == ["a", "b"]


def test_pending_choices(sequencer):
    sequencer.start_scene(branching_scene())
    assert sequencer.pending_choices == ()
    advance_to(sequencer, 5)
    assert [c.label for c in sequencer.pending_choices] == ["No idea", "A friend", "..."]


def test_start_scene_mid_reveal_cancels_pending_reveal(sequencer, scheduler, ledger):
    first = Scene(id="first", dialogues=[DialogueEntry(text="abandoned", effect=EffectKind.TYPEWRITER)])
    second = Scene(id="second", dialogues=[DialogueEntry(text="fresh", effect=EffectKind.FADE)])

    sequencer.start_scene(first)
    scheduler.update(0.1)
    stale = sequencer.presenter.pending_reveal
    assert stale is not None

    sequencer.start_scene(second)
    stale.finish()

    assert ledger.all() == []
    assert sequencer.phase is PlaybackPhase.PRESENTING
    assert sequencer.scene.id == "second"

    scheduler.update(5.0)
    assert [r.text for r in ledger.all()] == ["fresh"]


def test_stop_returns_to_idle(sequencer, scheduler, event_bus):
    stopped = collect(event_bus, NarrativeEvent.SCENE_STOPPED)
    sequencer.start_scene(Scene(id="s", dialogues=[DialogueEntry(text="x", effect=EffectKind.FADE)]))
    sequencer.stop()
    scheduler.update(5.0)

    assert sequencer.phase is PlaybackPhase.IDLE
    assert sequencer.get_history() == []
    assert [e["scene_id"] for e in stopped] == ["s"]


def test_empty_scene_completes_immediately(sequencer, event_bus):
    completed = collect(event_bus, NarrativeEvent.SCENE_COMPLETED)
    sequencer.start_scene(Scene(id="empty"))

    assert sequencer.phase is PlaybackPhase.COMPLETE
    assert sequencer.current_index == 0
    assert len(completed) == 1


def test_complete_is_terminal_until_new_scene(sequencer, make_scene):
    sequencer.start_scene(make_scene("only"))
    sequencer.advance()

    assert sequencer.advance() is False
    assert sequencer.select_choice(0) is False
    assert sequencer.phase is PlaybackPhase.COMPLETE

    sequencer.start_scene(make_scene("again"))
    assert sequencer.phase is PlaybackPhase.AWAITING_ADVANCE


def test_malformed_entry_presents_as_empty(sequencer):
    scene = Scene.model_validate({"id": "bad", "dialogues": [{"speaker": "Ghost", "effect": "instant"}]})
    sequencer.start_scene(scene)

    assert sequencer.phase is PlaybackPhase.AWAITING_ADVANCE
    assert sequencer.get_history()[0].text == ""


def test_handler_advancing_synchronously(sequencer, event_bus, make_scene):
    sequencer.on_entry_presented(lambda event: sequencer.advance())
    sequencer.start_scene(make_scene("a", "b", "c"))

    assert sequencer.phase is PlaybackPhase.COMPLETE
    assert len(sequencer.get_history()) == 3


def test_choice_handler_switching_scene_wins(sequencer, make_scene):
    other = make_scene("elsewhere", scene_id="other")
    sequencer.on_choice_resolved(lambda event: sequencer.start_scene(other))
    sequencer.start_scene(branching_scene())
    advance_to(sequencer, 5)

    sequencer.select_choice(2)

    assert sequencer.scene.id == "other"
    assert sequencer.current_index == 0


def test_host_history_operations(sequencer, make_scene):
    sequencer.start_scene(make_scene("a b", "c d e", "f"))
    sequencer.advance()
    sequencer.advance()

    assert sequencer.get_stats().average_words_per_entry == 2

    data = json.loads(sequencer.export_history("json"))
    assert data["totalEntries"] == len(sequencer.get_history())
    assert data["stats"]["totalEntries"] == data["totalEntries"]

    sequencer.clear_history()
    assert sequencer.get_history() == []


def test_skip_completes_current_reveal(sequencer):
    sequencer.start_scene(Scene(id="s", dialogues=[DialogueEntry(text="typing...", effect=EffectKind.TYPEWRITER)]))
    assert sequencer.skip() is True
    assert sequencer.phase is PlaybackPhase.AWAITING_ADVANCE
    assert sequencer.skip() is False
