from narrative.game_state import Achievement, GameState


def test_flags_and_variables():
    state = GameState()
    state.set_flag("met_stranger", True)
    assert state.get_flag("met_stranger")
    assert not state.get_flag("unknown")

    assert state.increment_variable("dialogue_count") == 1
    assert state.increment_variable("dialogue_count", 2) == 3
    assert state.get_variable("dialogue_count") == 3
    assert state.get_variable("missing") == 0


def test_scenes_and_choices():
    state = GameState()
    state.set_scene("intro")
    state.set_scene("forest")
    state.set_scene("intro")
    state.record_choice("intro", 1, "Who are you?")
    state.record_choice("forest", 0, "Go left")

    assert state.current_scene == "intro"
    assert state.visited_scenes == {"intro", "forest"}
    assert [c.label for c in state.get_choices("intro")] == ["Who are you?"]
    assert len(state.get_choices()) == 2


def test_achievements_unlock_once():
    state = GameState()
    first = Achievement(id="first_meeting", name="First Meeting")

    assert state.add_achievement(first) is True
    assert state.add_achievement(first) is False
    assert state.has_achievement("first_meeting")
    assert len(state.get_achievements()) == 1


def test_formatted_play_time():
    state = GameState()
    state.add_play_time(3725.9)
    assert state.get_formatted_play_time() == "01:02:05"


def test_dict_round_trip():
    state = GameState()
    state.set_flag("asked_who")
    state.increment_variable("dialogue_count")
    state.set_scene("intro")
    state.record_choice("intro", 0, "Who are you?")
    state.add_achievement(Achievement(id="a1", name="A"))
    state.add_play_time(12.5)

    restored = GameState.from_dict(state.to_dict())

    assert restored.to_dict() == state.to_dict()
