import pytest
from vnengine.core.scheduler import Scheduler


def test_call_later_fires_when_due(scheduler):
    fired = []
    scheduler.call_later(0.5, lambda: fired.append(scheduler.now))

    scheduler.update(0.4)
    assert fired == []

    scheduler.update(0.2)
    assert fired == [pytest.approx(0.5)]
    assert scheduler.now == pytest.approx(0.6)


def test_timers_fire_in_due_order(scheduler):
    order = []
    scheduler.call_later(0.3, lambda: order.append("c"))
    scheduler.call_later(0.1, lambda: order.append("a"))
    scheduler.call_later(0.2, lambda: order.append("b"))
    scheduler.call_later(0.1, lambda: order.append("a2"))

    scheduler.update(1.0)

    assert order == ["a", "a2", "b", "c"]


def test_cancelled_timer_never_fires(scheduler):
    fired = []
    timer = scheduler.call_later(0.1, lambda: fired.append(1))
    timer.cancel()

    scheduler.update(1.0)

    assert fired == []
    assert scheduler.pending == 0


def test_call_every_repeats_until_cancelled(scheduler):
    ticks = []
    timer = scheduler.call_every(0.1, lambda: ticks.append(1))

    scheduler.update(0.35)
    assert len(ticks) == 3

    timer.cancel()
    scheduler.update(1.0)
    assert len(ticks) == 3


def test_callback_can_cancel_its_own_repeating_timer(scheduler):
    ticks = []
    holder = {}

    def tick():
        ticks.append(1)
        if len(ticks) == 2:
            holder["timer"].cancel()

    holder["timer"] = scheduler.call_every(0.1, tick)
    scheduler.update(5.0)

    assert len(ticks) == 2


def test_callback_scheduling_within_same_update_fires(scheduler):
    fired = []
    scheduler.call_later(0.1, lambda: scheduler.call_later(0.1, lambda: fired.append(scheduler.now)))

    scheduler.update(0.25)

    assert fired == [pytest.approx(0.2)]


def test_callback_error_is_contained(scheduler):
    fired = []

    def broken():
        raise RuntimeError("boom")

    scheduler.call_later(0.1, broken)
    scheduler.call_later(0.2, lambda: fired.append(1))

    assert scheduler.update(1.0) == 2
    assert fired == [1]


def test_call_every_rejects_non_positive_interval(scheduler):
    with pytest.raises(ValueError):
        scheduler.call_every(0, lambda: None)


def test_cancel_all(scheduler):
    fired = []
    scheduler.call_later(0.1, lambda: fired.append(1))
    scheduler.call_every(0.1, lambda: fired.append(2))

    scheduler.cancel_all()
    scheduler.update(1.0)

    assert fired == []


def test_custom_start_time():
    scheduler = Scheduler(start_time=10.0)
    fired = []
    scheduler.call_later(1.0, lambda: fired.append(scheduler.now))
    scheduler.update(1.0)
    assert fired == [pytest.approx(11.0)]
