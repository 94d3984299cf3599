from __future__ import annotations

import numpy as np
import pytest

from flowmon.stats import StatsWindow


def test_empty_window_defaults() -> None:
    window = StatsWindow()
    assert window.capacity == 50
    assert (window.current, window.average, window.maximum) == (0.0, 0.0, 0.0)
    assert window.history == ()
    assert len(window) == 0


def test_single_sample() -> None:
    window = StatsWindow()
    window.push(5.0)
    assert window.current == 5.0
    assert window.average == 5.0
    assert window.maximum == 5.0
    assert window.history == (5.0,)


def test_eviction_keeps_last_fifty() -> None:
    window = StatsWindow(50)
    for value in range(1, 61):
        window.push(value)
    assert len(window.history) == 50
    assert window.history == tuple(float(v) for v in range(11, 61))
    assert window.maximum == 60.0
    assert window.average == pytest.approx(35.5)
    assert window.current == 60.0


def test_evicted_maximum_does_not_linger() -> None:
    window = StatsWindow(3)
    for value in (9.0, 1.0, 2.0):
        window.push(value)
    assert window.maximum == 9.0
    window.push(3.0)
    assert window.history == (1.0, 2.0, 3.0)
    assert window.maximum == 3.0
    assert window.average == pytest.approx(2.0)


def test_aggregates_match_history_under_random_pushes() -> None:
    rng = np.random.default_rng(11)
    window = StatsWindow(7)
    for value in rng.normal(100.0, 30.0, size=200):
        window.push(value)
        history = np.array(window.history)
        assert len(history) <= 7
        assert window.maximum == history.max()
        assert window.average == pytest.approx(history.mean())


def test_reset_keeps_current_and_is_idempotent() -> None:
    window = StatsWindow()
    for value in (4.0, 8.0):
        window.push(value)
    window.reset()
    assert window.history == ()
    assert window.average == 0.0
    assert window.maximum == 0.0
    assert window.current == 8.0
    window.reset()
    assert (window.history, window.average, window.maximum, window.current) == ((), 0.0, 0.0, 8.0)


def test_history_is_a_snapshot() -> None:
    window = StatsWindow(2)
    window.push(1.0)
    before = window.history
    window.push(2.0)
    assert before == (1.0,)
    snapshot = window.snapshot()
    window.push(3.0)
    assert snapshot.history == (1.0, 2.0)
    assert snapshot.count == 2


@pytest.mark.parametrize("capacity", [0, -1, 2.5])
def test_invalid_capacity(capacity) -> None:
    with pytest.raises(ValueError):
        StatsWindow(capacity)


def test_push_rejects_non_finite() -> None:
    window = StatsWindow()
    with pytest.raises(ValueError):
        window.push(float("nan"))
    assert window.history == ()
