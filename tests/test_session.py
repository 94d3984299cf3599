from __future__ import annotations

import pytest

from flowmon.session import FlowMonitor, FlowSession, SessionClosedError
from flowmon.stats import StatsWindow


def test_session_turns_chunks_into_samples() -> None:
    session = FlowSession()
    assert session.handle_chunk(b"FR:1") == []
    assert session.handle_chunk(b"0.5\nFR:abc\nHELLO\nFR:2") == [10.5]
    assert session.handle_chunk(b"0\n") == [20.0]
    snapshot = session.snapshot()
    assert snapshot.history == (10.5, 20.0)
    assert snapshot.maximum == 20.0
    assert snapshot.average == pytest.approx(15.25)
    stats = session.stats()
    assert stats["chunks"] == 3
    assert stats["lines"] == 4
    assert stats["samples"] == 2
    assert stats["malformed"] == 1
    assert stats["unrecognized"] == 1


def test_decode_error_is_absorbed() -> None:
    session = FlowSession()
    assert session.handle_chunk(b"FR:\xff1\nFR:3\n") == [3.0]
    assert session.handle_chunk(b"FR:4\n") == [4.0]
    assert session.stats()["decode_errors"] == 1


def test_listeners_receive_consistent_snapshots() -> None:
    session = FlowSession(StatsWindow(2))
    seen = []
    session.listen(lambda sample, snapshot: seen.append((sample, snapshot.history, snapshot.maximum)))
    session.handle_chunk(b"FR:5\nFR:1\nFR:2\n")
    assert seen == [
        (5.0, (5.0,), 5.0),
        (1.0, (5.0, 1.0), 5.0),
        (2.0, (1.0, 2.0), 2.0),
    ]


def test_session_end_discards_partial_line_but_keeps_stats() -> None:
    session = FlowSession()
    closed = []
    session.on_closed(lambda: closed.append(True))
    session.handle_chunk(b"FR:7\nFR:5")
    session.handle_session_end()
    session.handle_session_end()
    assert closed == [True]
    assert session.closed
    assert session.assembler.pending == ""
    assert session.snapshot().history == (7.0,)
    with pytest.raises(SessionClosedError):
        session.handle_chunk(b"0\n")


def test_reset_stats_keeps_current() -> None:
    session = FlowSession()
    session.handle_chunk(b"FR:3\nFR:9\n")
    session.reset_stats()
    snapshot = session.snapshot()
    assert snapshot.history == ()
    assert (snapshot.average, snapshot.maximum, snapshot.current) == (0.0, 0.0, 9.0)


def test_resume_shares_window() -> None:
    first = FlowSession()
    first.handle_chunk(b"FR:1\n")
    first.handle_session_end()
    second = FlowSession.resume(first)
    second.handle_chunk(b"FR:2\n")
    assert second.window is first.window
    assert second.snapshot().history == (1.0, 2.0)


def test_monitor_keeps_history_across_reconnect() -> None:
    monitor = FlowMonitor(capacity=5)
    seen = []
    monitor.listen(lambda sample, snapshot: seen.append(sample))
    first_window = monitor.session.window
    monitor.handle_chunk(b"FR:1\nFR:5")
    monitor.handle_session_end()
    # the partial "FR:5" died with the first session
    monitor.handle_chunk(b"0\nFR:2\n")
    assert monitor.snapshot().history == (1.0, 2.0)
    assert seen == [1.0, 2.0]
    assert monitor.session.window is first_window
    stats = monitor.stats()
    assert stats["sessions"] == 2
    assert stats["samples"] == 2
    assert stats["unrecognized"] == 1
    assert stats["chunks"] == 2


def test_monitor_reset_on_reconnect() -> None:
    monitor = FlowMonitor(capacity=5, keep_history=False)
    monitor.handle_chunk(b"FR:8\n")
    monitor.handle_session_end()
    monitor.handle_chunk(b"FR:2\n")
    snapshot = monitor.snapshot()
    assert snapshot.history == (2.0,)
    assert snapshot.maximum == 2.0


def test_monitor_reset_applies_to_current_session() -> None:
    monitor = FlowMonitor(capacity=5)
    monitor.handle_chunk(b"FR:4\nFR:6\n")
    monitor.handle_session_end()
    monitor.reset_stats()
    monitor.handle_chunk(b"FR:1\n")
    snapshot = monitor.snapshot()
    assert snapshot.history == (1.0,)
    assert snapshot.maximum == 1.0
