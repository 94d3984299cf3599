from __future__ import annotations

import io
import os
import signal
import time

import pytest

from flowmon.config import load_config
from flowmon.display import TextDisplay
from flowmon.runner import FlowHost


def test_host_reset_keeps_current_reading(capsys) -> None:
    host = FlowHost(load_config(), display=TextDisplay())
    host.run_stream(io.BytesIO(b"FR:3\nFR:9\n"))
    host.reset_stats()
    snapshot = host.monitor.snapshot()
    assert snapshot.history == ()
    assert (snapshot.average, snapshot.maximum, snapshot.current) == (0.0, 0.0, 9.0)
    assert "Average: 0.00 CFM (last 0 readings)" in capsys.readouterr().out


@pytest.mark.skipif(not hasattr(signal, "SIGUSR1"), reason="SIGUSR1 is POSIX-only")
def test_sigusr1_resets_statistics() -> None:
    previous = signal.getsignal(signal.SIGUSR1)
    host = FlowHost(load_config())
    host.monitor.handle_chunk(b"FR:5\nFR:7\n")
    assert host.install_reset_signal()
    try:
        os.kill(os.getpid(), signal.SIGUSR1)
        deadline = time.monotonic() + 2.0
        while host.monitor.snapshot().history and time.monotonic() < deadline:
            time.sleep(0.01)
        snapshot = host.monitor.snapshot()
        assert snapshot.history == ()
        assert snapshot.current == 7.0
    finally:
        host.restore_reset_signal()
    assert signal.getsignal(signal.SIGUSR1) == previous


@pytest.mark.skipif(not hasattr(signal, "SIGUSR1"), reason="SIGUSR1 is POSIX-only")
def test_reset_signal_restored_after_stream() -> None:
    previous = signal.getsignal(signal.SIGUSR1)
    host = FlowHost(load_config())
    host.install_reset_signal()
    host.run_stream(io.BytesIO(b"FR:1\n"))
    assert signal.getsignal(signal.SIGUSR1) == previous
