from __future__ import annotations

import logging
import os
import signal
import sys
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from .config import MonitorConfig
from .display import TextDisplay
from .session import FlowMonitor
from .transport import SerialSettings, SerialTransport, StreamTransport

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from .ble import BleTransport
    from .plotting import LivePlotter


def build_monitor(config: MonitorConfig) -> FlowMonitor:
    return FlowMonitor(
        capacity=config.window.capacity,
        keep_history=config.keep_history,
        max_buffer=config.stream.max_buffer,
    )


def _log_stats(prefix: str, stats: Dict[str, int]) -> None:
    logger.info(
        "%s sessions=%d chunks=%d lines=%d samples=%d malformed=%d unrecognized=%d decode_errors=%d",
        prefix,
        stats.get("sessions", 0),
        stats.get("chunks", 0),
        stats.get("lines", 0),
        stats.get("samples", 0),
        stats.get("malformed", 0),
        stats.get("unrecognized", 0),
        stats.get("decode_errors", 0),
    )


class FlowHost:
    """Host-side orchestrator: one transport, one monitor, optional display sinks."""

    def __init__(
        self,
        config: MonitorConfig,
        *,
        display: Optional[TextDisplay] = None,
        plotter: Optional["LivePlotter"] = None,
    ):
        self.config = config
        self.monitor = build_monitor(config)
        self.display = display
        self.plotter = plotter
        if display is not None:
            self.monitor.listen(display.on_sample)
        if plotter is not None:
            self.monitor.listen(plotter.on_sample)
        self._previous_handler: Any = None
        self._reset_signal: Optional[int] = None

    def reset_stats(self) -> None:
        """User-initiated reset: clears history, average and peak, keeps the live reading."""

        self.monitor.reset_stats()
        if self.display is not None:
            self.display.summary(self.monitor.snapshot())

    def install_reset_signal(self) -> bool:
        """Route SIGUSR1 to :meth:`reset_stats`. Only possible on POSIX, from the main thread."""

        signum = getattr(signal, "SIGUSR1", None)
        if signum is None or threading.current_thread() is not threading.main_thread():
            logger.debug("Reset signal unavailable on this platform/thread")
            return False
        self._previous_handler = signal.signal(signum, self._on_reset_signal)
        self._reset_signal = signum
        logger.info("Reset statistics with: kill -USR1 %d", os.getpid())
        return True

    def restore_reset_signal(self) -> None:
        if self._reset_signal is None:
            return
        signal.signal(self._reset_signal, self._previous_handler or signal.SIG_DFL)
        self._reset_signal = None
        self._previous_handler = None

    def _on_reset_signal(self, _signum, _frame) -> None:
        self.reset_stats()

    def run_serial(self, settings: SerialSettings) -> None:
        self.install_reset_signal()
        if settings.port == "-":
            self.run_stream(sys.stdin.buffer)
            return
        transport = SerialTransport(settings, self.config.host)
        self.monitor.attach(transport)
        transport.start()
        try:
            self._supervise(transport.is_alive)
        finally:
            transport.stop()
            transport.join(timeout=5)
            self._finish()

    def run_stream(self, handle: Any) -> None:
        transport = StreamTransport(handle, chunk_size=self.config.stream.chunk_size)
        self.monitor.attach(transport)
        try:
            transport.run()
        finally:
            self._finish()

    def run_transport(self, transport: "BleTransport") -> None:
        """Run a blocking transport (e.g. BLE) on a worker thread until it ends."""

        self.install_reset_signal()
        self.monitor.attach(transport)
        errors: list[BaseException] = []

        def worker() -> None:
            try:
                transport.run()
            except Exception as exc:
                errors.append(exc)

        thread = threading.Thread(target=worker, name="flowmon-transport", daemon=True)
        thread.start()
        try:
            self._supervise(thread.is_alive)
        finally:
            transport.stop()
            thread.join(timeout=5)
            self._finish()
        if errors:
            raise errors[0]

    def _supervise(self, alive: Callable[[], bool]) -> None:
        interval_sec = max(float(self.config.host.stats_log_interval), 5.0)
        next_log = time.monotonic() + interval_sec
        try:
            while alive():
                time.sleep(0.2)
                if time.monotonic() >= next_log:
                    _log_stats("Stats:", self.monitor.stats())
                    next_log = time.monotonic() + interval_sec
        except KeyboardInterrupt:
            logger.info("Stopping host (Ctrl+C)")

    def _finish(self) -> None:
        self.restore_reset_signal()
        _log_stats("Final stats:", self.monitor.stats())
        if self.display is not None:
            self.display.summary(self.monitor.snapshot())
        if self.plotter is not None:
            self.plotter.close()
