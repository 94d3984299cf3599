from __future__ import annotations

import logging
import threading
from typing import Optional

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation

from .display import format_readout
from .stats import StatsSnapshot


class LivePlotter:
    """Realtime dashboard: history bars of the window with average and peak markers."""

    def __init__(self, *, unit: str = "CFM", precision: int = 2, refresh_ms: int = 500) -> None:
        self._logger = logging.getLogger(__name__)
        self._unit = unit
        self._precision = precision
        self._lock = threading.Lock()
        self._snapshot: Optional[StatsSnapshot] = None
        self._running = True

        self.fig, self.ax = plt.subplots(figsize=(9, 4))
        self.ax.set_title("Flow Rate Monitor")
        self.ax.set_xlabel("Reading")
        self.ax.set_ylabel(unit)
        self._bars = None
        self.line_avg = self.ax.axhline(0.0, color="tab:purple", linestyle="--", label="average")
        self.line_peak = self.ax.axhline(0.0, color="tab:red", linestyle=":", label="peak")
        self.ax.legend(loc="upper left")
        self._text = self.ax.text(0.99, 0.97, "", transform=self.ax.transAxes, ha="right", va="top")

        self._anim = FuncAnimation(self.fig, self._update_plot, interval=refresh_ms, blit=False)

        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def _loop(self) -> None:  # pragma: no cover - GUI loop
        plt.show(block=False)
        while self._running:
            try:
                plt.pause(0.1)
            except Exception:
                self._logger.debug("Plot loop stopped", exc_info=True)
                break

    def on_sample(self, sample: float, snapshot: StatsSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def _update_plot(self, _frame):  # pragma: no cover - GUI callback
        with self._lock:
            snapshot = self._snapshot
        if snapshot is None or not snapshot.history:
            return self.line_avg, self.line_peak

        if self._bars is not None:
            self._bars.remove()
        positions = range(snapshot.count)
        self._bars = self.ax.bar(positions, snapshot.history, color="tab:blue", width=0.8)
        self.line_avg.set_ydata([snapshot.average, snapshot.average])
        self.line_peak.set_ydata([snapshot.maximum, snapshot.maximum])
        self._text.set_text("\n".join(format_readout(snapshot, self._unit, self._precision)))
        self.ax.set_xlim(-0.5, max(snapshot.count, 1) - 0.5)
        self.ax.set_ylim(min(0.0, min(snapshot.history)), max(snapshot.maximum * 1.1, 1.0))
        return self.line_avg, self.line_peak

    def close(self) -> None:
        self._running = False
        try:
            plt.close(self.fig)
        except Exception:
            self._logger.debug("Error closing plot window", exc_info=True)
        thread = getattr(self, "_thread", None)
        if thread and thread.is_alive():
            thread.join(timeout=1.0)
