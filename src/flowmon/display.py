"""Terminal readout of the live flow statistics."""
from __future__ import annotations

from typing import List, Optional

import numpy as np
import typer

from .stats import StatsSnapshot

BAR_GLYPHS = " ▁▂▃▄▅▆▇█"


def format_readout(snapshot: StatsSnapshot, unit: str = "CFM", precision: int = 2) -> List[str]:
    fmt = f"{{:.{precision}f}}"
    return [
        f"Current: {fmt.format(snapshot.current)} {unit}",
        f"Average: {fmt.format(snapshot.average)} {unit} (last {snapshot.count} readings)",
        f"Peak: {fmt.format(snapshot.maximum)} {unit}",
    ]


def history_bars(snapshot: StatsSnapshot, width: Optional[int] = None) -> np.ndarray:
    """
    Bar heights in [0, 1] relative to the window maximum (all zero if it is not positive).
    With *width*, only the most recent *width* readings are returned.
    """

    if width is not None and width <= 0:
        raise ValueError(f"width must be positive, got {width}")
    values = np.asarray(snapshot.history, dtype=float)
    if width is not None:
        values = values[-width:]
    if values.size == 0 or snapshot.maximum <= 0:
        return np.zeros(values.size, dtype=float)
    return np.clip(values / snapshot.maximum, 0.0, 1.0)


def sparkline(snapshot: StatsSnapshot, width: Optional[int] = None) -> str:
    heights = history_bars(snapshot, width)
    levels = np.rint(heights * (len(BAR_GLYPHS) - 1)).astype(int)
    return "".join(BAR_GLYPHS[level] for level in levels)


class TextDisplay:
    """Prints one compact readout line per sample."""

    def __init__(
        self,
        unit: str = "CFM",
        precision: int = 2,
        show_history: bool = False,
        history_width: Optional[int] = None,
    ):
        self.unit = unit
        self.precision = precision
        self.show_history = show_history
        self.history_width = history_width

    def on_sample(self, sample: float, snapshot: StatsSnapshot) -> None:
        line = " | ".join(format_readout(snapshot, self.unit, self.precision))
        if self.show_history:
            line = f"{line} | {sparkline(snapshot, self.history_width)}"
        typer.echo(line)

    def summary(self, snapshot: StatsSnapshot) -> None:
        for line in format_readout(snapshot, self.unit, self.precision):
            typer.echo(line)
