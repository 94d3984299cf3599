"""Fixed-capacity sliding window with current, average and peak readings."""
from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Deque, Tuple

import numpy as np

DEFAULT_CAPACITY = 50


@dataclass(frozen=True)
class StatsSnapshot:
    """Immutable view of a window, safe to hand to another thread."""

    current: float
    average: float
    maximum: float
    history: Tuple[float, ...]

    @property
    def count(self) -> int:
        return len(self.history)


class StatsWindow:
    """
    Most recent ``capacity`` samples plus aggregates derived from them.

    ``average`` and ``maximum`` are recomputed from the retained history on every
    push, so a sample evicted from the head no longer contributes to either.
    ``current`` tracks the live reading and survives :meth:`reset`.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if int(capacity) != capacity or capacity <= 0:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self.capacity = int(capacity)
        self._history: Deque[float] = deque(maxlen=self.capacity)
        self._current = 0.0
        self._average = 0.0
        self._maximum = 0.0

    def __len__(self) -> int:
        return len(self._history)

    @property
    def current(self) -> float:
        return self._current

    @property
    def average(self) -> float:
        return self._average

    @property
    def maximum(self) -> float:
        return self._maximum

    @property
    def history(self) -> Tuple[float, ...]:
        return tuple(self._history)

    def push(self, sample: float) -> None:
        value = float(sample)
        if not math.isfinite(value):
            raise ValueError(f"sample must be finite, got {sample!r}")
        self._history.append(value)
        self._current = value
        values = np.fromiter(self._history, dtype=float, count=len(self._history))
        self._average = float(values.mean())
        self._maximum = float(values.max())

    def reset(self) -> None:
        self._history.clear()
        self._average = 0.0
        self._maximum = 0.0

    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(
            current=self._current,
            average=self._average,
            maximum=self._maximum,
            history=tuple(self._history),
        )
