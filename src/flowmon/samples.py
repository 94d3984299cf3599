from __future__ import annotations

import enum
import logging
import math
from typing import Dict, Optional, Tuple

from .stats import StatsWindow

FLOW_PREFIX = "FR:"

logger = logging.getLogger(__name__)


class LineKind(str, enum.Enum):
    SAMPLE = "sample"
    MALFORMED = "malformed"
    UNRECOGNIZED = "unrecognized"


def parse_flow_line(line: str) -> Tuple[LineKind, Optional[float]]:
    """Classify *line* and extract its flow reading when it is a well-formed ``FR:`` record."""

    if not line.startswith(FLOW_PREFIX):
        return LineKind.UNRECOGNIZED, None
    try:
        value = float(line[len(FLOW_PREFIX) :])
    except ValueError:
        return LineKind.MALFORMED, None
    if not math.isfinite(value):
        return LineKind.MALFORMED, None
    return LineKind.SAMPLE, value


class SampleStream:
    """
    Turns assembled lines into flow samples and pushes them into a window.
    Noise on the link is expected, so bad lines are counted and dropped, never raised.
    """

    def __init__(self, window: StatsWindow):
        self.window = window
        self._stats: Dict[str, int] = {"samples": 0, "malformed": 0, "unrecognized": 0}

    def ingest(self, line: str) -> Optional[float]:
        kind, value = parse_flow_line(line)
        if kind is LineKind.UNRECOGNIZED:
            self._stats["unrecognized"] += 1
            return None
        if kind is LineKind.MALFORMED or value is None:
            self._stats["malformed"] += 1
            logger.debug("Discarding malformed flow line: %r", line)
            return None
        self._stats["samples"] += 1
        self.window.push(value)
        return value

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)
