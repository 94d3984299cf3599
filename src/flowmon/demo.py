"""Synthetic sensor stream utilities."""
from __future__ import annotations

from typing import Iterator, List

import numpy as np

from .session import FlowSession
from .stats import StatsWindow

NOISE_LINES = ["", "BOOT ESP32-Flow v1.2", "FR:", "FR:--.-", "FR:nan", "fr:12.0", "FR:inf"]


def create_demo_stream(samples: int = 200, seed: int = 42, noise_rate: float = 0.05) -> bytes:
    rng = np.random.default_rng(seed)
    base_cfm = 120.0
    t = np.arange(samples, dtype=float)

    # slow drift + fan pulsation + sensor noise
    flow = base_cfm + 15.0 * np.sin(t / 25.0) + 4.0 * np.sin(t / 3.0)
    flow += rng.normal(scale=1.5, size=samples)
    flow = np.clip(flow, 0.0, None)

    lines: List[str] = []
    for value in flow:
        if rng.random() < noise_rate:
            lines.append(NOISE_LINES[int(rng.integers(len(NOISE_LINES)))])
        lines.append(f"FR:{value:.2f}")
    text = "\r\n".join(lines) + "\r\n"
    return text.encode("utf-8")


def random_chunks(data: bytes, seed: int = 7, max_chunk: int = 20) -> Iterator[bytes]:
    """Split *data* at random points, like notifications of varying size."""

    rng = np.random.default_rng(seed)
    offset = 0
    while offset < len(data):
        size = int(rng.integers(1, max_chunk + 1))
        yield data[offset : offset + size]
        offset += size


def run_demo(samples: int = 200, seed: int = 42, capacity: int = 50) -> FlowSession:
    session = FlowSession(StatsWindow(capacity))
    for chunk in random_chunks(create_demo_stream(samples, seed), seed=seed + 1):
        session.handle_chunk(chunk)
    session.handle_session_end()
    return session
