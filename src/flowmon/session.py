from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from .lines import DecodeError, LineAssembler
from .samples import SampleStream
from .stats import StatsSnapshot, StatsWindow

if TYPE_CHECKING:
    from .transport import Transport

logger = logging.getLogger(__name__)

SampleListener = Callable[[float, StatsSnapshot], None]


class SessionClosedError(RuntimeError):
    """A chunk was delivered to a session that already ended."""


class FlowSession:
    """
    Core wiring for one transport session: chunks in, samples and statistics out.

    The session owns its assembler exclusively. The window may be shared with a
    later session (see :meth:`resume`) when history should survive a reconnect.
    """

    def __init__(self, window: Optional[StatsWindow] = None, *, max_buffer: int = 4096):
        self.window = window if window is not None else StatsWindow()
        self.assembler = LineAssembler(max_buffer=max_buffer)
        self.stream = SampleStream(self.window)
        self._listeners: List[SampleListener] = []
        self._close_listeners: List[Callable[[], None]] = []
        self._stats: Dict[str, int] = {"chunks": 0, "lines": 0, "decode_errors": 0}
        self._closed = False

    @classmethod
    def resume(cls, previous: "FlowSession", *, max_buffer: Optional[int] = None) -> "FlowSession":
        limit = max_buffer if max_buffer is not None else previous.assembler.max_buffer
        session = cls(previous.window, max_buffer=limit)
        for listener in previous._listeners:
            session.listen(listener)
        return session

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, transport: "Transport") -> None:
        transport.on_chunk(self.handle_chunk)
        transport.on_session_end(self.handle_session_end)

    def listen(self, callback: SampleListener) -> None:
        self._listeners.append(callback)

    def on_closed(self, callback: Callable[[], None]) -> None:
        self._close_listeners.append(callback)

    def handle_chunk(self, chunk: bytes) -> List[float]:
        if self._closed:
            raise SessionClosedError("chunk delivered after session end")
        self._stats["chunks"] += 1
        try:
            lines = self.assembler.feed(chunk)
        except DecodeError as exc:
            self._stats["decode_errors"] += 1
            logger.warning("Dropping undecodable data (%d bytes): %s", len(exc.chunk), exc.reason)
            lines = list(exc.lines)
        samples: List[float] = []
        for line in lines:
            self._stats["lines"] += 1
            value = self.stream.ingest(line)
            if value is None:
                continue
            samples.append(value)
            if self._listeners:
                snapshot = self.window.snapshot()
                for listener in self._listeners:
                    listener(value, snapshot)
        return samples

    def handle_session_end(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.assembler.pending:
            logger.debug("Discarding partial line at session end: %r", self.assembler.pending)
        self.assembler.reset()
        logger.info("Session ended after %d samples", self.stream.stats()["samples"])
        for callback in self._close_listeners:
            callback()

    def reset_stats(self) -> None:
        self.window.reset()
        logger.info("Statistics reset")

    def snapshot(self) -> StatsSnapshot:
        return self.window.snapshot()

    def stats(self) -> Dict[str, int]:
        merged = dict(self._stats)
        merged.update(self.stream.stats())
        return merged


class FlowMonitor:
    """
    Keeps one :class:`FlowSession` per transport session across reconnects.

    A new session starts with the first chunk after a session end. With
    ``keep_history`` it reuses the previous window, otherwise it starts empty.
    Calls are serialised, so a user reset from another thread (or a signal
    handler) never interleaves with chunk delivery.
    """

    def __init__(
        self,
        *,
        capacity: int = 50,
        keep_history: bool = True,
        max_buffer: int = 4096,
    ):
        self.capacity = capacity
        self.keep_history = keep_history
        self.max_buffer = max_buffer
        self.session = FlowSession(StatsWindow(capacity), max_buffer=max_buffer)
        self.sessions = 1
        self._listeners: List[SampleListener] = []
        self._totals: Dict[str, int] = {}
        self._lock = threading.RLock()

    def attach(self, transport: "Transport") -> None:
        transport.on_chunk(self.handle_chunk)
        transport.on_session_end(self.handle_session_end)

    def listen(self, callback: SampleListener) -> None:
        with self._lock:
            self._listeners.append(callback)
            self.session.listen(callback)

    def handle_chunk(self, chunk: bytes) -> List[float]:
        with self._lock:
            if self.session.closed:
                self._start_next_session()
            return self.session.handle_chunk(chunk)

    def handle_session_end(self) -> None:
        with self._lock:
            self.session.handle_session_end()

    def reset_stats(self) -> None:
        with self._lock:
            self.session.reset_stats()

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return self.session.snapshot()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            merged = dict(self._totals)
            for key, value in self.session.stats().items():
                merged[key] = merged.get(key, 0) + value
            merged["sessions"] = self.sessions
            return merged

    def _start_next_session(self) -> None:
        previous = self.session
        for key, value in previous.stats().items():
            self._totals[key] = self._totals.get(key, 0) + value
        if self.keep_history:
            self.session = FlowSession.resume(previous, max_buffer=self.max_buffer)
        else:
            self.session = FlowSession(StatsWindow(self.capacity), max_buffer=self.max_buffer)
            for listener in self._listeners:
                self.session.listen(listener)
        self.sessions += 1
        logger.info(
            "Starting session %d (%s history)",
            self.sessions,
            "keeping" if self.keep_history else "clearing",
        )
