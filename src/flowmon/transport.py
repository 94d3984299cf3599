from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, Dict, Iterator, List, Optional

import serial

from .config import HostRuntime

logger = logging.getLogger(__name__)

ChunkHandler = Callable[[bytes], Any]
EndHandler = Callable[[], Any]


class TransportError(RuntimeError):
    """Discovery, pairing or link failure below the line protocol."""


class Transport:
    """
    Source of byte chunks with a session-end notification.

    Chunk handlers run once per chunk in arrival order, never concurrently.
    End handlers run exactly once per session, after its last chunk.
    """

    def __init__(self) -> None:
        self._chunk_handlers: List[ChunkHandler] = []
        self._end_handlers: List[EndHandler] = []
        self._session_open = False

    def on_chunk(self, handler: ChunkHandler) -> None:
        self._chunk_handlers.append(handler)

    def on_session_end(self, handler: EndHandler) -> None:
        self._end_handlers.append(handler)

    @property
    def session_open(self) -> bool:
        return self._session_open

    def _begin_session(self) -> None:
        self._session_open = True

    def _emit_chunk(self, chunk: bytes) -> None:
        if not self._session_open or not chunk:
            return
        for handler in self._chunk_handlers:
            handler(chunk)

    def _end_session(self) -> None:
        if not self._session_open:
            return
        self._session_open = False
        for handler in self._end_handlers:
            handler()


def iterate_binary_stream(handle: Any, chunk_size: int = 20) -> Iterator[bytes]:
    # read1 returns what is already buffered instead of waiting for a full chunk
    read = getattr(handle, "read1", handle.read)
    while True:
        chunk = read(chunk_size)
        if not chunk:
            break
        yield chunk


class StreamTransport(Transport):
    """Replays a binary file-like object (stdin, a capture file) as one session."""

    def __init__(self, handle: BinaryIO, chunk_size: int = 20):
        super().__init__()
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.handle = handle
        self.chunk_size = chunk_size

    def run(self) -> None:
        self._begin_session()
        try:
            for chunk in iterate_binary_stream(self.handle, self.chunk_size):
                self._emit_chunk(chunk)
        finally:
            self._end_session()


@dataclass
class SerialSettings:
    port: str
    baudrate: int = 115200
    timeout: float = 1.0


class SerialTransport(Transport):
    """
    Serial port reader with exponential reconnect backoff.
    Each successful open is one session; all callbacks run on the reader thread.
    """

    def __init__(self, settings: SerialSettings, runtime: Optional[HostRuntime] = None):
        super().__init__()
        self.settings = settings
        self.runtime = runtime or HostRuntime()
        self.last_exception: Optional[Exception] = None
        self._stop_event = threading.Event()
        self._serial_handle = None
        self._thread: Optional[threading.Thread] = None
        self._sessions = 0
        self._reconnects = 0
        self._chunks = 0

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name="flowmon-serial", daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def stop(self) -> None:
        self._stop_event.set()
        handle = self._serial_handle
        if handle is not None:
            try:
                handle.close()
            except serial.SerialException as exc:
                logger.debug("Error closing %s: %s", self.settings.port, exc)

    def stats(self) -> Dict[str, int]:
        return {"sessions": self._sessions, "reconnects": self._reconnects, "chunks": self._chunks}

    def run(self) -> None:
        initial_delay = max(self.runtime.reconnect_initial_sec, 0.01)
        max_delay = max(self.runtime.reconnect_max_sec, initial_delay)
        backoff = initial_delay
        read_size = max(self.runtime.read_size, 1)
        while not self._stop_event.is_set():
            try:
                self._serial_handle = self._open_serial()
                if self._sessions:
                    self._reconnects += 1
                    logger.info("Reconnected to %s", self.settings.port)
                else:
                    logger.info("Connected to %s", self.settings.port)
                self._sessions += 1
                self.last_exception = None
                backoff = initial_delay
                self._begin_session()
                self._pump(read_size)
            except serial.SerialException as exc:
                self.last_exception = exc
                if not self._stop_event.is_set():
                    logger.warning("Serial error (%s): %s", self.settings.port, exc)
            finally:
                self._end_session()
                self._close_handle()
            if self._stop_event.is_set():
                break
            wait_time = min(backoff, max_delay)
            logger.info("Reconnecting in %.1fs", wait_time)
            self._stop_event.wait(wait_time)
            backoff = min(backoff * 2, max_delay)

    def _pump(self, read_size: int) -> None:
        while not self._stop_event.is_set():
            handle = self._serial_handle
            if handle is None:
                return
            data = handle.read(read_size)
            if not data:
                continue
            self._chunks += 1
            self._emit_chunk(bytes(data))

    def _close_handle(self) -> None:
        handle, self._serial_handle = self._serial_handle, None
        if handle is None:
            return
        try:
            handle.close()
        except serial.SerialException as exc:
            logger.debug("Error closing %s: %s", self.settings.port, exc)

    def _open_serial(self):
        return serial.Serial(
            port=self.settings.port,
            baudrate=self.settings.baudrate,
            timeout=self.settings.timeout,
        )
