from __future__ import annotations

import codecs
import logging
from typing import List, Sequence, Tuple

DELIMITER = "\n"
REPLACEMENT_CHAR = "\ufffd"

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """
    Raised by :meth:`LineAssembler.feed` when a chunk is not valid UTF-8.

    ``lines`` carries the complete lines of the chunk that did not touch the
    invalid bytes, so callers can still ingest them.
    """

    def __init__(self, chunk: bytes, reason: str, lines: Sequence[str] = ()):
        super().__init__(f"Invalid UTF-8 in {len(chunk)}-byte chunk: {reason}")
        self.chunk = bytes(chunk)
        self.reason = reason
        self.lines: Tuple[str, ...] = tuple(lines)


class LineAssembler:
    """
    Streaming line splitter for newline-delimited text arriving in arbitrary chunks.
    The trailing unterminated segment is kept until a later chunk completes it.
    """

    def __init__(self, max_buffer: int = 4096, encoding: str = "utf-8"):
        if max_buffer <= 0:
            raise ValueError("max_buffer must be positive")
        self.max_buffer = max_buffer
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
        self._buffer = ""
        self._skip_partial = False

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: bytes) -> List[str]:
        if not chunk:
            return []
        data = bytes(chunk)
        state = self._decoder.getstate()
        try:
            text = self._decoder.decode(data)
        except UnicodeDecodeError as exc:
            text = self._decode_lossy(data, state)
            raise DecodeError(data, str(exc), self._split(text)) from exc
        return self._split(text)

    def reset(self) -> None:
        self._buffer = ""
        self._skip_partial = False
        self._decoder.reset()

    def _decode_lossy(self, data: bytes, state: Tuple[bytes, int]) -> str:
        # Corrupted bytes become U+FFFD; any line carrying one is dropped in _split.
        pending, _ = state
        lossy = codecs.getincrementaldecoder(self.encoding)(errors="replace")
        text = lossy.decode(pending + data)
        tail, _ = lossy.getstate()
        self._decoder.reset()
        self._decoder.setstate((tail, 0))
        return text

    def _split(self, text: str) -> List[str]:
        segments = (self._buffer + text).split(DELIMITER)
        self._buffer = segments.pop()
        lines: List[str] = []
        for segment in segments:
            if self._skip_partial:
                # tail of a line whose head overflowed the buffer
                self._skip_partial = False
                continue
            line = _strip_cr(segment)
            if REPLACEMENT_CHAR in line:
                logger.debug("Dropping line with undecodable bytes: %r", line)
                continue
            if len(line) > self.max_buffer:
                logger.warning("Dropping %d-character line (limit %d)", len(line), self.max_buffer)
                continue
            lines.append(line)
        if len(_strip_cr(self._buffer)) > self.max_buffer:
            logger.warning(
                "Unterminated line exceeded %d characters, discarding buffer", self.max_buffer
            )
            self._buffer = ""
            self._skip_partial = True
        return lines


def _strip_cr(segment: str) -> str:
    return segment[:-1] if segment.endswith("\r") else segment
