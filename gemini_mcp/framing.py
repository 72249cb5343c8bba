"""Newline-delimited JSON framing for the stdio channel.

Stdin is a long-lived stream: one read may carry half a message, or
several. The framer buffers raw bytes, emits every complete line in
order, and reports malformed lines as FrameErrors without dropping the
valid lines around them.
"""

from __future__ import annotations

import json
import logging

from gemini_core.types import INTERNAL_ERROR, PARSE_ERROR, FrameError, ParsedMessage

logger = logging.getLogger(__name__)

DEFAULT_EXCERPT_LIMIT = 100
DEFAULT_MAX_BUFFER = 4 * 1024 * 1024
TRUNCATION_MARKER = "..."

Frame = ParsedMessage | FrameError


def excerpt(text: str, limit: int = DEFAULT_EXCERPT_LIMIT) -> str:
    """Cap ``text`` at ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


class LineFramer:
    """Turns a chunked byte stream into parsed messages and frame errors.

    Feed chunks in arrival order from a single reader. The pending tail
    (bytes after the last newline) is owned here and never emitted until
    its terminator arrives or ``flush()`` is called at end of stream.
    """

    def __init__(
        self,
        excerpt_limit: int = DEFAULT_EXCERPT_LIMIT,
        max_buffer: int = DEFAULT_MAX_BUFFER,
    ) -> None:
        self.excerpt_limit = excerpt_limit
        self.max_buffer = max_buffer
        self._tail = bytearray()
        self._discarding = False

    @property
    def pending(self) -> int:
        """Number of buffered bytes awaiting a line terminator."""
        return len(self._tail)

    def feed(self, chunk: bytes) -> list[Frame]:
        """Frame one inbound chunk.

        Args:
            chunk: Raw bytes from one read event.

        Returns:
            Messages and errors for every line completed by this chunk,
            in original order. Never raises.
        """
        try:
            return self._feed(chunk)
        except Exception:
            logger.exception("Error processing input chunk")
            return [
                FrameError(
                    code=INTERNAL_ERROR,
                    message="Internal error processing request",
                )
            ]

    def flush(self) -> list[Frame]:
        """Frame whatever is left in the buffer at end of stream."""
        tail = bytes(self._tail)
        self._tail.clear()
        discarding, self._discarding = self._discarding, False
        if discarding:
            return []
        try:
            frame = self._frame_line(tail)
        except Exception:
            logger.exception("Error processing trailing input")
            return [
                FrameError(
                    code=INTERNAL_ERROR,
                    message="Internal error processing request",
                )
            ]
        return [frame] if frame is not None else []

    def _feed(self, chunk: bytes) -> list[Frame]:
        frames: list[Frame] = []
        start = 0
        # Only the new chunk is scanned; the tail never contains a newline.
        while True:
            end = chunk.find(b"\n", start)
            if end == -1:
                break
            piece = chunk[start:end]
            start = end + 1
            if self._discarding:
                # Remainder of an oversized line; already reported.
                self._discarding = False
                self._tail.clear()
                continue
            if self._tail:
                self._tail += piece
                line = bytes(self._tail)
                self._tail.clear()
            else:
                line = piece
            frame = self._frame_line(line)
            if frame is not None:
                frames.append(frame)

        rest = chunk[start:]
        if self._discarding or not rest:
            return frames

        if len(self._tail) + len(rest) > self.max_buffer:
            self._tail += rest[: self.excerpt_limit * 4]
            frames.append(self._oversized(bytes(self._tail)))
            self._tail.clear()
            self._discarding = True
        else:
            self._tail += rest
        return frames

    def _frame_line(self, segment: bytes) -> Frame | None:
        try:
            text = segment.decode("utf-8")
        except UnicodeDecodeError as e:
            received = segment[: self.excerpt_limit * 4].decode("utf-8", "replace")
            return self._parse_error(received.strip(), f"Invalid UTF-8: {e.reason}")

        trimmed = text.strip()
        if not trimmed:
            return None

        try:
            value = json.loads(trimmed)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON received: %s", excerpt(trimmed, 50))
            return self._parse_error(trimmed, str(e))

        return ParsedMessage(raw=trimmed.encode("utf-8"), value=value)

    def _parse_error(self, trimmed: str, details: str) -> FrameError:
        return FrameError(
            code=PARSE_ERROR,
            message="Invalid JSON received",
            details=details,
            received=excerpt(trimmed, self.excerpt_limit),
        )

    def _oversized(self, tail: bytes) -> FrameError:
        logger.warning(
            "Discarding unterminated input over %d bytes", self.max_buffer
        )
        head = tail[: self.excerpt_limit * 4].decode("utf-8", "replace")
        return FrameError(
            code=PARSE_ERROR,
            message="Message exceeds maximum line length",
            details=f"No line terminator within {self.max_buffer} bytes",
            received=excerpt(head, self.excerpt_limit),
        )
