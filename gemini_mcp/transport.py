"""Framed stdio transport for the MCP server.

Drop-in replacement for ``mcp.server.stdio.stdio_server`` that puts a
LineFramer between stdin and the session. Malformed lines are answered
directly on stdout with a JSON-RPC error envelope; the session only ever
sees well-formed JSON-RPC messages.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, BinaryIO

import anyio
import anyio.lowlevel
import anyio.to_thread
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import types
from mcp.shared.message import SessionMessage
from pydantic import ValidationError

from gemini_core.types import INTERNAL_ERROR, INVALID_REQUEST, FrameError, ParsedMessage

from .framing import LineFramer, excerpt

logger = logging.getLogger(__name__)

READ_SIZE = 65536


def internal_error_envelope(details: str | None = None) -> dict[str, Any]:
    """Generic envelope sent when something unexpected broke."""
    frame = FrameError(
        code=INTERNAL_ERROR,
        message="Internal error processing request",
        details=details,
    )
    return frame.to_envelope()


def invalid_request_envelope(
    parsed: ParsedMessage, error: ValidationError, limit: int
) -> dict[str, Any]:
    """Envelope for a line that is JSON but not a JSON-RPC message."""
    request_id = None
    if isinstance(parsed.value, dict):
        candidate = parsed.value.get("id")
        if isinstance(candidate, (str, int)) and not isinstance(candidate, bool):
            request_id = candidate
    frame = FrameError(
        code=INVALID_REQUEST,
        message="Invalid Request",
        details=f"{error.error_count()} validation error(s) for JSONRPCMessage",
        received=excerpt(parsed.raw.decode("utf-8"), limit),
    )
    return frame.to_envelope(request_id)


@asynccontextmanager
async def framed_stdio_server(
    stdin: BinaryIO | None = None,
    stdout: BinaryIO | None = None,
    framer: LineFramer | None = None,
) -> AsyncIterator[
    tuple[
        MemoryObjectReceiveStream[SessionMessage | Exception],
        MemoryObjectSendStream[SessionMessage],
    ]
]:
    """Serve MCP over stdio with line framing and fault isolation.

    Args:
        stdin: Binary input stream (defaults to ``sys.stdin.buffer``).
        stdout: Binary output stream (defaults to ``sys.stdout.buffer``).
        framer: Framer to use (defaults to a fresh LineFramer).

    Yields:
        ``(read_stream, write_stream)`` for ``Server.run``.
    """
    raw_stdin = stdin if stdin is not None else sys.stdin.buffer
    out = anyio.wrap_file(stdout if stdout is not None else sys.stdout.buffer)
    framer = framer or LineFramer()

    read_stream_writer: MemoryObjectSendStream[SessionMessage | Exception]
    read_stream: MemoryObjectReceiveStream[SessionMessage | Exception]
    write_stream: MemoryObjectSendStream[SessionMessage]
    write_stream_reader: MemoryObjectReceiveStream[SessionMessage]

    read_stream_writer, read_stream = anyio.create_memory_object_stream(0)
    write_stream, write_stream_reader = anyio.create_memory_object_stream(0)
    write_lock = anyio.Lock()
    writer_done = anyio.Event()

    async def write_line(payload: str) -> None:
        async with write_lock:
            await out.write(payload.encode("utf-8") + b"\n")
            await out.flush()

    async def write_envelope(envelope: dict[str, Any]) -> None:
        await write_line(json.dumps(envelope, separators=(",", ":")))

    async def dispatch(frame: ParsedMessage | FrameError) -> None:
        if isinstance(frame, FrameError):
            await write_envelope(frame.to_envelope())
            return
        try:
            message = types.JSONRPCMessage.model_validate_json(frame.raw)
        except ValidationError as e:
            logger.warning("Rejected non JSON-RPC message: %s", e.error_count())
            await write_envelope(
                invalid_request_envelope(frame, e, framer.excerpt_limit)
            )
            return
        await read_stream_writer.send(SessionMessage(message))

    async def handle(frames: list[ParsedMessage | FrameError]) -> None:
        for frame in frames:
            try:
                await dispatch(frame)
            except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                raise
            except Exception as e:
                logger.exception("Error processing input")
                await write_envelope(internal_error_envelope(str(e)))

    async def stdin_reader() -> None:
        try:
            async with read_stream_writer:
                while True:
                    chunk = await anyio.to_thread.run_sync(
                        raw_stdin.read1, READ_SIZE, abandon_on_cancel=True
                    )
                    if not chunk:
                        break
                    await handle(framer.feed(chunk))
                await handle(framer.flush())
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            await anyio.lowlevel.checkpoint()
        logger.info("Input stream closed")

    async def stdout_writer() -> None:
        try:
            async with write_stream_reader:
                async for session_message in write_stream_reader:
                    payload = session_message.message.model_dump_json(
                        by_alias=True, exclude_none=True
                    )
                    await write_line(payload)
        except anyio.ClosedResourceError:
            await anyio.lowlevel.checkpoint()
        finally:
            writer_done.set()

    async with anyio.create_task_group() as tg:
        tg.start_soon(stdin_reader)
        tg.start_soon(stdout_writer)
        try:
            yield read_stream, write_stream
        finally:
            await write_stream.aclose()
            await writer_done.wait()
            tg.cancel_scope.cancel()
