"""Shared data types for the Gemini CLI bridge."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# JSON-RPC 2.0 error codes used on the stdio channel.
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
INTERNAL_ERROR = -32603

# Exit code reported for invocations killed by the timeout timer.
TIMEOUT_EXIT_CODE = 124


# ============================================================
# Framing: one record per inbound line
# ============================================================


@dataclass(frozen=True)
class ParsedMessage:
    """A line that decoded as JSON.

    ``raw`` is the trimmed line exactly as received, so downstream
    consumers see byte-identical content rather than a re-serialization
    of ``value``.
    """

    raw: bytes
    value: Any


@dataclass(frozen=True)
class FrameError:
    """A rejected line, reported in place of a message."""

    code: int
    message: str
    details: str | None = None
    received: str | None = None

    def to_envelope(self, request_id: str | int | None = None) -> dict[str, Any]:
        """Render as a JSON-RPC error response."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        data: dict[str, Any] = {}
        if self.details is not None:
            data["details"] = self.details
        if self.received is not None:
            data["received"] = self.received
        if data:
            error["data"] = data
        return {"jsonrpc": "2.0", "id": request_id, "error": error}


# ============================================================
# Execution: one invocation, one outcome
# ============================================================


class OutcomeKind(Enum):
    """Terminal states of a supervised invocation."""

    SUCCEEDED = "succeeded"
    FAILED_EXIT = "failed_exit"
    FAILED_SPAWN = "failed_spawn"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class CommandInvocation:
    """An external command call. Immutable once created."""

    command: str
    args: tuple[str, ...] = ()
    timeout: float = 300.0
    deadline: float = field(default=0.0)

    @classmethod
    def create(
        cls, command: str, args: list[str] | tuple[str, ...], timeout: float
    ) -> CommandInvocation:
        """Build an invocation whose deadline starts now."""
        return cls(
            command=command,
            args=tuple(args),
            timeout=timeout,
            deadline=time.monotonic() + timeout,
        )

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


@dataclass(frozen=True)
class ExecutionOutcome:
    """The single classified result of an invocation."""

    kind: OutcomeKind
    output: str = ""
    error: str | None = None
    exit_code: int | None = None

    @property
    def success(self) -> bool:
        return self.kind is OutcomeKind.SUCCEEDED

    @classmethod
    def succeeded(cls, output: str) -> ExecutionOutcome:
        return cls(kind=OutcomeKind.SUCCEEDED, output=output)

    @classmethod
    def failed(
        cls, kind: OutcomeKind, error: str, exit_code: int, output: str = ""
    ) -> ExecutionOutcome:
        if kind is OutcomeKind.SUCCEEDED:
            raise ValueError("failed() requires a failure kind")
        return cls(kind=kind, output=output, error=error, exit_code=exit_code)

    def to_dict(self) -> dict[str, Any]:
        """Render the outcome surface: success, output, error?, exitCode?."""
        result: dict[str, Any] = {"success": self.success, "output": self.output}
        if self.error is not None:
            result["error"] = self.error
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        return result
