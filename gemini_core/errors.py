"""Exception types raised at the tool boundary."""

from __future__ import annotations

from gemini_core.types import ExecutionOutcome


class GeminiMcpError(Exception):
    """Base class for bridge errors."""


class QueryValidationError(GeminiMcpError):
    """A tool request was missing, empty or too long.

    Raised before any subprocess is started.
    """


class ExecutionError(GeminiMcpError):
    """An invocation resolved to a failure outcome.

    Spawn failures, non-zero exits, empty responses and timeouts all land
    here; ``outcome.kind`` tells them apart.
    """

    def __init__(self, outcome: ExecutionOutcome) -> None:
        self.outcome = outcome
        super().__init__(outcome.error or "Unknown error")
