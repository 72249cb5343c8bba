"""Command runner protocol.

Implemented by: gemini_mcp.supervisor (real subprocesses) and
gemini_mcp.simulate (test mode).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from gemini_core.types import ExecutionOutcome


@runtime_checkable
class CommandRunner(Protocol):
    """Runs one external command and classifies how it ended."""

    async def run(
        self,
        command: str,
        args: list[str],
        timeout: float | None = None,
    ) -> ExecutionOutcome:
        """Run a command to completion.

        Args:
            command: Executable name, looked up on PATH.
            args: Argument vector, passed as discrete elements.
            timeout: Seconds before the process is killed. Defaults to the
                runner's configured bound.

        Returns:
            Exactly one ExecutionOutcome. Never raises for process failures.
        """
        ...

    async def shutdown(self) -> None:
        """Terminate any invocations still in flight."""
        ...
