"""Subprocess supervisor for external command invocations.

Each call spawns one process and races three event sources against
each other: the process exiting (after both output pipes drain), a spawn
or pipe error, and the timeout timer. Whichever fires first decides the
outcome; everything after that is ignored.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from gemini_core.types import (
    TIMEOUT_EXIT_CODE,
    CommandInvocation,
    ExecutionOutcome,
    OutcomeKind,
)

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g}"


class _InvocationState:
    """Per-call state machine: PENDING until the first resolve() wins.

    All handlers run on the event loop thread, so checking and setting the
    future is atomic with respect to the other handlers.
    """

    def __init__(
        self, invocation: CommandInvocation, loop: asyncio.AbstractEventLoop
    ) -> None:
        self.invocation = invocation
        self.process: asyncio.subprocess.Process | None = None
        self._future: asyncio.Future[ExecutionOutcome] = loop.create_future()
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._timer = loop.call_later(invocation.timeout, self.on_timeout)

    @property
    def resolved(self) -> bool:
        return self._future.done()

    async def wait(self) -> ExecutionOutcome:
        return await asyncio.shield(self._future)

    def resolve(self, outcome: ExecutionOutcome) -> bool:
        """Record the outcome if none has been recorded yet."""
        if self._future.done():
            logger.debug(
                "Ignoring late %s for %s", outcome.kind.value, self.invocation.command
            )
            return False
        self._timer.cancel()
        self._future.set_result(outcome)
        # Output is final now; drop the buffers.
        self._stdout.clear()
        self._stderr.clear()
        return True

    def disarm(self) -> None:
        self._timer.cancel()

    def attach(self, process: asyncio.subprocess.Process) -> None:
        self.process = process
        if self.resolved:
            # Timer fired while the spawn was still in progress.
            self.kill()

    def kill(self) -> None:
        process = self.process
        if process is None or process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            process.kill()

    # -- event handlers --------------------------------------------------

    def on_stdout(self, data: bytes) -> None:
        if not self.resolved:
            self._stdout.extend(data)

    def on_stderr(self, data: bytes) -> None:
        if not self.resolved:
            self._stderr.extend(data)

    def on_timeout(self) -> None:
        if self.resolved:
            return
        timeout = _format_seconds(self.invocation.timeout)
        logger.warning(
            "%s timed out after %s seconds, killing", self.invocation.command, timeout
        )
        self.kill()
        self.resolve(
            ExecutionOutcome.failed(
                OutcomeKind.TIMED_OUT,
                f"Command timed out after {timeout} seconds",
                TIMEOUT_EXIT_CODE,
            )
        )

    def on_error(self, exc: BaseException) -> None:
        if self.resolved:
            return
        command = self.invocation.command
        if isinstance(exc, FileNotFoundError):
            message = (
                f"{command} not found. Please ensure it is installed and in your PATH."
            )
        else:
            message = f"Command execution error: {exc}"
        logger.error("Failed to execute %s: %s", command, exc)
        self.resolve(ExecutionOutcome.failed(OutcomeKind.FAILED_SPAWN, message, 1))

    def on_pipe_error(self, exc: BaseException) -> None:
        """A pipe failed after the spawn; the process is killed."""
        self.kill()
        if self.resolved:
            return
        logger.error("Lost output of %s: %s", self.invocation.command, exc)
        self.resolve(
            ExecutionOutcome.failed(
                OutcomeKind.FAILED_EXIT, f"Command execution error: {exc}", 1
            )
        )

    def on_exit(self, returncode: int | None) -> None:
        if self.resolved:
            return
        stdout = self._stdout.decode("utf-8", errors="replace").strip()
        stderr = self._stderr.decode("utf-8", errors="replace").strip()
        command = self.invocation.command

        if returncode == 0:
            if stdout:
                self.resolve(ExecutionOutcome.succeeded(stdout))
            else:
                self.resolve(
                    ExecutionOutcome.failed(
                        OutcomeKind.FAILED_EXIT,
                        f"{command} returned empty response",
                        0,
                    )
                )
            return

        if returncode is None:
            fallback = "Command failed with unknown exit code"
            exit_code = 1
        elif returncode < 0:
            fallback = f"Command terminated by signal {-returncode}"
            exit_code = 1
        else:
            fallback = f"Command failed with exit code {returncode}"
            exit_code = returncode
        logger.info("%s exited with code %s", command, returncode)
        self.resolve(
            ExecutionOutcome.failed(
                OutcomeKind.FAILED_EXIT, stderr or fallback, exit_code, output=stdout
            )
        )


class SubprocessSupervisor:
    """Runs external commands with a hard timeout.

    Implements the CommandRunner protocol. Invocations share nothing but
    the ``_active`` set used for shutdown.
    """

    def __init__(self, timeout: float = 300.0, kill_grace: float = 5.0) -> None:
        """Initialize the supervisor.

        Args:
            timeout: Default seconds before an invocation is killed.
            kill_grace: Seconds to wait for a killed process to be reaped
                before abandoning its pipes.
        """
        self.timeout = timeout
        self.kill_grace = kill_grace
        self._active: set[_InvocationState] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def run(
        self,
        command: str,
        args: list[str],
        timeout: float | None = None,
    ) -> ExecutionOutcome:
        """Run ``command`` with ``args`` and classify how it ended.

        Args:
            command: Executable name, looked up on PATH.
            args: Argument vector. Never passed through a shell.
            timeout: Override for the default timeout, in seconds.

        Returns:
            Exactly one ExecutionOutcome.
        """
        invocation = CommandInvocation.create(
            command, args, self.timeout if timeout is None else timeout
        )
        loop = asyncio.get_running_loop()
        state = _InvocationState(invocation, loop)
        self._active.add(state)
        watcher: asyncio.Task[None] | None = None

        try:
            try:
                process = await asyncio.create_subprocess_exec(
                    *invocation.argv,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except (OSError, ValueError) as e:
                state.on_error(e)
            else:
                state.attach(process)
                watcher = asyncio.create_task(self._watch(state, process))
            return await state.wait()
        finally:
            state.disarm()
            self._active.discard(state)
            if watcher is not None:
                await self._reap(state, watcher)

    async def shutdown(self) -> None:
        """Kill every invocation still in flight."""
        for state in list(self._active):
            logger.info("Killing in-flight %s", state.invocation.command)
            state.kill()

    async def _watch(
        self, state: _InvocationState, process: asyncio.subprocess.Process
    ) -> None:
        pumps = [
            asyncio.create_task(self._pump(process.stdout, state.on_stdout)),
            asyncio.create_task(self._pump(process.stderr, state.on_stderr)),
        ]
        try:
            await asyncio.gather(*pumps)
            returncode = await process.wait()
        except Exception as e:
            state.on_pipe_error(e)
            for pump in pumps:
                pump.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)
            await process.wait()
            return
        state.on_exit(returncode)

    @staticmethod
    async def _pump(
        stream: asyncio.StreamReader | None, sink: Callable[[bytes], None]
    ) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            sink(chunk)

    async def _reap(self, state: _InvocationState, watcher: asyncio.Task[None]) -> None:
        """Make sure no process or reader outlives its invocation."""
        if watcher.done():
            return
        state.kill()
        done, _ = await asyncio.wait({watcher}, timeout=self.kill_grace)
        if not done:
            logger.warning(
                "%s did not exit within %ss of kill, abandoning pipes",
                state.invocation.command,
                _format_seconds(self.kill_grace),
            )
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
