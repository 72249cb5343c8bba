"""Shared test fixtures for gemini-cli-mcp tests.

Provides a recording runner, fake subprocesses and a test configuration.
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from gemini_core.config import GeminiConfig
from gemini_core.types import ExecutionOutcome
from gemini_mcp import server


class RecordingRunner:
    """CommandRunner that records calls and returns a preset outcome."""

    def __init__(self, outcome: ExecutionOutcome | None = None) -> None:
        self.outcome = outcome or ExecutionOutcome.succeeded("Response from Gemini")
        self.calls: list[tuple[str, list[str], float | None]] = []
        self.shutdown_called = False

    async def run(
        self, command: str, args: list[str], timeout: float | None = None
    ) -> ExecutionOutcome:
        self.calls.append((command, list(args), timeout))
        return self.outcome

    async def shutdown(self) -> None:
        self.shutdown_called = True


class FakeStream:
    """Pipe stand-in whose reads return queued chunks; b"" means EOF."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[bytes] = asyncio.Queue()

    def feed(self, data: bytes) -> None:
        self._queue.put_nowait(data)

    def close(self) -> None:
        self._queue.put_nowait(b"")

    async def read(self, n: int = -1) -> bytes:
        return await self._queue.get()


class FakeProcess:
    """asyncio.subprocess.Process stand-in driven by the test."""

    def __init__(self) -> None:
        self.stdout = FakeStream()
        self.stderr = FakeStream()
        self.returncode: int | None = None
        self._exited = asyncio.Event()
        self.kill = MagicMock(side_effect=lambda: self.finish(-9))

    def finish(self, returncode: int) -> None:
        self.returncode = returncode
        self.stdout.close()
        self.stderr.close()
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode


@pytest.fixture
def test_config() -> GeminiConfig:
    """Provide a config with short timeouts and no simulated latency."""
    return GeminiConfig(timeout=5.0, test_mode=True, simulated_latency=(0.0, 0.0))


@pytest.fixture
def recording_runner() -> RecordingRunner:
    """Provide a fresh RecordingRunner."""
    return RecordingRunner()


@pytest.fixture
def fake_process() -> FakeProcess:
    """Provide a fresh FakeProcess (requires a running event loop)."""
    return FakeProcess()


@pytest.fixture
def server_state(monkeypatch, recording_runner):
    """Install a non-test config and a recording runner into server globals."""
    monkeypatch.setattr(server, "_config", GeminiConfig(timeout=5.0))
    monkeypatch.setattr(server, "_runner", recording_runner)
    return recording_runner
