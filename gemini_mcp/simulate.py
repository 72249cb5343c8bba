"""Simulated Gemini replies for GEMINI_TEST_MODE.

Stands in for the supervisor so the server can be exercised end to end
without the gemini CLI installed. Replies are canned and keyed on simple
substring checks of the prompt.
"""

from __future__ import annotations

import asyncio
import logging
import random

from gemini_core.types import ExecutionOutcome

logger = logging.getLogger(__name__)


def _shorten(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _flag_value(args: list[str], flag: str) -> str | None:
    try:
        return args[args.index(flag) + 1]
    except (ValueError, IndexError):
        return None


def simulated_reply(prompt: str, model: str | None = None) -> str:
    """Canned reply for ``prompt``."""
    lowered = prompt.lower()
    if "2+2" in lowered or "2 + 2" in lowered:
        return "2 + 2 = 4"
    if "hello" in lowered:
        return "Hello! How can I help you today?"
    if "test" in lowered:
        return (
            "This is a test response from the MCP server. "
            f'You asked: "{_shorten(prompt, 50)}"'
        )
    model_info = f" (using model: {model})" if model else ""
    return (
        f'I received your prompt: "{_shorten(prompt, 30)}"{model_info}. '
        "This is a simulated response since Gemini CLI is in test mode."
    )


class SimulatedRunner:
    """CommandRunner that answers from ``simulated_reply`` after a delay."""

    def __init__(self, latency: tuple[float, float] = (0.5, 1.5)) -> None:
        self.latency = latency

    async def run(
        self,
        command: str,
        args: list[str],
        timeout: float | None = None,
    ) -> ExecutionOutcome:
        prompt = _flag_value(args, "-p") or ""
        model = _flag_value(args, "-m")
        low, high = self.latency
        delay = random.uniform(low, high) if high > 0 else 0.0
        logger.debug("Simulating %s reply in %.2fs", command, delay)
        await asyncio.sleep(delay)
        return ExecutionOutcome.succeeded(simulated_reply(prompt, model))

    async def shutdown(self) -> None:
        pass
