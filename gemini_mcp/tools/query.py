"""Gemini query tool implementation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from gemini_core.errors import ExecutionError

from ._helpers import validate_query

if TYPE_CHECKING:
    from gemini_core.config import GeminiConfig
    from gemini_core.runner import CommandRunner

logger = logging.getLogger(__name__)

TOOL_NAME = "gemini_query"


def build_args(prompt: str, model: str | None) -> list[str]:
    """Argument vector for the gemini CLI: model flag pair, prompt flag pair.

    The model pair is left out when no model is given.
    """
    if model is None:
        return ["-p", prompt]
    return ["-m", model, "-p", prompt]


async def execute(
    arguments: dict[str, Any] | None,
    runner: CommandRunner,
    config: GeminiConfig,
) -> str:
    """Run a prompt through the gemini CLI.

    Args:
        arguments: Raw tool arguments (``prompt`` and optional ``model``).
        runner: Supervisor or simulated runner to delegate to.
        config: Bridge configuration (command, default model, timeout).

    Returns:
        The CLI's trimmed output.

    Raises:
        QueryValidationError: Before any subprocess is started, if the
            arguments are invalid.
        ExecutionError: If the invocation resolved to a failure.
    """
    request = validate_query(arguments, config.max_prompt_length)
    model = request.model
    # Simulated replies only name a model the caller asked for.
    if model is None and not config.test_mode:
        model = config.default_model

    model_info = f" (model: {request.model})" if request.model else ""
    logger.info(
        "Executing query%s: %s%s",
        model_info,
        request.prompt[:100],
        "..." if len(request.prompt) > 100 else "",
    )

    outcome = await runner.run(
        config.command, build_args(request.prompt, model), config.timeout
    )

    if not outcome.success:
        logger.warning(
            "Query failed (%s, exit code %s): %s",
            outcome.kind.value,
            outcome.exit_code,
            outcome.error,
        )
        raise ExecutionError(outcome)

    return outcome.output
