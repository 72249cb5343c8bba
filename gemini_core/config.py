"""Gemini bridge configuration.

Settings the MCP server needs at runtime: which command to run, the
default model, the invocation timeout and whether to simulate replies.

Configuration can be loaded from:
- Environment variables (GEMINI_MCP_*, GEMINI_TEST_MODE)
- Programmatic construction
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_COMMAND = "gemini"
DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT = 300.0
TEST_MODE_TIMEOUT = 10.0

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class GeminiConfig:
    """Top-level bridge configuration.

    Load from the environment:
        config = GeminiConfig.from_env()

    Or construct programmatically:
        config = GeminiConfig(timeout=30.0, test_mode=True)
    """

    command: str = DEFAULT_COMMAND
    default_model: str = DEFAULT_MODEL
    timeout: float = DEFAULT_TIMEOUT
    test_mode: bool = False
    max_prompt_length: int = 10000
    excerpt_limit: int = 100
    simulated_latency: tuple[float, float] = (0.5, 1.5)
    """Bounds in seconds for the random delay of simulated replies."""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GeminiConfig:
        """Build a config from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``).

        Returns:
            GeminiConfig with environment overrides applied.

        Raises:
            ValueError: If GEMINI_MCP_TIMEOUT is not a positive number.
        """
        env = os.environ if environ is None else environ

        test_mode = env.get("GEMINI_TEST_MODE", "").strip().lower() in _TRUTHY

        raw_timeout = env.get("GEMINI_MCP_TIMEOUT", "").strip()
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError as e:
                raise ValueError(
                    f"GEMINI_MCP_TIMEOUT must be a number, got {raw_timeout!r}"
                ) from e
            if timeout <= 0:
                raise ValueError(f"GEMINI_MCP_TIMEOUT must be positive, got {timeout}")
        else:
            timeout = TEST_MODE_TIMEOUT if test_mode else DEFAULT_TIMEOUT

        return cls(
            command=env.get("GEMINI_MCP_COMMAND") or DEFAULT_COMMAND,
            default_model=env.get("GEMINI_MCP_DEFAULT_MODEL") or DEFAULT_MODEL,
            timeout=timeout,
            test_mode=test_mode,
            log_level=(env.get("GEMINI_MCP_LOG_LEVEL") or "INFO").upper(),
        )
