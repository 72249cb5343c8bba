"""
Gemini core — transport-independent types for the Gemini CLI bridge.

Data model, configuration, error taxonomy and the runner protocol shared
by the MCP server and its tests.
"""

__version__ = "1.0.0"

from gemini_core.config import GeminiConfig
from gemini_core.errors import ExecutionError, GeminiMcpError, QueryValidationError
from gemini_core.runner import CommandRunner
from gemini_core.types import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    PARSE_ERROR,
    TIMEOUT_EXIT_CODE,
    # Execution
    CommandInvocation,
    ExecutionOutcome,
    OutcomeKind,
    # Framing
    FrameError,
    ParsedMessage,
)

__all__ = [
    # Config
    "GeminiConfig",
    # Errors
    "GeminiMcpError",
    "QueryValidationError",
    "ExecutionError",
    # Protocols
    "CommandRunner",
    # Constants
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "INTERNAL_ERROR",
    "TIMEOUT_EXIT_CODE",
    # Types
    "ParsedMessage",
    "FrameError",
    "OutcomeKind",
    "CommandInvocation",
    "ExecutionOutcome",
]
