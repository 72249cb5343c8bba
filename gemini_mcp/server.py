"""MCP server setup and tool registration for Gemini CLI queries."""

from __future__ import annotations

import logging
from typing import Annotated

from mcp import types
from mcp.server.fastmcp import FastMCP
from mcp.shared.exceptions import McpError
from pydantic import Field

from gemini_core.config import DEFAULT_MODEL, GeminiConfig
from gemini_core.errors import ExecutionError, QueryValidationError
from gemini_core.runner import CommandRunner

from .framing import LineFramer
from .simulate import SimulatedRunner
from .supervisor import SubprocessSupervisor
from .tools import query
from .tools._helpers import MAX_PROMPT_LENGTH
from .transport import framed_stdio_server

logger = logging.getLogger(__name__)

SERVER_NAME = "gemini-cli-mcp"

mcp = FastMCP(SERVER_NAME)

# Global config and runner (initialized on first access)
_config: GeminiConfig | None = None
_runner: CommandRunner | None = None


def get_config() -> GeminiConfig:
    """Get or load the global configuration from the environment."""
    global _config

    if _config is None:
        _config = GeminiConfig.from_env()
    return _config


def get_runner() -> CommandRunner:
    """Get or create the global command runner.

    Returns:
        SimulatedRunner when GEMINI_TEST_MODE is on, otherwise a
        SubprocessSupervisor bound to the configured timeout.
    """
    global _runner

    if _runner is not None:
        return _runner

    config = get_config()
    if config.test_mode:
        logger.info("Test mode enabled, using simulated Gemini responses")
        _runner = SimulatedRunner(latency=config.simulated_latency)
    else:
        _runner = SubprocessSupervisor(timeout=config.timeout)
    return _runner


# Register tools
@mcp.tool()
async def gemini_query(
    prompt: Annotated[
        str,
        Field(
            description="The text prompt to send to Gemini AI",
            min_length=1,
            max_length=MAX_PROMPT_LENGTH,
        ),
    ],
    model: Annotated[
        str | None,
        Field(
            description=f"Optional Gemini model to use (defaults to {DEFAULT_MODEL})",
            examples=[DEFAULT_MODEL],
        ),
    ] = None,
) -> str:
    """Execute a query using the local Gemini CLI tool.

    Args:
        prompt: The text prompt to send to Gemini AI.
        model: Optional model override (uses the configured default if not specified).

    Returns:
        The Gemini CLI's response text.
    """
    arguments: dict[str, str] = {"prompt": prompt}
    if model is not None:
        arguments["model"] = model
    return await query.execute(arguments, get_runner(), get_config())


# ---------------------------------------------------------------------------
# Call-tool handler with JSON-RPC error mapping
# ---------------------------------------------------------------------------
# FastMCP reports tool exceptions as isError results. Clients of this server
# expect invalid arguments and CLI failures as protocol errors with distinct
# codes, so the low-level handler is replaced.


def _error(code: int, message: str, data: object | None = None) -> McpError:
    return McpError(types.ErrorData(code=code, message=message, data=data))


async def _call_tool_handler(req: types.CallToolRequest) -> types.ServerResult:
    """Dispatch a tool call, mapping failures to JSON-RPC errors."""
    tool_name = req.params.name
    if tool_name != query.TOOL_NAME:
        raise _error(types.METHOD_NOT_FOUND, f"Unknown tool: {tool_name}")

    try:
        text = await query.execute(req.params.arguments, get_runner(), get_config())
    except QueryValidationError as e:
        raise _error(types.INVALID_PARAMS, f"Invalid parameters: {e}") from e
    except ExecutionError as e:
        raise _error(
            types.INTERNAL_ERROR,
            f"Gemini CLI error: {e}",
            data=e.outcome.to_dict(),
        ) from e
    except Exception as e:
        logger.exception("Unexpected error in %s", tool_name)
        raise _error(
            types.INTERNAL_ERROR, f"Failed to execute Gemini query: {e}"
        ) from e

    return types.ServerResult(
        types.CallToolResult(content=[types.TextContent(type="text", text=text)])
    )


mcp._mcp_server.request_handlers[types.CallToolRequest] = _call_tool_handler


async def run_stdio() -> None:
    """Serve MCP on stdin/stdout until the input stream closes."""
    config = get_config()
    framer = LineFramer(excerpt_limit=config.excerpt_limit)
    server = mcp._mcp_server

    try:
        async with framed_stdio_server(framer=framer) as (read_stream, write_stream):
            logger.info("Server started and listening on stdio")
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        await get_runner().shutdown()
