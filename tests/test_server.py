"""Tests for MCP server setup, tool registration and error mapping."""

from __future__ import annotations

import pytest
from mcp import types
from mcp.shared.exceptions import McpError

from gemini_core.config import GeminiConfig
from gemini_core.types import ExecutionOutcome, OutcomeKind
from gemini_mcp import server
from gemini_mcp.simulate import SimulatedRunner
from gemini_mcp.supervisor import SubprocessSupervisor


def _call(name: str, arguments: dict | None) -> types.CallToolRequest:
    return types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name=name, arguments=arguments),
    )


async def _dispatch(name: str, arguments: dict | None) -> types.ServerResult:
    handler = server.mcp._mcp_server.request_handlers[types.CallToolRequest]
    return await handler(_call(name, arguments))


def test_server_instantiates():
    """The FastMCP server carries the bridge's name."""
    assert server.mcp.name == "gemini-cli-mcp"


@pytest.mark.asyncio
async def test_gemini_query_registered():
    """Exactly one tool is listed, with the prompt bounds in its schema."""
    tools = await server.mcp.list_tools()

    assert [tool.name for tool in tools] == ["gemini_query"]
    schema = tools[0].inputSchema
    assert schema["required"] == ["prompt"]
    assert schema["properties"]["prompt"]["minLength"] == 1
    assert schema["properties"]["prompt"]["maxLength"] == 10000
    assert "model" in schema["properties"]


def test_call_tool_handler_installed():
    """The low-level CallTool handler is the error-mapping one."""
    handler = server.mcp._mcp_server.request_handlers[types.CallToolRequest]
    assert handler is server._call_tool_handler


# ---- dispatch ----


@pytest.mark.asyncio
async def test_successful_query(server_state):
    """A successful run returns the output as text content."""
    result = await _dispatch("gemini_query", {"prompt": "test prompt"})

    assert isinstance(result.root, types.CallToolResult)
    assert result.root.content[0].type == "text"
    assert result.root.content[0].text == "Response from Gemini"
    assert server_state.calls[0][1] == ["-m", "gemini-2.5-flash", "-p", "test prompt"]


@pytest.mark.asyncio
async def test_simulated_arithmetic(monkeypatch, test_config):
    """In test mode, What is 2+2? answers 2 + 2 = 4."""
    monkeypatch.setattr(server, "_config", test_config)
    monkeypatch.setattr(server, "_runner", SimulatedRunner(latency=(0.0, 0.0)))

    result = await _dispatch("gemini_query", {"prompt": "What is 2+2?"})
    assert result.root.content[0].text == "2 + 2 = 4"


@pytest.mark.asyncio
async def test_unknown_tool(server_state):
    """Unknown tools are a method-not-found error."""
    with pytest.raises(McpError) as exc_info:
        await _dispatch("unknown_tool", {"prompt": "hi"})

    assert exc_info.value.error.code == types.METHOD_NOT_FOUND
    assert exc_info.value.error.message == "Unknown tool: unknown_tool"
    assert server_state.calls == []


@pytest.mark.asyncio
async def test_too_long_prompt_is_invalid_params(server_state):
    """A 10,001-character prompt is rejected before any subprocess runs."""
    with pytest.raises(McpError) as exc_info:
        await _dispatch("gemini_query", {"prompt": "a" * 10001})

    assert exc_info.value.error.code == types.INVALID_PARAMS
    assert exc_info.value.error.message.startswith("Invalid parameters:")
    assert server_state.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("arguments", [{}, {"prompt": ""}, {"prompt": "   "}, None])
async def test_missing_or_empty_prompt_is_invalid_params(server_state, arguments):
    """Missing and empty prompts map to invalid params."""
    with pytest.raises(McpError) as exc_info:
        await _dispatch("gemini_query", arguments)

    assert exc_info.value.error.code == types.INVALID_PARAMS
    assert server_state.calls == []


@pytest.mark.asyncio
async def test_execution_failure_is_internal_error(server_state):
    """Failure outcomes map to internal errors with the outcome as data."""
    server_state.outcome = ExecutionOutcome.failed(
        OutcomeKind.TIMED_OUT, "Command timed out after 10 seconds", 124
    )

    with pytest.raises(McpError) as exc_info:
        await _dispatch("gemini_query", {"prompt": "hi"})

    error = exc_info.value.error
    assert error.code == types.INTERNAL_ERROR
    assert error.message == "Gemini CLI error: Command timed out after 10 seconds"
    assert error.data == {
        "success": False,
        "output": "",
        "error": "Command timed out after 10 seconds",
        "exitCode": 124,
    }


@pytest.mark.asyncio
async def test_unexpected_exception_is_internal_error(monkeypatch, test_config):
    """Anything else raised by the runner is still a protocol error."""

    class ExplodingRunner:
        async def run(self, command, args, timeout=None):
            raise RuntimeError("kaboom")

        async def shutdown(self):
            pass

    monkeypatch.setattr(server, "_config", test_config)
    monkeypatch.setattr(server, "_runner", ExplodingRunner())

    with pytest.raises(McpError) as exc_info:
        await _dispatch("gemini_query", {"prompt": "hi"})

    assert exc_info.value.error.code == types.INTERNAL_ERROR
    assert exc_info.value.error.message == "Failed to execute Gemini query: kaboom"


@pytest.mark.asyncio
async def test_tool_function_direct_call(server_state):
    """The registered tool function delegates to the same query path."""
    output = await server.gemini_query(prompt="hi", model="gemini-1.5-pro")

    assert output == "Response from Gemini"
    assert server_state.calls[0][1] == ["-m", "gemini-1.5-pro", "-p", "hi"]


# ---- globals ----


def test_get_runner_test_mode(monkeypatch):
    """Test mode selects the simulated runner."""
    monkeypatch.setattr(server, "_config", GeminiConfig(test_mode=True))
    monkeypatch.setattr(server, "_runner", None)

    assert isinstance(server.get_runner(), SimulatedRunner)


def test_get_runner_production(monkeypatch):
    """Otherwise a supervisor with the configured timeout is created once."""
    monkeypatch.setattr(server, "_config", GeminiConfig(timeout=120.0))
    monkeypatch.setattr(server, "_runner", None)

    runner = server.get_runner()
    assert isinstance(runner, SubprocessSupervisor)
    assert runner.timeout == 120.0
    assert server.get_runner() is runner


def test_get_config_loads_from_env(monkeypatch):
    """The config is read from the environment on first access."""
    monkeypatch.setattr(server, "_config", None)
    monkeypatch.setenv("GEMINI_MCP_DEFAULT_MODEL", "gemini-1.5-pro")

    assert server.get_config().default_model == "gemini-1.5-pro"
