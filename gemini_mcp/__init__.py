"""Gemini MCP Server - local Gemini CLI queries via Model Context Protocol."""

__version__ = "1.0.0"

from gemini_mcp.framing import LineFramer
from gemini_mcp.simulate import SimulatedRunner
from gemini_mcp.supervisor import SubprocessSupervisor

__all__ = ["LineFramer", "SimulatedRunner", "SubprocessSupervisor"]
