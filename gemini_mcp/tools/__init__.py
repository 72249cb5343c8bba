"""Tool implementations for the Gemini MCP server."""
