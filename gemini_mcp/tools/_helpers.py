"""Shared helper functions for Gemini MCP tools.

Prompt sanitization and request validation, kept apart from the tool
so the server's error mapping and the tests can use them directly.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from gemini_core.errors import QueryValidationError

MAX_PROMPT_LENGTH = 10000

# NUL and the rest of C0 except tab/LF/CR, plus DEL and C1.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def sanitize_prompt(prompt: str) -> str:
    """Strip null bytes and control characters, then trim.

    Args:
        prompt: Raw prompt text from the client.

    Returns:
        Prompt safe to pass as a single argv element.
    """
    return _CONTROL_CHARS.sub("", prompt).strip()


class GeminiQueryRequest(BaseModel):
    """Arguments of the gemini_query tool."""

    prompt: str = Field(min_length=1)
    model: str | None = None


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "arguments"
        parts.append(f"{location}: {item['msg']}")
    return ", ".join(parts)


def validate_query(
    arguments: dict[str, Any] | None, max_length: int = MAX_PROMPT_LENGTH
) -> GeminiQueryRequest:
    """Validate and sanitize gemini_query arguments.

    Args:
        arguments: Raw tool arguments from the CallTool request.
        max_length: Maximum prompt length before sanitization.

    Returns:
        Request with the prompt already sanitized and a blank model
        collapsed to None.

    Raises:
        QueryValidationError: If the prompt is missing, too long, or empty
            once control characters and whitespace are removed.
    """
    try:
        request = GeminiQueryRequest.model_validate(arguments or {})
    except ValidationError as e:
        raise QueryValidationError(_describe(e)) from e

    if len(request.prompt) > max_length:
        raise QueryValidationError(
            f"prompt: Prompt is too long (max {max_length} characters)"
        )

    prompt = sanitize_prompt(request.prompt)
    if not prompt:
        raise QueryValidationError("prompt: Prompt cannot be empty")

    model = request.model.strip() if request.model else None
    return GeminiQueryRequest(prompt=prompt, model=model or None)
