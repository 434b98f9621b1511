"""Error response builders and shared utilities for MCP tool handlers.

Structured error responses carry a corrective action so that AI agents
can recover without human intervention.
"""

import json
from typing import Any

import mcp.types as types


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied, conflict,
            validation_error, store_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("conflict", "Remote changed", "Call sync_refresh, then retry.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def text_result(
    text: str, structured: dict[str, Any] | None = None
) -> types.CallToolResult:
    """Successful result with text and optional structured content."""
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


def json_result(data: Any) -> types.CallToolResult:
    """Successful result carrying *data* as pretty-printed JSON text."""
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=json.dumps(data, indent=2, ensure_ascii=False)
            )
        ],
    )
