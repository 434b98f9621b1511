"""MCP tool handlers for syncing the shared document.

Defines four tools:

- ``sync_status`` -- phase, unsaved changes, pending conflict, last save.
- ``sync_save`` -- optimistic save of local edits.
- ``sync_refresh`` -- discard local edits and reload the remote document.
- ``conflict_dismiss`` -- drop the pending conflict and keep editing.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...session import SchedulingSession
from ...sync import (
    SaveOutcome,
    format_load_result,
    format_save_result,
    format_status,
    status_to_json,
)
from .errors import build_error_response, text_result
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="sync_status",
        description=(
            "Show sync state of the shared schedule: phase, whether there "
            "are unsaved changes, any pending conflict and the last save result."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="sync_save",
        description=(
            "Save local edits to the shared store. Refuses to overwrite if "
            "another client saved since the last load (conflict)."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="sync_refresh",
        description=(
            "Reload the latest shared schedule, discarding unsaved local edits. "
            "Resolves a pending conflict."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="conflict_dismiss",
        description=(
            "Dismiss the pending conflict notice and keep local edits. "
            "Saving will keep failing until sync_refresh is called."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_status(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    client = session.client
    structured = status_to_json(client)
    user = session.current_user
    structured["active_user"] = user.name if user else None
    text = format_status(client)
    if user:
        text += f"\nActive user: {user.name} ({user.role.value})"
    return text_result(text, structured)


async def _handle_save(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_save`` tool.

    Conflicts and failures come back as error responses so the agent
    notices them; ``unchanged`` and ``busy`` are informational.
    """
    result = await session.client.save()
    structured = result.model_dump(mode="json")
    match result.outcome:
        case SaveOutcome.CONFLICT:
            return build_error_response(
                "conflict",
                result.message,
                "Call sync_refresh to load the latest data (local edits are "
                "discarded), re-apply your changes, then sync_save again.",
            )
        case SaveOutcome.FAILED:
            return build_error_response(
                "store_error",
                result.message,
                "Local edits are kept. Retry sync_save later.",
            )
        case _:
            return text_result(format_save_result(result), structured)


async def _handle_refresh(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    result = await session.client.refresh()
    if not result.superseded:
        session.restore_user()
    return text_result(
        format_load_result(result), result.model_dump(mode="json")
    )


async def _handle_dismiss(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    conflict = session.client.conflict
    if conflict is None:
        return text_result("No conflict pending.")
    conflict.dismiss()
    logger.info("Conflict dismissed; local edits kept")
    return text_result(
        "Conflict dismissed. Local edits are kept but cannot be saved "
        "until sync_refresh loads the latest data."
    )


# ToolSpec list for registry-based dispatch
SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=SYNC_TOOLS[0], permissions=frozenset(), handler=_handle_status),
    ToolSpec(
        tool=SYNC_TOOLS[1], permissions=frozenset({"SYNC"}), handler=_handle_save
    ),
    ToolSpec(
        tool=SYNC_TOOLS[2], permissions=frozenset({"SYNC"}), handler=_handle_refresh
    ),
    ToolSpec(
        tool=SYNC_TOOLS[3], permissions=frozenset({"SYNC"}), handler=_handle_dismiss
    ),
]
