"""MCP tool handlers for users, the active user and the audit log.

Tools:

- ``user_list`` -- all users with role, grade and password-gate flag.
- ``user_select`` -- make a user active on this device.
- ``profile_update`` -- rename the active user / change their password.
- ``user_add`` / ``user_edit`` / ``user_remove`` -- admin user management.
- ``audit_log`` -- newest-first activity log (admins).

Edits only change the in-memory document; ``sync_save`` writes them.
"""

from __future__ import annotations

from typing import Any

import mcp.types as types

from ...session import SchedulingSession
from ...sync import Grade, Role
from .errors import json_result, text_result
from .registry import ToolSpec

_ROLES = [r.value for r in Role]
_GRADES = [g.value for g in Grade]

_UNSAVED_HINT = "Call sync_save to share the change."


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


USER_TOOLS: list[types.Tool] = [
    types.Tool(
        name="user_list",
        description="List all users with id, name, role, grade and whether a password is set.",
        annotations=types.ToolAnnotations(readOnlyHint=True, openWorldHint=False),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="user_select",
        description=(
            "Act as the given user on this device. Users with a password "
            "must supply it."
        ),
        annotations=types.ToolAnnotations(readOnlyHint=False, idempotentHint=True),
        inputSchema={
            "type": "object",
            "properties": {
                "user_id": {"type": "integer", "description": "User id from user_list"},
                "password": {"type": "string", "description": "Password, if the user has one"},
            },
            "required": ["user_id"],
        },
    ),
    types.Tool(
        name="profile_update",
        description=(
            "Rename the active user and optionally change their password "
            "(current_password, new_password and confirm_password together)."
        ),
        annotations=types.ToolAnnotations(readOnlyHint=False, idempotentHint=True),
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Display name (min 2 chars)"},
                "current_password": {"type": "string"},
                "new_password": {"type": "string", "description": "Min 4 chars"},
                "confirm_password": {"type": "string"},
            },
            "required": ["name"],
        },
    ),
    types.Tool(
        name="user_add",
        description="Add a user (admin only). Id and initials are assigned automatically.",
        annotations=types.ToolAnnotations(readOnlyHint=False, destructiveHint=False),
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "role": {"type": "string", "enum": _ROLES, "default": "staff"},
                "grade": {"type": "string", "enum": _GRADES, "default": "Operator"},
            },
            "required": ["name"],
        },
    ),
    types.Tool(
        name="user_edit",
        description="Change a user's name, role and grade (admin only).",
        annotations=types.ToolAnnotations(readOnlyHint=False, idempotentHint=True),
        inputSchema={
            "type": "object",
            "properties": {
                "user_id": {"type": "integer"},
                "name": {"type": "string"},
                "role": {"type": "string", "enum": _ROLES},
                "grade": {"type": "string", "enum": _GRADES},
            },
            "required": ["user_id", "name", "role", "grade"],
        },
    ),
    types.Tool(
        name="user_remove",
        description=(
            "Remove a user and all of their leave and duty requests (admin "
            "only). The active user cannot remove themselves."
        ),
        annotations=types.ToolAnnotations(readOnlyHint=False, destructiveHint=True),
        inputSchema={
            "type": "object",
            "properties": {"user_id": {"type": "integer"}},
            "required": ["user_id"],
        },
    ),
    types.Tool(
        name="audit_log",
        description="Show the newest audit log entries (admin only).",
        annotations=types.ToolAnnotations(readOnlyHint=True, openWorldHint=False),
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {"type": "integer", "default": 20, "minimum": 1, "maximum": 500},
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _require_int(args: dict[str, Any], key: str) -> int:
    value = args.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} is required and must be an integer")
    return value


async def _handle_list(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    active = session.current_user
    rows = [
        {
            **user.model_dump(mode="json"),
            "has_password": session.requires_password(user.id),
            "active": active is not None and user.id == active.id,
        }
        for user in session.document.users
    ]
    return json_result(rows)


async def _handle_select(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    user = session.select_user(_require_int(args, "user_id"), args.get("password"))
    return text_result(
        f"Active user: {user.name} ({user.role.value}, {user.grade.value})"
    )


async def _handle_profile(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    user = session.update_profile(
        args.get("name", ""),
        current_password=args.get("current_password", ""),
        new_password=args.get("new_password", ""),
        confirm_password=args.get("confirm_password", ""),
    )
    return text_result(f"Profile updated for {user.name}. {_UNSAVED_HINT}")


async def _handle_add(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    user = session.add_user(
        args.get("name", ""),
        role=args.get("role", Role.STAFF),
        grade=args.get("grade", Grade.OPERATOR),
    )
    return text_result(
        f"Added user #{user.id} {user.name}. {_UNSAVED_HINT}",
        user.model_dump(mode="json"),
    )


async def _handle_edit(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    user = session.edit_user(
        _require_int(args, "user_id"),
        args.get("name", ""),
        args.get("role"),
        args.get("grade"),
    )
    return text_result(
        f"Updated user #{user.id} {user.name}. {_UNSAVED_HINT}",
        user.model_dump(mode="json"),
    )


async def _handle_remove(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    user_id = _require_int(args, "user_id")
    name = session.user_name(user_id)
    session.remove_user(user_id)
    return text_result(
        f"Removed {name} with their leave and duty requests. {_UNSAVED_HINT}"
    )


async def _handle_audit(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    limit = args.get("limit", 20)
    entries = session.audit_log(limit=limit)
    if not entries:
        return text_result("Audit log is empty.")
    lines = [
        f"{e.timestamp}  {e.user_name}: {e.action} ({e.details})" for e in entries
    ]
    return text_result("\n".join(lines))


# ToolSpec list for registry-based dispatch
USER_SPECS: list[ToolSpec] = [
    ToolSpec(tool=USER_TOOLS[0], permissions=frozenset({"DOC_VIEW"}), handler=_handle_list),
    ToolSpec(tool=USER_TOOLS[1], permissions=frozenset({"DOC_VIEW"}), handler=_handle_select),
    ToolSpec(tool=USER_TOOLS[2], permissions=frozenset({"DOC_EDIT"}), handler=_handle_profile),
    ToolSpec(tool=USER_TOOLS[3], permissions=frozenset({"USER_ADMIN"}), handler=_handle_add),
    ToolSpec(tool=USER_TOOLS[4], permissions=frozenset({"USER_ADMIN"}), handler=_handle_edit),
    ToolSpec(tool=USER_TOOLS[5], permissions=frozenset({"USER_ADMIN"}), handler=_handle_remove),
    ToolSpec(tool=USER_TOOLS[6], permissions=frozenset({"AUDIT_VIEW"}), handler=_handle_audit),
]
