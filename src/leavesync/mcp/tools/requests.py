"""MCP tool handlers for leave and duty requests.

Tools:

- ``leave_list`` / ``duty_list`` -- the active user's requests, everyone's
  (managers and admins), or those on a given day / in a given month.
- ``leave_submit`` / ``duty_submit`` -- file a request as the active user.
- ``leave_delete`` / ``duty_delete`` -- withdraw a request.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import mcp.types as types

from ...errors import PermissionDeniedError
from ...session import SchedulingSession
from ...sync import DutyRequest, LeaveRequest, LeaveType
from .errors import text_result
from .registry import ToolSpec

_UNSAVED_HINT = "Call sync_save to share the change."

_SCOPE_SCHEMA = {
    "type": "string",
    "enum": ["mine", "all"],
    "default": "mine",
    "description": "'all' requires a manager or admin",
}


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


REQUEST_TOOLS: list[types.Tool] = [
    types.Tool(
        name="leave_list",
        description=(
            "List leave requests. With 'date' (YYYY-MM-DD) lists everyone "
            "on leave that day; otherwise lists by scope."
        ),
        annotations=types.ToolAnnotations(readOnlyHint=True, openWorldHint=False),
        inputSchema={
            "type": "object",
            "properties": {
                "scope": _SCOPE_SCHEMA,
                "date": {"type": "string", "format": "date"},
            },
            "required": [],
        },
    ),
    types.Tool(
        name="leave_submit",
        description="Request leave for the active user (start and end inclusive).",
        annotations=types.ToolAnnotations(readOnlyHint=False, destructiveHint=False),
        inputSchema={
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "enum": [t.value for t in LeaveType],
                    "default": LeaveType.ANNUAL.value,
                },
                "start": {"type": "string", "format": "date"},
                "end": {"type": "string", "format": "date"},
                "reason": {"type": "string"},
            },
            "required": ["start", "end", "reason"],
        },
    ),
    types.Tool(
        name="leave_delete",
        description="Delete a leave request (own requests, or any as manager/admin).",
        annotations=types.ToolAnnotations(readOnlyHint=False, destructiveHint=True),
        inputSchema={
            "type": "object",
            "properties": {"leave_id": {"type": "integer"}},
            "required": ["leave_id"],
        },
    ),
    types.Tool(
        name="duty_list",
        description=(
            "List extra-duty requests. With 'year' and 'month' lists that "
            "month's duties for everyone; otherwise lists by scope."
        ),
        annotations=types.ToolAnnotations(readOnlyHint=True, openWorldHint=False),
        inputSchema={
            "type": "object",
            "properties": {
                "scope": _SCOPE_SCHEMA,
                "year": {"type": "integer"},
                "month": {"type": "integer", "minimum": 1, "maximum": 12},
            },
            "required": [],
        },
    ),
    types.Tool(
        name="duty_submit",
        description="Request an extra duty day for the active user.",
        annotations=types.ToolAnnotations(readOnlyHint=False, destructiveHint=False),
        inputSchema={
            "type": "object",
            "properties": {
                "date": {"type": "string", "format": "date"},
                "reason": {"type": "string"},
            },
            "required": ["date", "reason"],
        },
    ),
    types.Tool(
        name="duty_delete",
        description="Delete a duty request (own requests, or any as manager/admin).",
        annotations=types.ToolAnnotations(readOnlyHint=False, destructiveHint=True),
        inputSchema={
            "type": "object",
            "properties": {"duty_id": {"type": "integer"}},
            "required": ["duty_id"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _format_leave(session: SchedulingSession, leave: LeaveRequest) -> str:
    return (
        f"#{leave.id} {session.user_name(leave.user_id)}: {leave.type.value} "
        f"{leave.start} to {leave.end} - {leave.reason}"
    )


def _format_duty(session: SchedulingSession, duty: DutyRequest) -> str:
    flag = " (public holiday)" if session.is_public_holiday(duty.date) else ""
    return f"#{duty.id} {session.user_name(duty.user_id)}: {duty.date}{flag} - {duty.reason}"


def _render(lines: list[str], empty: str) -> types.CallToolResult:
    return text_result("\n".join(lines) if lines else empty)


def _check_scope(session: SchedulingSession, scope: str) -> None:
    if scope not in ("mine", "all"):
        raise ValueError(f"scope must be 'mine' or 'all', got {scope!r}")
    if scope == "all" and not session.can_view_all_requests:
        raise PermissionDeniedError("Only managers and admins can list all requests.")


def _require_int(args: dict[str, Any], key: str) -> int:
    value = args.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} is required and must be an integer")
    return value


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_leave_list(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    if args.get("date"):
        day = date.fromisoformat(args["date"])
        leaves = session.leaves_on(day)
        return _render(
            [_format_leave(session, lv) for lv in leaves], f"Nobody is on leave on {day}."
        )
    scope = args.get("scope", "mine")
    _check_scope(session, scope)
    leaves = session.document.leaves if scope == "all" else session.my_leaves()
    return _render(
        [_format_leave(session, lv) for lv in sorted(leaves, key=lambda lv: lv.start)],
        "No leave requests.",
    )


async def _handle_leave_submit(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    leave = session.submit_leave(
        args.get("type", LeaveType.ANNUAL),
        args.get("start"),
        args.get("end"),
        args.get("reason", ""),
    )
    return text_result(
        f"Leave requested: {_format_leave(session, leave)}. {_UNSAVED_HINT}",
        leave.model_dump(mode="json", by_alias=True),
    )


async def _handle_leave_delete(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    leave_id = _require_int(args, "leave_id")
    session.delete_leave(leave_id)
    return text_result(f"Deleted leave #{leave_id}. {_UNSAVED_HINT}")


async def _handle_duty_list(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    year, month = args.get("year"), args.get("month")
    if year is not None and month is not None:
        duties = session.duties_in_month(int(year), int(month))
        empty = f"No duties in {int(year):04d}-{int(month):02d}."
    else:
        scope = args.get("scope", "mine")
        _check_scope(session, scope)
        duties = session.document.duties if scope == "all" else session.my_duties()
        empty = "No duty requests."
    return _render(
        [_format_duty(session, d) for d in sorted(duties, key=lambda d: d.date)], empty
    )


async def _handle_duty_submit(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    duty = session.submit_duty(args.get("date"), args.get("reason", ""))
    return text_result(
        f"Duty requested: {_format_duty(session, duty)}. {_UNSAVED_HINT}",
        duty.model_dump(mode="json", by_alias=True),
    )


async def _handle_duty_delete(
    session: SchedulingSession, args: dict[str, Any]
) -> types.CallToolResult:
    duty_id = _require_int(args, "duty_id")
    session.delete_duty(duty_id)
    return text_result(f"Deleted duty #{duty_id}. {_UNSAVED_HINT}")


# ToolSpec list for registry-based dispatch
REQUEST_SPECS: list[ToolSpec] = [
    ToolSpec(tool=REQUEST_TOOLS[0], permissions=frozenset({"DOC_VIEW"}), handler=_handle_leave_list),
    ToolSpec(tool=REQUEST_TOOLS[1], permissions=frozenset({"DOC_EDIT"}), handler=_handle_leave_submit),
    ToolSpec(tool=REQUEST_TOOLS[2], permissions=frozenset({"DOC_EDIT"}), handler=_handle_leave_delete),
    ToolSpec(tool=REQUEST_TOOLS[3], permissions=frozenset({"DOC_VIEW"}), handler=_handle_duty_list),
    ToolSpec(tool=REQUEST_TOOLS[4], permissions=frozenset({"DOC_EDIT"}), handler=_handle_duty_submit),
    ToolSpec(tool=REQUEST_TOOLS[5], permissions=frozenset({"DOC_EDIT"}), handler=_handle_duty_delete),
]
