"""Human-readable and JSON views of sync state.

- ``format_status`` -- multi-line status for tool output and logs.
- ``status_to_json`` -- structured dict for MCP ``structuredContent``.
- ``format_save_result`` / ``format_load_result`` -- one-line notices.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .models import LoadResult, SaveOutcome, SaveResult

if TYPE_CHECKING:
    from .client import SyncClient

_SAVE_PREFIX = {
    SaveOutcome.SAVED: "Saved",
    SaveOutcome.UNCHANGED: "Nothing to save",
    SaveOutcome.CONFLICT: "Conflict",
    SaveOutcome.FAILED: "Save failed",
    SaveOutcome.BUSY: "Busy",
}


def status_to_json(client: SyncClient) -> dict[str, Any]:
    """Snapshot of the client's sync state."""
    data: dict[str, Any] = {
        "phase": client.phase.value,
        "dirty": client.dirty,
        "loading": client.loading,
        "saving": client.saving,
        "conflict": client.conflict.message if client.conflict else None,
        "last_save": client.last_result.model_dump(mode="json")
        if client.last_result
        else None,
    }
    if client.loaded:
        doc = client.document
        data["counts"] = {
            "users": len(doc.users),
            "leaves": len(doc.leaves),
            "duties": len(doc.duties),
            "audit_log": len(doc.audit_log),
        }
    return data


def format_status(client: SyncClient) -> str:
    """Format the client's sync state as text.

    Sections are only included when they carry information.
    """
    status = status_to_json(client)
    lines = [
        f"Sync phase: {status['phase']}",
        f"Unsaved changes: {'yes' if status['dirty'] else 'no'}",
    ]
    counts = status.get("counts")
    if counts:
        lines.append(
            f"Document: {counts['users']} users, {counts['leaves']} leaves, "
            f"{counts['duties']} duties, {counts['audit_log']} log entries"
        )
    if status["conflict"]:
        lines.append("")
        lines.append(f"CONFLICT: {status['conflict']}")
        lines.append("Resolve with sync_refresh (discard local edits) or conflict_dismiss.")
    if client.last_result:
        lines.append(f"Last save: {format_save_result(client.last_result)}")
    return "\n".join(lines)


def format_save_result(result: SaveResult) -> str:
    return f"{_SAVE_PREFIX[result.outcome]}: {result.message} ({result.completed_at})"


def format_load_result(result: LoadResult) -> str:
    if result.superseded:
        return "Load superseded by a newer request."
    source = "remote document" if result.from_remote else "built-in defaults"
    parts = [f"Loaded {source}."]
    if result.error:
        parts.append(f"Remote unavailable: {result.error}.")
    if result.defaulted:
        parts.append(f"Defaulted fields: {', '.join(result.defaulted)}.")
    if result.unrecognized:
        parts.append(f"Kept {result.unrecognized} unrecognized record(s) unchanged.")
    return " ".join(parts)
