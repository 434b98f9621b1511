"""ToolSpec and ToolRegistry for capability-based tool filtering.

This module provides a centralized registry for MCP tools that supports
filtering by capability, so operators can restrict which tools are
exposed to AI agents (for example a read-only deployment).

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, required
  capabilities, and an async handler with signature
  (session, args) -> CallToolResult.
- ToolRegistry: Filters specs by allowed capabilities at construction
  time, then provides list_tools() and call_tool() dispatch with error
  translation.
- load_permissions_file: Reads a simple text file of capability names.

Capabilities:
    DOC_VIEW    read users, leaves and duties
    DOC_EDIT    submit and delete leaves and duties, switch user
    SYNC        save, refresh and dismiss conflicts
    USER_ADMIN  add, edit and remove users
    AUDIT_VIEW  read the audit log
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import mcp.types as types

from ...errors import (
    InvalidTransitionError,
    NoActiveUserError,
    PermissionDeniedError,
    StoreError,
)
from ...session import SchedulingSession

logger = logging.getLogger(__name__)

CAPABILITIES = frozenset(
    {"DOC_VIEW", "DOC_EDIT", "SYNC", "USER_ADMIN", "AUDIT_VIEW"}
)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        permissions: Capabilities required to use this tool.
            Empty frozenset means the tool is always available.
        handler: Async handler with signature (session, args) -> CallToolResult.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Callable[
        [SchedulingSession, dict], Awaitable[types.CallToolResult]
    ]


class ToolRegistry:
    """Registry of ToolSpecs with optional capability-based filtering.

    If allowed_permissions is None, all specs are included.
    Otherwise, a spec is included only if:
    - its permissions set is empty (always available), or
    - its permissions are a subset of allowed_permissions.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if (
                allowed_permissions is None
                or not spec.permissions
                or spec.permissions <= allowed_permissions
            ):
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered (permitted) specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        """Return number of registered tools."""
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        session: SchedulingSession,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Translates domain errors (no active user, permission denied,
        validation, store failures) and unexpected exceptions into
        structured CallToolResult responses with corrective actions.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(session, args)
        except NoActiveUserError as e:
            return build_error_response(
                "no_active_user",
                str(e),
                "Call user_list, then user_select with a user_id.",
            )
        except PermissionDeniedError as e:
            return build_error_response(
                "permission_denied",
                str(e),
                "Select a user with the required role, or check the password.",
            )
        except InvalidTransitionError as e:
            return build_error_response(
                "busy",
                str(e),
                "Wait for the current load to finish, then retry.",
            )
        except StoreError as e:
            logger.warning("Store error in %s: %s", name, e)
            return build_error_response(
                "store_error",
                str(e),
                "Check LEAVESYNC_STORE_URL connectivity and retry.",
            )
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Retry later, or check the server log.",
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Load capabilities from a text file.

    Format: one capability per line, ``#`` for comments, blank lines ignored.

    Example file::

        # Read-only deployment
        DOC_VIEW
        SYNC

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file contains unknown capabilities or is empty.
    """
    path = Path(path)
    permissions: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped not in CAPABILITIES:
            raise ValueError(
                f"Unknown capability '{stripped}' at line {line_num} in {path}. "
                f"Expected one of: {', '.join(sorted(CAPABILITIES))}."
            )
        permissions.add(stripped)
    if not permissions:
        raise ValueError(
            f"No capabilities found in {path}. File must contain at least one."
        )
    return frozenset(permissions)
