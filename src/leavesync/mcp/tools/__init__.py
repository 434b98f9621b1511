"""MCP tool handlers for the shared leave schedule.

This package contains MCP tool implementations that wrap a
``SchedulingSession`` with async handlers and structured error responses.
"""

from .errors import build_error_response
from .registry import (
    CAPABILITIES,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)
from .requests import REQUEST_SPECS, REQUEST_TOOLS
from .sync import SYNC_SPECS, SYNC_TOOLS
from .users import USER_SPECS, USER_TOOLS

ALL_SPECS: list[ToolSpec] = SYNC_SPECS + USER_SPECS + REQUEST_SPECS

__all__ = [
    "build_error_response",
    # Registry
    "CAPABILITIES",
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    # Spec lists
    "ALL_SPECS",
    "SYNC_SPECS",
    "USER_SPECS",
    "REQUEST_SPECS",
    # Tool lists
    "SYNC_TOOLS",
    "USER_TOOLS",
    "REQUEST_TOOLS",
]
