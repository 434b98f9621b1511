"""Conflict signal raised by a save whose pre-check found remote drift.

A conflict is a protocol outcome, not an exception.  It offers exactly
two resolutions:

- ``discard_and_refresh()`` -- drop local edits and reload the remote
  document (baseline reset, dirty cleared).
- ``dismiss()`` -- keep editing; the document stays dirty and the next
  save re-checks for drift.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .client import SyncClient
    from .models import LoadResult

CONFLICT_MESSAGE = (
    "Another user has saved changes since you last loaded. "
    "Please refresh to get the latest data before saving."
)


class Conflict:
    """Pending conflict owned by one ``SyncClient``."""

    def __init__(self, client: SyncClient, message: str = CONFLICT_MESSAGE) -> None:
        self._client = client
        self.message = message
        self.detected_at = datetime.now(timezone.utc).isoformat()
        self.resolved = False

    async def discard_and_refresh(self) -> LoadResult:
        """Discard local edits and reload the latest remote document."""
        self.resolved = True
        return await self._client.refresh()

    def dismiss(self) -> None:
        """Keep local edits; nothing changes except the pending signal."""
        self.resolved = True
        self._client.clear_conflict(self)

    def __repr__(self) -> str:
        state = "resolved" if self.resolved else "pending"
        return f"<Conflict {state} at {self.detected_at}>"
