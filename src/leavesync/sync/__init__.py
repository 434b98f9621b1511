"""Optimistic-concurrency sync of the shared scheduling document.

Architecture
------------
All clients share one JSON blob.  Each ``SyncClient`` keeps a baseline
snapshot of the blob as it last saw it; a save re-fetches the blob and
refuses to write if it no longer matches the baseline, raising a
``Conflict`` instead.  The user resolves conflicts by refreshing
(discarding local edits) or dismissing and retrying later.

Modules:

- ``client``     -- ``SyncClient``: load/save/refresh and dirty tracking.
- ``state``      -- ``SyncStateMachine``: guarded phase transitions.
- ``documents``  -- seed data and per-field reconciliation.
- ``models``     -- ``SharedDocument`` and its records, ``SaveResult``,
  ``LoadResult``.
- ``conflict``   -- ``Conflict`` signal with its two resolutions.
- ``autosync``   -- ``AutoSync``: polling and debounced auto-save.
- ``reporter``   -- status formatting.

Usage example
-------------
::

    from leavesync.core import MemoryDocumentStore
    from leavesync.sync import SyncClient, SaveOutcome

    client = SyncClient(MemoryDocumentStore())
    await client.load()
    client.mutate(lambda doc: doc.passwords.update({"1": "secret"}))
    result = await client.save()
    if result.outcome is SaveOutcome.CONFLICT:
        await client.conflict.discard_and_refresh()
"""

from .autosync import AutoSync
from .client import ChangeSource, SyncClient
from .conflict import CONFLICT_MESSAGE, Conflict
from .documents import default_document, reconcile_document
from .models import (
    AUDIT_LOG_LIMIT,
    DutyRequest,
    Grade,
    LeaveRequest,
    LeaveType,
    LoadResult,
    LogEntry,
    Role,
    SaveOutcome,
    SaveResult,
    SharedDocument,
    User,
)
from .reporter import format_load_result, format_save_result, format_status, status_to_json
from .state import SyncPhase, SyncStateMachine

__all__ = [
    "AUDIT_LOG_LIMIT",
    "AutoSync",
    "CONFLICT_MESSAGE",
    "ChangeSource",
    "Conflict",
    "DutyRequest",
    "Grade",
    "LeaveRequest",
    "LeaveType",
    "LoadResult",
    "LogEntry",
    "Role",
    "SaveOutcome",
    "SaveResult",
    "SharedDocument",
    "SyncClient",
    "SyncPhase",
    "SyncStateMachine",
    "User",
    "default_document",
    "format_load_result",
    "format_save_result",
    "format_status",
    "reconcile_document",
    "status_to_json",
]
