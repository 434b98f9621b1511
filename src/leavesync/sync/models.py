"""Pydantic models for the shared document and the sync protocol.

Document records use the JSON field names of the stored blob
(``userId``, ``submittedAt``, ``auditLog``) as aliases; Python code uses
snake_case attributes.  Unknown fields are kept (``extra="allow"``) and
records this client cannot parse are carried verbatim, so that a
document written by a newer client survives a round trip.

Protocol models:

- ``SaveOutcome``: Enum of possible ``save()`` outcomes.
- ``SaveResult``: Outcome of one ``save()`` call.
- ``LoadResult``: Outcome of one ``load()``/``refresh()`` call.
"""

from __future__ import annotations

import copy
import datetime as dt
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

AUDIT_LOG_LIMIT = 500

_RECORD_CONFIG = ConfigDict(populate_by_name=True, extra="allow")


class Role(str, Enum):
    STAFF = "staff"
    MANAGER = "manager"
    ADMIN = "admin"


class Grade(str, Enum):
    OPERATOR = "Operator"
    INTERMEDIATE = "Intermediate"
    TRAINEE = "Trainee"


class LeaveType(str, Enum):
    ANNUAL = "Annual / Paid Leave"
    CONFERENCE = "Conference Leave"


class User(BaseModel):
    """A person who can pick this device and file requests."""

    model_config = _RECORD_CONFIG

    id: int
    name: str
    role: Role = Role.STAFF
    avatar: str = ""
    grade: Grade = Grade.OPERATOR


class LeaveRequest(BaseModel):
    """A leave spanning ``start`` to ``end`` inclusive."""

    model_config = _RECORD_CONFIG

    id: int
    user_id: int = Field(alias="userId")
    type: LeaveType
    start: dt.date
    end: dt.date
    reason: str = ""
    submitted_at: dt.date = Field(alias="submittedAt")

    @model_validator(mode="after")
    def _check_range(self) -> LeaveRequest:
        if self.start > self.end:
            raise ValueError(
                f"leave {self.id}: start {self.start} is after end {self.end}"
            )
        return self


class DutyRequest(BaseModel):
    """A request to work an extra duty on ``date``."""

    model_config = _RECORD_CONFIG

    id: int
    user_id: int = Field(alias="userId")
    date: dt.date
    reason: str = ""
    submitted_at: dt.date = Field(alias="submittedAt")


class LogEntry(BaseModel):
    """One audit log line.

    ``user_name`` is captured when the entry is written and is never
    re-derived from ``users``; ``timestamp`` is kept verbatim.
    """

    model_config = _RECORD_CONFIG

    id: int
    user_id: int = Field(alias="userId")
    user_name: str = Field(alias="userName")
    action: str
    details: str = ""
    timestamp: str


class SharedDocument(BaseModel):
    """The single synchronized unit stored as one blob."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    users: list[User] = Field(default_factory=list)
    passwords: dict[str, str | None] = Field(default_factory=dict)
    leaves: list[LeaveRequest] = Field(default_factory=list)
    duties: list[DutyRequest] = Field(default_factory=list)
    audit_log: list[LogEntry] = Field(default_factory=list, alias="auditLog")

    # Raw records per stored list name that failed validation on load.
    _unrecognized: dict[str, list[Any]] = PrivateAttr(default_factory=dict)

    def keep_unrecognized(self, field: str, records: list[Any]) -> None:
        """Carry *records* of list *field* through to ``to_blob()`` untouched."""
        if records:
            self._unrecognized[field] = copy.deepcopy(records)

    def unrecognized(self, field: str) -> list[Any]:
        return list(self._unrecognized.get(field, []))

    def to_blob(self) -> dict[str, Any]:
        """JSON-ready dict using the stored field names.

        Unrecognized records follow the parsed ones in their list.
        """
        data = self.model_dump(mode="json", by_alias=True)
        for field, records in self._unrecognized.items():
            data[field] = [*data.get(field, []), *copy.deepcopy(records)]
        return data

    def find_user(self, user_id: int) -> User | None:
        return next((u for u in self.users if u.id == user_id), None)

    def password_for(self, user_id: int) -> str | None:
        """Password of *user_id*, or ``None`` when there is no gate."""
        return self.passwords.get(str(user_id)) or None

    def append_log(self, entry: LogEntry) -> None:
        """Insert *entry* newest-first, evicting beyond ``AUDIT_LOG_LIMIT``."""
        self.audit_log = [entry, *self.audit_log][:AUDIT_LOG_LIMIT]


# ---------------------------------------------------------------------------
# Protocol results
# ---------------------------------------------------------------------------


class SaveOutcome(str, Enum):
    """Possible results of ``SyncClient.save()``."""

    SAVED = "saved"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"
    FAILED = "failed"
    BUSY = "busy"


class SaveResult(BaseModel):
    """Result of one save attempt.

    Attributes:
        outcome: What happened.
        message: Human-readable explanation for notifications.
        completed_at: ISO 8601 timestamp when the attempt finished.
    """

    outcome: SaveOutcome
    message: str
    completed_at: str

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.outcome in (SaveOutcome.SAVED, SaveOutcome.UNCHANGED)


class LoadResult(BaseModel):
    """Result of one load or refresh.

    Attributes:
        from_remote: True when a remote document existed and was used.
        defaulted: Top-level fields that were missing or invalid and got
            their default value.
        unrecognized: Number of records that failed validation and are
            carried through unchanged.
        error: Store error message when the fetch failed.
        superseded: True when a newer load finished first and this
            result was not applied.
    """

    from_remote: bool
    defaulted: list[str] = []
    unrecognized: int = 0
    error: str | None = None
    superseded: bool = False

    model_config = {"frozen": True}
