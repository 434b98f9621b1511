"""Seed data and field-by-field reconciliation.

``reconcile_document()`` is the single boundary where an arbitrary remote
blob becomes a ``SharedDocument``.  Each top-level field is validated on
its own:

* missing or non-list ``leaves`` / ``duties`` -> seed entries
* missing or empty ``users`` -> seed users
* missing or invalid ``passwords`` -> ``{}``
* missing or invalid ``auditLog`` -> ``[]``

Inside list fields, records that fail validation are kept verbatim on the
document and written back after the parsed ones.  Another writer's record
is never lost because this client could not read it.

Conflict detection does not go through this module: baselines are the
encoded raw blob, so reconciliation can never hide a remote change.
"""

from __future__ import annotations

import copy
import logging
import time
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .models import (
    DutyRequest,
    LeaveRequest,
    LogEntry,
    SharedDocument,
    User,
)

logger = logging.getLogger(__name__)

SEED_USERS: list[dict[str, Any]] = [
    {"id": 1, "name": "Alice Tan", "role": "staff", "avatar": "AT", "grade": "Operator"},
    {"id": 2, "name": "Bob Lee", "role": "staff", "avatar": "BL", "grade": "Intermediate"},
    {"id": 3, "name": "Carol Ng", "role": "manager", "avatar": "CN", "grade": "Operator"},
    {"id": 4, "name": "David Koh", "role": "staff", "avatar": "DK", "grade": "Trainee"},
    {"id": 5, "name": "Eve Lim", "role": "admin", "avatar": "EL", "grade": "Operator"},
]

SEED_LEAVES: list[dict[str, Any]] = [
    {"id": 1, "userId": 1, "type": "Annual / Paid Leave", "start": "2026-02-10", "end": "2026-02-12", "reason": "Family vacation", "submittedAt": "2026-02-01"},
    {"id": 2, "userId": 2, "type": "Conference Leave", "start": "2026-02-18", "end": "2026-02-20", "reason": "Tech Summit 2026", "submittedAt": "2026-02-05"},
    {"id": 3, "userId": 4, "type": "Annual / Paid Leave", "start": "2026-02-24", "end": "2026-02-25", "reason": "Personal errands", "submittedAt": "2026-02-14"},
    {"id": 4, "userId": 1, "type": "Conference Leave", "start": "2026-03-05", "end": "2026-03-07", "reason": "Marketing conference", "submittedAt": "2026-02-13"},
    {"id": 5, "userId": 2, "type": "Annual / Paid Leave", "start": "2026-03-10", "end": "2026-03-11", "reason": "Spring break", "submittedAt": "2026-02-10"},
]

SEED_DUTIES: list[dict[str, Any]] = [
    {"id": 1, "userId": 1, "date": "2026-02-28", "reason": "Cover evening shift for David", "submittedAt": "2026-02-15"},
    {"id": 2, "userId": 2, "date": "2026-03-02", "reason": "Weekend server maintenance", "submittedAt": "2026-02-14"},
]

_PASSWORDS_ADAPTER = TypeAdapter(dict[str, str | None])
_KNOWN_KEYS = frozenset(
    {"users", "passwords", "leaves", "duties", "auditLog", "audit_log"}
)


def default_document() -> SharedDocument:
    """Cold-start document: seed users, leaves and duties, nothing else."""
    return SharedDocument(
        users=[User.model_validate(u) for u in SEED_USERS],
        passwords={},
        leaves=[LeaveRequest.model_validate(lv) for lv in SEED_LEAVES],
        duties=[DutyRequest.model_validate(d) for d in SEED_DUTIES],
        audit_log=[],
    )


def _validate_records(field: str, raw: list, model: type) -> tuple[list, list]:
    records = []
    unrecognized = []
    for index, item in enumerate(raw):
        try:
            records.append(model.model_validate(item))
        except PydanticValidationError as exc:
            unrecognized.append(item)
            logger.warning(
                "Keeping unrecognized %s[%d] unchanged: %s",
                field,
                index,
                exc.errors()[0].get("msg", exc),
            )
    return records, unrecognized


def reconcile_document(raw: Any) -> tuple[SharedDocument, list[str], int]:
    """Turn a fetched blob into a usable ``SharedDocument``.

    Args:
        raw: Whatever the store returned (``None`` when absent).

    Returns:
        ``(document, defaulted_fields, unrecognized_records)``.  Never
        raises for malformed input.
    """
    if raw is None:
        return default_document(), [], 0
    if not isinstance(raw, dict):
        logger.warning(
            "Remote document has a %s root, using defaults",
            type(raw).__name__,
        )
        return default_document(), ["users", "passwords", "leaves", "duties", "auditLog"], 0

    seeds = default_document()
    defaulted: list[str] = []
    kept: dict[str, list[Any]] = {}

    users_raw = raw.get("users")
    users: list[User] = seeds.users
    if isinstance(users_raw, list) and users_raw:
        users, kept["users"] = _validate_records("users", users_raw, User)
    else:
        defaulted.append("users")

    passwords: dict[str, str | None] = {}
    try:
        if raw.get("passwords") is None:
            defaulted.append("passwords")
        else:
            passwords = _PASSWORDS_ADAPTER.validate_python(raw["passwords"])
    except PydanticValidationError:
        logger.warning("Remote passwords mapping is invalid, using {}")
        defaulted.append("passwords")

    def _list_field(name: str, model: type, fallback: list) -> list:
        value = raw.get(name)
        if isinstance(value, list):
            records, kept[name] = _validate_records(name, value, model)
            return records
        defaulted.append(name)
        if value is not None:
            logger.warning("Remote %s is not a list, using defaults", name)
        return fallback

    leaves = _list_field("leaves", LeaveRequest, seeds.leaves)
    duties = _list_field("duties", DutyRequest, seeds.duties)
    audit_log = _list_field("auditLog", LogEntry, [])

    extras = {
        k: v
        for k, v in raw.items()
        if k not in _KNOWN_KEYS
    }
    document = SharedDocument(
        users=users,
        passwords=passwords,
        leaves=leaves,
        duties=duties,
        audit_log=audit_log,
        **copy.deepcopy(extras),
    )
    for name, records in kept.items():
        document.keep_unrecognized(name, records)
    if defaulted:
        logger.info("Defaulted fields in remote document: %s", ", ".join(defaulted))
    return document, defaulted, sum(len(records) for records in kept.values())


# ---------------------------------------------------------------------------
# Id and display helpers
# ---------------------------------------------------------------------------


def get_initials(name: str) -> str:
    """``"Alice Tan"`` -> ``"AT"``; at most two letters."""
    return "".join(part[0] for part in name.split(" ") if part).upper()[:2]


def next_user_id(users: list[User]) -> int:
    """``max(id) + 1``.  Not collision-safe across concurrent writers."""
    return max((u.id for u in users), default=0) + 1


def time_based_id() -> int:
    """Millisecond clock id for leaves, duties and log entries.

    Two writers on different devices can produce the same id; callers
    accept that.
    """
    return int(time.time() * 1000)
