"""Consumer-side editing session on top of a ``SyncClient``.

``SchedulingSession`` is what a front end (or the MCP tool server) uses
to act as one person on one device: pick who is using the device, file
and withdraw leave and duty requests, manage users and read the audit
log.  Every edit is validated first and then applied through
``SyncClient.mutate()`` so it marks the document dirty exactly when it
changes something.  Nothing here talks to the store; saving stays an
explicit ``SyncClient.save()``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone

from .errors import NoActiveUserError, PermissionDeniedError, ValidationError
from .holidays import is_public_holiday
from .prefs import CURRENT_USER_KEY, DevicePreferences
from .sync.client import SyncClient
from .sync.documents import get_initials, next_user_id, time_based_id
from .sync.models import (
    DutyRequest,
    Grade,
    LeaveRequest,
    LeaveType,
    LogEntry,
    Role,
    SharedDocument,
    User,
)
from .validators import (
    validate_leave_dates,
    validate_name,
    validate_password_change,
    validate_reason,
)

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_timestamp(moment: datetime) -> str:
    """``2026-02-01T09:30:00.000Z`` style, matching browser clients."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def _as_date(value: date | str | None, field_name: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD).") from None


def _check(result: tuple[bool, str]) -> None:
    ok, message = result
    if not ok:
        raise ValidationError(message)


def _next_time_id(existing: list) -> int:
    # Clock-based, bumped past local ids so two quick edits never collide here.
    return max(time_based_id(), max((r.id for r in existing), default=0) + 1)


class SchedulingSession:
    """One person's editing session on one device.

    Args:
        client: Loaded sync client owning the shared document.
        prefs: Device preferences for remembering the last user.
        now: Clock returning an aware ``datetime`` (tests inject one).
    """

    def __init__(
        self,
        client: SyncClient,
        prefs: DevicePreferences | None = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.client = client
        self.prefs = prefs
        self._now = now
        self._current_user_id: int | None = None

    @property
    def document(self) -> SharedDocument:
        return self.client.document

    # ------------------------------------------------------------------
    # Who is using this device
    # ------------------------------------------------------------------

    @property
    def current_user(self) -> User | None:
        if self._current_user_id is None:
            return None
        return self.document.find_user(self._current_user_id)

    def _require_user(self) -> User:
        user = self.current_user
        if user is None:
            raise NoActiveUserError("Select a user before making changes.")
        return user

    def _require_role(self, *roles: Role) -> User:
        user = self._require_user()
        if user.role not in roles:
            allowed = " or ".join(r.value for r in roles)
            raise PermissionDeniedError(
                f"{user.name} ({user.role.value}) cannot do this; requires {allowed}."
            )
        return user

    def requires_password(self, user_id: int) -> bool:
        return self.document.password_for(user_id) is not None

    def select_user(self, user_id: int, password: str | None = None) -> User:
        """Make *user_id* the active user, enforcing their password gate.

        Passwords are compared in plain text; this is a convenience gate,
        not access control.
        """
        user = self.document.find_user(user_id)
        if user is None:
            raise ValidationError(f"User {user_id} does not exist.")
        stored = self.document.password_for(user_id)
        if stored is not None and password != stored:
            raise PermissionDeniedError("Incorrect password")
        self._current_user_id = user.id
        if self.prefs is not None:
            self.prefs.set(CURRENT_USER_KEY, user.id)
        logger.debug("Active user is now %s (%d)", user.name, user.id)
        return user

    def restore_user(self) -> User | None:
        """Reselect the user remembered on this device, else the first user.

        Used after a refresh; the password gate is not re-applied.
        """
        saved = self.prefs.get(CURRENT_USER_KEY, None) if self.prefs else None
        user = self.document.find_user(saved) if isinstance(saved, int) else None
        if user is None and self.document.users:
            user = self.document.users[0]
        self._current_user_id = user.id if user else None
        return user

    def sign_out(self) -> None:
        self._current_user_id = None

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def _log(self, doc: SharedDocument, actor: User, action: str, details: str) -> None:
        moment = self._now()
        doc.append_log(
            LogEntry(
                id=_next_time_id(doc.audit_log),
                user_id=actor.id,
                user_name=actor.name,
                action=action,
                details=details,
                timestamp=_iso_timestamp(moment),
            )
        )

    def audit_log(self, limit: int | None = None) -> list[LogEntry]:
        """Newest-first audit entries (admins only)."""
        self._require_role(Role.ADMIN)
        entries = self.document.audit_log
        return list(entries if limit is None else entries[:limit])

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def update_profile(
        self,
        name: str,
        current_password: str = "",
        new_password: str = "",
        confirm_password: str = "",
    ) -> User:
        """Rename the active user and optionally change their password."""
        user = self._require_user()
        _check(validate_name(name))
        new_name = name.strip()
        change_password = bool(current_password or new_password or confirm_password)
        if change_password:
            _check(
                validate_password_change(
                    self.document.password_for(user.id),
                    current_password,
                    new_password,
                    confirm_password,
                )
            )

        def edit(doc: SharedDocument) -> User:
            if change_password:
                doc.passwords[str(user.id)] = new_password
                self._log(doc, user, "Password changed", f"{user.name} changed their password")
            updated = user.model_copy(update={"name": new_name, "avatar": get_initials(new_name)})
            if new_name != user.name:
                self._log(doc, user, "Name changed", f'Changed name from "{user.name}" to "{new_name}"')
            doc.users = [updated if u.id == user.id else u for u in doc.users]
            return updated

        return self.client.mutate(edit)

    # ------------------------------------------------------------------
    # Users (admin)
    # ------------------------------------------------------------------

    def add_user(
        self, name: str, role: Role | str = Role.STAFF, grade: Grade | str = Grade.OPERATOR
    ) -> User:
        actor = self._require_role(Role.ADMIN)
        _check(validate_name(name))
        role, grade = Role(role), Grade(grade)
        clean = name.strip()

        def edit(doc: SharedDocument) -> User:
            user = User(
                id=next_user_id(doc.users),
                name=clean,
                role=role,
                grade=grade,
                avatar=get_initials(clean),
            )
            doc.users = [*doc.users, user]
            self._log(doc, actor, "User added", f"Added new user: {user.name} ({role.value}, {grade.value})")
            return user

        return self.client.mutate(edit)

    def edit_user(
        self, user_id: int, name: str, role: Role | str, grade: Grade | str
    ) -> User:
        actor = self._require_role(Role.ADMIN)
        _check(validate_name(name))
        role, grade = Role(role), Grade(grade)
        target = self.document.find_user(user_id)
        if target is None:
            raise ValidationError(f"User {user_id} does not exist.")
        clean = name.strip()

        def edit(doc: SharedDocument) -> User:
            updated = target.model_copy(
                update={"name": clean, "role": role, "grade": grade, "avatar": get_initials(clean)}
            )
            doc.users = [updated if u.id == user_id else u for u in doc.users]
            self._log(
                doc,
                actor,
                "User edited",
                f"Edited {target.name}: name={clean}, role={role.value}, grade={grade.value}",
            )
            return updated

        return self.client.mutate(edit)

    def remove_user(self, user_id: int) -> None:
        """Delete a user together with all of their leaves and duties.

        Raises:
            PermissionDeniedError: When removing the active user.
        """
        actor = self._require_role(Role.ADMIN)
        if user_id == actor.id:
            raise PermissionDeniedError("Cannot delete yourself!")
        target = self.document.find_user(user_id)
        if target is None:
            raise ValidationError(f"User {user_id} does not exist.")

        def edit(doc: SharedDocument) -> None:
            doc.users = [u for u in doc.users if u.id != user_id]
            doc.leaves = [lv for lv in doc.leaves if lv.user_id != user_id]
            doc.duties = [d for d in doc.duties if d.user_id != user_id]
            self._log(doc, actor, "User removed", f"Removed user: {target.name}")

        self.client.mutate(edit)

    # ------------------------------------------------------------------
    # Leaves and duties
    # ------------------------------------------------------------------

    def submit_leave(
        self,
        leave_type: LeaveType | str,
        start: date | str | None,
        end: date | str | None,
        reason: str,
    ) -> LeaveRequest:
        user = self._require_user()
        start_d = _as_date(start, "Start date")
        end_d = _as_date(end, "End date")
        _check(validate_leave_dates(start_d, end_d))
        _check(validate_reason(reason))
        kind = LeaveType(leave_type)

        def edit(doc: SharedDocument) -> LeaveRequest:
            leave = LeaveRequest(
                id=_next_time_id(doc.leaves),
                user_id=user.id,
                type=kind,
                start=start_d,
                end=end_d,
                reason=reason,
                submitted_at=self._now().date(),
            )
            doc.leaves = [*doc.leaves, leave]
            self._log(doc, user, "Leave requested", f"{kind.value}: {start_d} to {end_d} - {reason}")
            return leave

        return self.client.mutate(edit)

    def delete_leave(self, leave_id: int) -> None:
        user = self._require_user()
        leave = next((lv for lv in self.document.leaves if lv.id == leave_id), None)
        if leave is None:
            raise ValidationError(f"Leave {leave_id} does not exist.")
        self._check_owner_or_manager(user, leave.user_id)
        owner = self.user_name(leave.user_id, fallback="user")

        def edit(doc: SharedDocument) -> None:
            doc.leaves = [lv for lv in doc.leaves if lv.id != leave_id]
            self._log(
                doc,
                user,
                "Leave deleted",
                f"Deleted {owner}'s {leave.type.value}: {leave.start} to {leave.end}",
            )

        self.client.mutate(edit)

    def submit_duty(self, day: date | str | None, reason: str) -> DutyRequest:
        user = self._require_user()
        duty_date = _as_date(day, "Date")
        if duty_date is None:
            raise ValidationError("Please select a date.")
        _check(validate_reason(reason))

        def edit(doc: SharedDocument) -> DutyRequest:
            duty = DutyRequest(
                id=_next_time_id(doc.duties),
                user_id=user.id,
                date=duty_date,
                reason=reason,
                submitted_at=self._now().date(),
            )
            doc.duties = [*doc.duties, duty]
            self._log(doc, user, "Duty requested", f"Duty on {duty_date} - {reason}")
            return duty

        return self.client.mutate(edit)

    def delete_duty(self, duty_id: int) -> None:
        user = self._require_user()
        duty = next((d for d in self.document.duties if d.id == duty_id), None)
        if duty is None:
            raise ValidationError(f"Duty {duty_id} does not exist.")
        self._check_owner_or_manager(user, duty.user_id)
        owner = self.user_name(duty.user_id, fallback="user")

        def edit(doc: SharedDocument) -> None:
            doc.duties = [d for d in doc.duties if d.id != duty_id]
            self._log(doc, user, "Duty deleted", f"Deleted {owner}'s duty on {duty.date}")

        self.client.mutate(edit)

    def _check_owner_or_manager(self, user: User, owner_id: int) -> None:
        if user.id != owner_id and not self.can_view_all_requests:
            raise PermissionDeniedError("Only the owner, a manager or an admin can delete this request.")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def can_view_all_requests(self) -> bool:
        user = self.current_user
        return user is not None and user.role in (Role.MANAGER, Role.ADMIN)

    @property
    def can_manage_users(self) -> bool:
        user = self.current_user
        return user is not None and user.role is Role.ADMIN

    def user_name(self, user_id: int, fallback: str = UNKNOWN_USER) -> str:
        """Display name for *user_id*; dangling references get *fallback*."""
        user = self.document.find_user(user_id)
        return user.name if user else fallback

    def leaves_on(self, day: date) -> list[LeaveRequest]:
        return [lv for lv in self.document.leaves if lv.start <= day <= lv.end]

    def my_leaves(self) -> list[LeaveRequest]:
        user = self._require_user()
        return [lv for lv in self.document.leaves if lv.user_id == user.id]

    def my_duties(self) -> list[DutyRequest]:
        user = self._require_user()
        return [d for d in self.document.duties if d.user_id == user.id]

    def duties_in_month(self, year: int, month: int) -> list[DutyRequest]:
        return [
            d for d in self.document.duties if d.date.year == year and d.date.month == month
        ]

    @staticmethod
    def is_public_holiday(day: date) -> bool:
        return is_public_holiday(day)
