"""
Input validation for consumer edits.

Each validator returns ``(is_valid, error_message)`` so callers can show
the message inline; ``SchedulingSession`` turns failures into
``ValidationError``.
"""

from datetime import date

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 4


def format_validation_error(field_name: str, reason: str) -> str:
    """Consistent "<Field> <reason>" message."""
    return f"{field_name} {reason}"


def validate_name(name: str) -> tuple[bool, str]:
    """Names are trimmed and must keep at least two characters."""
    if not name or len(name.strip()) < MIN_NAME_LENGTH:
        return (
            False,
            format_validation_error(
                "Name", f"must be at least {MIN_NAME_LENGTH} characters."
            ),
        )
    return (True, "")


def validate_password_change(
    stored: str | None, current: str, new: str, confirm: str
) -> tuple[bool, str]:
    """
    Validate a password change.

    Rules:
        - ``current`` must equal the stored password ("" when none is set)
        - ``new`` must be at least four characters
        - ``new`` and ``confirm`` must match
    """
    if current != (stored or ""):
        return (False, "Current password is incorrect.")
    if len(new) < MIN_PASSWORD_LENGTH:
        return (
            False,
            format_validation_error(
                "New password", f"must be at least {MIN_PASSWORD_LENGTH} characters."
            ),
        )
    if new != confirm:
        return (False, "Passwords do not match.")
    return (True, "")


def validate_leave_dates(start: date | None, end: date | None) -> tuple[bool, str]:
    if start is None or end is None:
        return (False, "Please select start and end dates.")
    if end < start:
        return (False, "End date must be after start date.")
    return (True, "")


def validate_reason(reason: str) -> tuple[bool, str]:
    if not reason or not reason.strip():
        return (False, "Please provide a reason.")
    return (True, "")
