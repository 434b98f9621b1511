"""Exception hierarchy shared by the store, sync and consumer layers."""


class LeaveSyncError(Exception):
    """Base class for all LeaveSync errors."""


class StoreError(LeaveSyncError):
    """The document store could not be read or written.

    Raised by store implementations only; the sync client converts it
    into a load fallback or a failed ``SaveResult``.
    """

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class InvalidTransitionError(LeaveSyncError):
    """A sync state transition was requested that the state machine forbids."""


class ValidationError(LeaveSyncError, ValueError):
    """Consumer input failed validation (empty name, bad date range, ...)."""


class PermissionDeniedError(LeaveSyncError):
    """The active user is not allowed to perform the requested edit."""


class NoActiveUserError(LeaveSyncError):
    """An edit was attempted before any user was selected on this device."""
