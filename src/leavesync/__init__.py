"""LeaveSync: shared-document sync layer for a multi-user leave scheduler."""

__version__ = "0.3.0"
