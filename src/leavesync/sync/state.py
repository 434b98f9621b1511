"""Sync client state machine.

States and the transitions allowed between them::

    LOADING ──────────────► IDLE_CLEAN ◄──────────┐
       ▲                     │      ▲              │
       │ refresh             │edit  │ saved        │
       │                     ▼      │              │
       └──────────────── IDLE_DIRTY ──► SAVING ────┘
                             ▲            │
                             └────────────┘ conflict / failed

``LOADING`` is the initial state.  ``SAVING`` may only be entered from
``IDLE_DIRTY`` and always exits to an ``IDLE_*`` state.  There is no
terminal state.

The machine only tracks *phase*; the sync client owns the document and
the baseline.  Listeners are notified synchronously after every change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from ..errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    LOADING = "loading"
    IDLE_CLEAN = "idle_clean"
    IDLE_DIRTY = "idle_dirty"
    SAVING = "saving"


_ALLOWED: dict[SyncPhase, frozenset[SyncPhase]] = {
    SyncPhase.LOADING: frozenset({SyncPhase.LOADING, SyncPhase.IDLE_CLEAN}),
    SyncPhase.IDLE_CLEAN: frozenset({SyncPhase.IDLE_DIRTY, SyncPhase.LOADING}),
    SyncPhase.IDLE_DIRTY: frozenset({SyncPhase.SAVING, SyncPhase.LOADING}),
    SyncPhase.SAVING: frozenset({SyncPhase.IDLE_CLEAN, SyncPhase.IDLE_DIRTY}),
}

PhaseListener = Callable[[SyncPhase, SyncPhase], None]


class SyncStateMachine:
    """Guarded phase tracker for one sync client."""

    def __init__(self) -> None:
        self._phase = SyncPhase.LOADING
        self._listeners: list[PhaseListener] = []

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def dirty(self) -> bool:
        """Unsaved local edits exist (a save in flight has not confirmed them)."""
        return self._phase in (SyncPhase.IDLE_DIRTY, SyncPhase.SAVING)

    @property
    def busy(self) -> bool:
        """True while a load or a save is in flight."""
        return self._phase in (SyncPhase.LOADING, SyncPhase.SAVING)

    def can_transition(self, target: SyncPhase) -> bool:
        return target in _ALLOWED[self._phase]

    def transition(self, target: SyncPhase) -> None:
        """Move to *target*.

        Raises:
            InvalidTransitionError: If the move is not allowed from the
                current phase.
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(
                f"Cannot move from {self._phase.value} to {target.value}"
            )
        previous, self._phase = self._phase, target
        logger.debug("Sync phase %s -> %s", previous.value, target.value)
        for listener in list(self._listeners):
            try:
                listener(previous, target)
            except Exception:
                logger.exception("Sync phase listener failed")

    def add_listener(self, listener: PhaseListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PhaseListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass
