"""Sync client: optimistic-concurrency load/save/refresh of the shared document.

One ``SyncClient`` owns one in-memory ``SharedDocument``, the baseline
snapshot (the encoded raw blob last confirmed in the store),
the dirty flag (derived from the state machine phase) and the in-flight
guards.

Save protocol:

1. Only a dirty document is saved; a clean save is a no-op.
2. A second save while one is in flight returns ``busy``.
3. The remote document is re-fetched.  If the fetch fails the save is
   blocked.  If the encoded remote blob differs from the baseline, a
   ``Conflict`` is raised and nothing is written.  The remote is compared
   as fetched, never reconciled, so a record this client cannot parse
   still counts as a change.
4. Otherwise the whole document is written and becomes the new baseline.

The check and the write are two separate store calls, so a writer that
lands between them is not detected.  Stores with conditional writes
could close that window; the blob stores used here have none.

All store failures are caught here and turned into ``LoadResult`` /
``SaveResult`` values.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import TypeVar

from ..config import DEFAULT_BLOB_KEY
from ..core.async_utils import run_sync
from ..core.store import DocumentStore, encode_blob
from ..errors import InvalidTransitionError, StoreError
from .conflict import Conflict
from .documents import reconcile_document
from .models import LoadResult, SaveOutcome, SaveResult, SharedDocument
from .state import PhaseListener, SyncPhase, SyncStateMachine

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChangeSource(str, Enum):
    """Why the in-memory document changed."""

    LOCAL = "local"
    EXTERNAL = "external"


ChangeListener = Callable[[ChangeSource], None]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncClient:
    """Mediate all reads and writes of the shared document.

    Args:
        store: Document store holding the blob.
        key: Blob key.
        clock: Monotonic clock used for save timestamps (echo suppression).
    """

    def __init__(
        self,
        store: DocumentStore,
        key: str = DEFAULT_BLOB_KEY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.key = key
        self._clock = clock
        self._machine = SyncStateMachine()
        self._document: SharedDocument | None = None
        self._baseline: str | None = None
        self._load_generation = 0
        self._save_lock = asyncio.Lock()
        self._edited_during_save = False
        self._change_listeners: list[ChangeListener] = []
        self.conflict: Conflict | None = None
        self.last_saved_at: float | None = None
        self.last_result: SaveResult | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SyncPhase:
        return self._machine.phase

    @property
    def dirty(self) -> bool:
        return self._machine.dirty

    @property
    def loading(self) -> bool:
        return self._machine.phase is SyncPhase.LOADING

    @property
    def saving(self) -> bool:
        return self._machine.phase is SyncPhase.SAVING

    @property
    def loaded(self) -> bool:
        return self._document is not None

    @property
    def document(self) -> SharedDocument:
        """The live document.  Edit it through ``mutate()``.

        Raises:
            InvalidTransitionError: Before the first load has finished.
        """
        if self._document is None:
            raise InvalidTransitionError("The shared document has not been loaded yet")
        return self._document

    def add_phase_listener(self, listener: PhaseListener) -> None:
        self._machine.add_listener(listener)

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._change_listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        if listener in self._change_listeners:
            self._change_listeners.remove(listener)

    def _notify_change(self, source: ChangeSource) -> None:
        for listener in list(self._change_listeners):
            try:
                listener(source)
            except Exception:
                logger.exception("Change listener failed")

    # ------------------------------------------------------------------
    # Load / refresh
    # ------------------------------------------------------------------

    async def load(self) -> LoadResult:
        """Fetch the remote document, falling back to defaults.

        A newer ``load()``/``refresh()`` supersedes this one: its result
        is dropped if another load started while it was fetching.
        """
        if self._machine.phase is SyncPhase.SAVING:
            # Let the in-flight save finish before replacing its document.
            async with self._save_lock:
                pass

        self._load_generation += 1
        generation = self._load_generation
        if self._machine.phase is not SyncPhase.LOADING:
            self._machine.transition(SyncPhase.LOADING)

        raw = None
        error: str | None = None
        try:
            raw = await run_sync(self.store.fetch_latest, self.key)
        except StoreError as exc:
            error = str(exc)
            logger.warning("Fetch failed, falling back to defaults: %s", exc)
        except Exception as exc:
            error = str(exc)
            logger.exception("Unexpected store error during load")

        if generation != self._load_generation:
            logger.debug(
                "Load #%d superseded by #%d", generation, self._load_generation
            )
            return LoadResult(from_remote=raw is not None, error=error, superseded=True)

        document, defaulted, unrecognized = reconcile_document(raw)
        self._apply_external(document, raw)
        self.conflict = None
        self._machine.transition(SyncPhase.IDLE_CLEAN)
        logger.info(
            "Loaded shared document (%s, %d users)",
            "remote" if raw is not None else "defaults",
            len(document.users),
        )
        return LoadResult(
            from_remote=raw is not None,
            defaulted=defaulted,
            unrecognized=unrecognized,
            error=error,
        )

    async def refresh(self) -> LoadResult:
        """Discard local changes and reload the latest remote state."""
        if self.dirty:
            logger.info("Refresh discards unsaved local changes")
        return await self.load()

    def _apply_external(self, document: SharedDocument, raw: object) -> None:
        self._document = document
        self._baseline = None if raw is None else encode_blob(raw)
        self._notify_change(ChangeSource.EXTERNAL)

    # ------------------------------------------------------------------
    # Local edits
    # ------------------------------------------------------------------

    def mark_dirty(self) -> None:
        """Record a local edit.

        Idempotent while dirty.  Edits made during a save keep the
        document dirty after that save completes.

        Raises:
            InvalidTransitionError: While the document is loading.
        """
        phase = self._machine.phase
        if phase is SyncPhase.LOADING:
            raise InvalidTransitionError("Cannot edit while the document is loading")
        if phase is SyncPhase.IDLE_CLEAN:
            self._machine.transition(SyncPhase.IDLE_DIRTY)
        elif phase is SyncPhase.SAVING:
            self._edited_during_save = True
        self._notify_change(ChangeSource.LOCAL)

    def mutate(self, edit: Callable[[SharedDocument], T]) -> T:
        """Apply *edit* to the live document and mark it dirty.

        If *edit* raises, the dirty flag is left as it was.
        """
        if self._machine.phase is SyncPhase.LOADING:
            raise InvalidTransitionError("Cannot edit while the document is loading")
        result = edit(self.document)
        self.mark_dirty()
        return result

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save(self) -> SaveResult:
        """Write local edits unless the remote has drifted from the baseline."""
        if self._machine.phase is SyncPhase.SAVING or self._save_lock.locked():
            return self._result(SaveOutcome.BUSY, "A save is already in progress.")

        async with self._save_lock:
            phase = self._machine.phase
            if phase is SyncPhase.LOADING:
                return self._result(SaveOutcome.BUSY, "The document is still loading.")
            if phase is SyncPhase.IDLE_CLEAN:
                return self._result(SaveOutcome.UNCHANGED, "No unsaved changes.")
            self._machine.transition(SyncPhase.SAVING)
            self._edited_during_save = False
            try:
                return await self._save_locked()
            finally:
                if self._machine.phase is SyncPhase.SAVING:
                    # Cancelled mid-save: nothing was confirmed.
                    self._machine.transition(SyncPhase.IDLE_DIRTY)

    async def _save_locked(self) -> SaveResult:
        payload = self.document.to_blob()

        try:
            remote = await run_sync(self.store.fetch_latest, self.key)
        except Exception as exc:
            if not isinstance(exc, StoreError):
                logger.exception("Unexpected store error during save pre-check")
            logger.error("Save blocked, remote check failed: %s", exc)
            return self._finish(
                SaveOutcome.FAILED,
                f"Save failed: could not check for remote changes ({exc}).",
                dirty=True,
            )

        if remote is not None and encode_blob(remote) != self._baseline:
            self.conflict = Conflict(self)
            logger.warning("Save aborted: remote document changed since last sync")
            return self._finish(
                SaveOutcome.CONFLICT, self.conflict.message, dirty=True
            )

        try:
            await run_sync(
                self.store.write_full,
                self.key,
                payload,
                public=True,
                content_type="application/json",
                allow_overwrite=True,
                add_random_suffix=False,
            )
        except Exception as exc:
            if not isinstance(exc, StoreError):
                logger.exception("Unexpected store error during write")
            logger.error("Save failed: %s", exc)
            return self._finish(
                SaveOutcome.FAILED, f"Save failed: {exc}", dirty=True
            )

        self._baseline = encode_blob(payload)
        self.conflict = None
        self.last_saved_at = self._clock()
        still_dirty = self._edited_during_save
        if still_dirty:
            logger.info("Saved; edits made during the save remain unsaved")
        else:
            logger.info("Saved shared document")
        return self._finish(SaveOutcome.SAVED, "Saved to cloud.", dirty=still_dirty)

    def _finish(self, outcome: SaveOutcome, message: str, dirty: bool) -> SaveResult:
        self._machine.transition(SyncPhase.IDLE_DIRTY if dirty else SyncPhase.IDLE_CLEAN)
        return self._result(outcome, message)

    def _result(self, outcome: SaveOutcome, message: str) -> SaveResult:
        result = SaveResult(outcome=outcome, message=message, completed_at=_now_iso())
        self.last_result = result
        return result

    # ------------------------------------------------------------------
    # Conflict handling and polling
    # ------------------------------------------------------------------

    def clear_conflict(self, conflict: Conflict | None = None) -> None:
        """Drop the pending conflict (dismiss-and-keep-editing)."""
        if conflict is None or conflict is self.conflict:
            self.conflict = None

    async def poll(self) -> bool:
        """Pull remote changes into a clean document.

        Skipped while dirty, loading or saving, and when a local edit
        arrives during the fetch.  Fetch errors are silent.

        Returns:
            True if a remote change was applied.
        """
        if self._machine.phase is not SyncPhase.IDLE_CLEAN:
            return False
        try:
            raw = await run_sync(self.store.fetch_latest, self.key)
        except Exception as exc:
            logger.debug("Poll fetch failed: %s", exc)
            return False
        if raw is None or self._machine.phase is not SyncPhase.IDLE_CLEAN:
            return False

        if encode_blob(raw) == self._baseline:
            return False
        document, _, _ = reconcile_document(raw)
        self._apply_external(document, raw)
        logger.info("Applied remote changes from poll")
        return True
