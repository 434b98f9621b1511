"""Auto-sync model: periodic polling plus debounced auto-save.

Two background tasks drive a ``SyncClient``:

* **poll loop** -- every ``poll_interval`` seconds, pull remote changes.
  The pull is skipped while local edits are pending (the client refuses
  to poll unless clean) and during the echo-suppression window that
  follows one of our own saves.
* **auto-save loop** -- waits for a local edit, then for a quiet period
  of ``autosave_delay`` seconds with no further edits, then saves.
  While a conflict is pending, auto-save stands down until the user
  refreshes or dismisses it.

Both loops go through the client's guards, so manual ``save()`` and
``refresh()`` calls can be mixed in safely.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from .client import ChangeSource, SyncClient
from .models import SaveOutcome, SaveResult

logger = logging.getLogger(__name__)


class AutoSync:
    """Background poller and debounced saver for one sync client.

    Args:
        client: The sync client to drive.
        poll_interval: Seconds between remote polls.
        autosave_delay: Quiet period after the last edit before saving.
        echo_window: Seconds after a successful save during which polls
            are skipped.
        clock: Monotonic clock (must match the client's clock).
    """

    def __init__(
        self,
        client: SyncClient,
        poll_interval: float = 15.0,
        autosave_delay: float = 2.0,
        echo_window: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.autosave_delay = autosave_delay
        self.echo_window = echo_window
        self._clock = clock
        self._edited = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def _on_change(self, source: ChangeSource) -> None:
        if source is ChangeSource.LOCAL:
            self._edited.set()

    def echo_suppressed(self) -> bool:
        """True inside the cool-down window after our own save."""
        last = self.client.last_saved_at
        return last is not None and self._clock() - last < self.echo_window

    async def poll_once(self) -> bool:
        """Run one poll cycle.  Returns True if remote changes were applied."""
        if self.echo_suppressed():
            logger.debug("Poll skipped: inside echo-suppression window")
            return False
        if self.client.dirty:
            logger.debug("Poll skipped: local edits pending")
            return False
        return await self.client.poll()

    async def save_once(self) -> SaveResult | None:
        """Attempt one auto-save.  Returns ``None`` when standing down."""
        if self.client.conflict is not None:
            logger.debug("Auto-save paused: conflict awaiting resolution")
            return None
        result = await self.client.save()
        if result.outcome is SaveOutcome.CONFLICT:
            logger.warning("Auto-save hit a conflict: %s", result.message)
        elif result.outcome is SaveOutcome.FAILED:
            logger.warning("Auto-save failed, will retry: %s", result.message)
        elif result.outcome is SaveOutcome.BUSY:
            self._edited.set()
        return result

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                if (
                    self.client.dirty
                    and self.client.conflict is None
                    and not self._edited.is_set()
                ):
                    # Re-arm auto-save after a failed attempt.
                    self._edited.set()
                    continue
                await self.poll_once()
            except Exception:
                logger.exception("Poll cycle failed")

    async def _autosave_loop(self) -> None:
        while True:
            await self._edited.wait()
            while True:
                self._edited.clear()
                try:
                    await asyncio.wait_for(
                        self._edited.wait(), timeout=self.autosave_delay
                    )
                except asyncio.TimeoutError:
                    break
            try:
                await self.save_once()
            except Exception:
                logger.exception("Auto-save cycle failed")

    def start(self) -> None:
        """Start both loops on the running event loop."""
        if self.running:
            return
        self.client.add_change_listener(self._on_change)
        self._tasks = [
            asyncio.create_task(self._poll_loop(), name="leavesync-poll"),
            asyncio.create_task(self._autosave_loop(), name="leavesync-autosave"),
        ]
        logger.info(
            "Auto-sync started (poll %.1fs, auto-save after %.1fs, echo window %.1fs)",
            self.poll_interval,
            self.autosave_delay,
            self.echo_window,
        )

    async def stop(self) -> None:
        """Cancel both loops and wait for them to finish."""
        self.client.remove_change_listener(self._on_change)
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Auto-sync stopped")
