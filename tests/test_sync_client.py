"""Tests for leavesync.sync.client -- load/save/refresh with conflict detection.

Covers:
- Save on a clean document is a no-op (no store traffic)
- Conflict detection when another client saved first
- Successful save writes the whole document and resets the baseline
- Refresh discards local edits and resets the baseline
- Fallback to defaults when the store is empty or unreachable
- Dirty lifecycle, including failed writes and edits made during a save
- Busy guard, load supersession and polling
"""

import asyncio

import pytest

from leavesync.core.store import encode_blob
from leavesync.errors import InvalidTransitionError
from leavesync.sync import (
    CONFLICT_MESSAGE,
    ChangeSource,
    SaveOutcome,
    SyncClient,
    SyncPhase,
)
from leavesync.sync.documents import SEED_LEAVES, SEED_USERS

from fakes import KEY, FlakyStore, GatedStore


def _set_password(user_id: str, password: str):
    def edit(doc):
        doc.passwords[user_id] = password

    return edit


async def _loaded(store) -> SyncClient:
    client = SyncClient(store, key=KEY)
    await client.load()
    return client


# -------------------------------------------------------------------------
# save()
# -------------------------------------------------------------------------


class TestSaveWhenClean:
    async def test_clean_save_reports_unchanged(self, client, store):
        fetches = store.fetch_calls

        result = await client.save()

        assert result.outcome is SaveOutcome.UNCHANGED
        assert store.fetch_calls == fetches
        assert store.write_calls == 0
        assert not client.dirty

    async def test_second_save_after_success_is_noop(self, client, store):
        client.mutate(_set_password("1", "pw"))
        assert (await client.save()).outcome is SaveOutcome.SAVED

        result = await client.save()

        assert result.outcome is SaveOutcome.UNCHANGED
        assert store.write_calls == 1


class TestNoConflictSave:
    async def test_writes_whole_document(self, client, store):
        client.mutate(_set_password("2", "secret"))

        result = await client.save()

        assert result.outcome is SaveOutcome.SAVED
        assert result.ok
        assert result.message == "Saved to cloud."
        assert store.raw(KEY) == encode_blob(client.document.to_blob())
        assert not client.dirty
        assert client.phase is SyncPhase.IDLE_CLEAN
        assert client.last_saved_at is not None

    async def test_consecutive_saves_from_same_client(self, client):
        client.mutate(_set_password("1", "a"))
        assert (await client.save()).outcome is SaveOutcome.SAVED

        client.mutate(_set_password("1", "b"))
        result = await client.save()

        assert result.outcome is SaveOutcome.SAVED
        assert client.conflict is None

    async def test_partial_remote_left_alone_is_not_a_conflict(self):
        # Remote lacks passwords/auditLog; reconciliation fills them in.
        raw = {"users": SEED_USERS, "leaves": [], "duties": []}
        store = FlakyStore({KEY: encode_blob(raw)})
        client = await _loaded(store)
        client.mutate(_set_password("1", "pw"))

        result = await client.save()

        assert result.outcome is SaveOutcome.SAVED
        assert store.fetch_latest(KEY)["passwords"] == {"1": "pw"}

    async def test_unrecognized_records_survive_our_save(self):
        sick = {"id": 77, "userId": 2, "type": "Sick Leave", "start": "2026-04-01",
                "end": "2026-04-02", "reason": "Flu", "submittedAt": "2026-03-31"}
        raw = {"users": SEED_USERS, "passwords": {}, "leaves": [SEED_LEAVES[0], sick],
               "duties": [], "auditLog": []}
        store = FlakyStore({KEY: encode_blob(raw)})
        client = await _loaded(store)
        assert [lv.id for lv in client.document.leaves] == [SEED_LEAVES[0]["id"]]

        client.mutate(_set_password("1", "pw"))
        assert (await client.save()).outcome is SaveOutcome.SAVED

        assert store.fetch_latest(KEY)["leaves"] == [SEED_LEAVES[0], sick]


class TestConflictDetection:
    async def test_stale_baseline_is_rejected(self, store):
        alice = await _loaded(store)
        bob = await _loaded(store)

        bob.mutate(_set_password("2", "bob"))
        assert (await bob.save()).outcome is SaveOutcome.SAVED
        stored = store.raw(KEY)

        alice.mutate(_set_password("1", "alice"))
        result = await alice.save()

        assert result.outcome is SaveOutcome.CONFLICT
        assert result.message == CONFLICT_MESSAGE
        assert store.raw(KEY) == stored
        assert alice.dirty
        assert alice.document.passwords == {"1": "alice"}
        assert alice.conflict is not None

    async def test_dismissed_conflict_recurs_on_next_save(self, store):
        alice = await _loaded(store)
        bob = await _loaded(store)
        bob.mutate(_set_password("2", "bob"))
        await bob.save()
        alice.mutate(_set_password("1", "alice"))
        await alice.save()

        alice.conflict.dismiss()

        assert alice.conflict is None
        assert alice.dirty
        assert (await alice.save()).outcome is SaveOutcome.CONFLICT

    async def test_other_writers_unreadable_leave_is_a_conflict(self, store):
        alice = await _loaded(store)
        bob = await _loaded(store)
        bob.mutate(_set_password("2", "bob"))
        await bob.save()
        await alice.refresh()

        blob = store.fetch_latest(KEY)
        blob["leaves"].append(
            {"id": 88, "userId": 2, "type": "Sick Leave", "start": "2026-04-06",
             "end": "2026-04-07", "reason": "", "submittedAt": "2026-04-01"}
        )
        store.write_full(KEY, blob)
        stored = store.raw(KEY)

        alice.mutate(_set_password("1", "alice"))
        result = await alice.save()

        assert result.outcome is SaveOutcome.CONFLICT
        assert store.raw(KEY) == stored
        assert store.fetch_latest(KEY)["leaves"][-1]["type"] == "Sick Leave"

    async def test_other_writers_unreadable_duty_is_a_conflict(self, store):
        alice = await _loaded(store)
        bob = await _loaded(store)
        bob.mutate(_set_password("2", "bob"))
        await bob.save()
        await alice.refresh()

        blob = store.fetch_latest(KEY)
        blob["duties"].append(
            {"id": 89, "userId": 3, "date": "2026-04-04", "reason": "Night cover",
             "submittedAt": "2026-04-01T10:00:00.000Z"}
        )
        store.write_full(KEY, blob)
        stored = store.raw(KEY)

        alice.mutate(_set_password("1", "alice"))
        result = await alice.save()

        assert result.outcome is SaveOutcome.CONFLICT
        assert store.raw(KEY) == stored

    async def test_remote_created_after_empty_load_is_a_conflict(self, store):
        alice = await _loaded(store)
        store.write_full(KEY, {"users": SEED_USERS, "passwords": {"5": "eve"}})

        alice.mutate(_set_password("1", "alice"))

        assert (await alice.save()).outcome is SaveOutcome.CONFLICT
        assert store.fetch_latest(KEY)["passwords"] == {"5": "eve"}


class TestRefresh:
    async def test_refresh_discards_edits_and_resets_baseline(self, store):
        alice = await _loaded(store)
        bob = await _loaded(store)
        bob.mutate(_set_password("2", "bob"))
        await bob.save()
        alice.mutate(_set_password("1", "alice"))
        await alice.save()

        await alice.conflict.discard_and_refresh()

        assert alice.conflict is None
        assert not alice.dirty
        assert alice.document.passwords == {"2": "bob"}

        alice.mutate(_set_password("1", "alice"))
        assert (await alice.save()).outcome is SaveOutcome.SAVED
        assert store.fetch_latest(KEY)["passwords"] == {"2": "bob", "1": "alice"}

    async def test_refresh_tags_change_as_external(self, client):
        sources = []
        client.add_change_listener(sources.append)

        await client.refresh()

        assert sources == [ChangeSource.EXTERNAL]
        assert not client.dirty


# -------------------------------------------------------------------------
# load()
# -------------------------------------------------------------------------


class TestDefaultFallback:
    async def test_empty_store_yields_seed_document(self, store):
        client = SyncClient(store, key=KEY)

        result = await client.load()

        assert not result.from_remote
        assert result.error is None
        assert [u.name for u in client.document.users][0] == "Alice Tan"
        assert len(client.document.leaves) == 5
        assert len(client.document.duties) == 2
        assert client.document.audit_log == []
        assert client.document.passwords == {}

    async def test_unreachable_store_falls_back_without_raising(self, store):
        store.fail_fetch = True
        client = SyncClient(store, key=KEY)

        result = await client.load()

        assert result.error == "store unreachable"
        assert client.phase is SyncPhase.IDLE_CLEAN
        assert len(client.document.users) == 5

    async def test_document_before_load_raises(self, store):
        client = SyncClient(store, key=KEY)

        with pytest.raises(InvalidTransitionError):
            _ = client.document

    async def test_partial_remote_reports_defaulted_fields(self):
        raw = {"users": [{"id": 9, "name": "Zed Ho", "role": "admin"}]}
        client = SyncClient(FlakyStore({KEY: encode_blob(raw)}), key=KEY)

        result = await client.load()

        assert result.from_remote
        assert set(result.defaulted) == {"passwords", "leaves", "duties", "auditLog"}
        assert [u.id for u in client.document.users] == [9]


# -------------------------------------------------------------------------
# Dirty lifecycle
# -------------------------------------------------------------------------


class TestDirtyLifecycle:
    async def test_clean_after_load_dirty_after_edit(self, client):
        assert not client.dirty
        client.mutate(_set_password("1", "x"))
        assert client.dirty
        assert client.phase is SyncPhase.IDLE_DIRTY

    async def test_mark_dirty_is_idempotent(self, client):
        client.mark_dirty()
        client.mark_dirty()
        assert client.phase is SyncPhase.IDLE_DIRTY

    async def test_failed_edit_leaves_flag_alone(self, client):
        def broken(doc):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            client.mutate(broken)

        assert not client.dirty

    async def test_edit_while_loading_raises(self, store):
        client = SyncClient(store, key=KEY)

        with pytest.raises(InvalidTransitionError):
            client.mark_dirty()

    async def test_failed_write_keeps_dirty_and_baseline(self, client, store):
        client.mutate(_set_password("1", "x"))
        store.fail_write = True

        result = await client.save()

        assert result.outcome is SaveOutcome.FAILED
        assert "write rejected" in result.message
        assert client.dirty
        assert client.conflict is None

        store.fail_write = False
        assert (await client.save()).outcome is SaveOutcome.SAVED
        assert not client.dirty

    async def test_failed_precheck_blocks_write(self, client, store):
        client.mutate(_set_password("1", "x"))
        store.fail_fetch = True

        result = await client.save()

        assert result.outcome is SaveOutcome.FAILED
        assert store.write_calls == 0
        assert client.dirty

    async def test_local_edit_tags_change_as_local(self, client):
        sources = []
        client.add_change_listener(sources.append)

        client.mutate(_set_password("1", "x"))

        assert sources == [ChangeSource.LOCAL]


# -------------------------------------------------------------------------
# Concurrency guards
# -------------------------------------------------------------------------


class TestInFlightGuards:
    async def test_second_save_while_saving_is_busy(self):
        store = GatedStore()
        client = await _loaded(store)
        client.mutate(_set_password("1", "x"))
        store.hold()

        first = asyncio.create_task(client.save())
        await asyncio.to_thread(store.entered.wait, 2)
        second = await client.save()
        store.release()
        first_result = await first

        assert second.outcome is SaveOutcome.BUSY
        assert first_result.outcome is SaveOutcome.SAVED
        assert store.write_calls == 1

    async def test_edit_during_save_stays_dirty(self):
        store = GatedStore()
        client = await _loaded(store)
        client.mutate(_set_password("1", "x"))
        store.hold()

        task = asyncio.create_task(client.save())
        await asyncio.to_thread(store.entered.wait, 2)
        client.mutate(_set_password("2", "y"))
        store.release()
        result = await task

        assert result.outcome is SaveOutcome.SAVED
        assert client.dirty
        assert store.fetch_latest(KEY)["passwords"] == {"1": "x"}
        assert (await client.save()).outcome is SaveOutcome.SAVED
        assert store.fetch_latest(KEY)["passwords"] == {"1": "x", "2": "y"}

    async def test_newer_load_supersedes_older(self):
        store = GatedStore()
        client = await _loaded(store)
        store.hold()

        older = asyncio.create_task(client.load())
        await asyncio.to_thread(store.entered.wait, 2)
        newer = asyncio.create_task(client.refresh())
        await asyncio.sleep(0)
        store.release()
        older_result, newer_result = await asyncio.gather(older, newer)

        assert older_result.superseded
        assert not newer_result.superseded
        assert client.phase is SyncPhase.IDLE_CLEAN


# -------------------------------------------------------------------------
# poll()
# -------------------------------------------------------------------------


class TestPoll:
    async def test_poll_applies_remote_changes_when_clean(self, store):
        alice = await _loaded(store)
        bob = await _loaded(store)
        bob.mutate(_set_password("2", "bob"))
        await bob.save()

        changed = await alice.poll()

        assert changed
        assert alice.document.passwords == {"2": "bob"}
        assert not alice.dirty

        alice.mutate(_set_password("1", "alice"))
        assert (await alice.save()).outcome is SaveOutcome.SAVED

    async def test_poll_skipped_while_dirty(self, store):
        alice = await _loaded(store)
        bob = await _loaded(store)
        bob.mutate(_set_password("2", "bob"))
        await bob.save()
        alice.mutate(_set_password("1", "alice"))

        assert not await alice.poll()
        assert alice.document.passwords == {"1": "alice"}

    async def test_poll_without_remote_change(self, client):
        assert not await client.poll()

    async def test_poll_swallows_fetch_errors(self, client, store):
        store.fail_fetch = True
        assert not await client.poll()
