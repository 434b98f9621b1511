"""Tests for leavesync.core.store -- memory and file document stores."""

import json
import os
import stat

import pytest

from leavesync.config import Config
from leavesync.core.client import HttpDocumentStore
from leavesync.core.store import (
    DocumentStore,
    FileDocumentStore,
    MemoryDocumentStore,
    build_store,
    encode_blob,
)
from leavesync.errors import StoreError

KEY = "leavesync-data.json"
DOC = {"users": [{"id": 1, "name": "Alice Tan"}], "leaves": [], "duties": []}


def test_encode_blob_is_compact_and_keeps_key_order():
    assert encode_blob({"b": 1, "a": "é"}) == '{"b":1,"a":"é"}'


# -------------------------------------------------------------------------
# MemoryDocumentStore
# -------------------------------------------------------------------------


class TestMemoryDocumentStore:
    def test_satisfies_protocol(self):
        assert isinstance(MemoryDocumentStore(), DocumentStore)

    def test_missing_key_returns_none(self):
        assert MemoryDocumentStore().fetch_latest(KEY) is None

    def test_write_then_fetch(self):
        store = MemoryDocumentStore()
        store.write_full(KEY, DOC)

        assert store.fetch_latest(KEY) == DOC
        assert store.raw(KEY) == encode_blob(DOC)

    def test_fetch_returns_independent_copies(self):
        store = MemoryDocumentStore()
        store.write_full(KEY, DOC)

        first = store.fetch_latest(KEY)
        first["users"].clear()

        assert store.fetch_latest(KEY) == DOC

    def test_overwrite_refused_when_disallowed(self):
        store = MemoryDocumentStore({KEY: "{}"})

        with pytest.raises(StoreError, match="already exists"):
            store.write_full(KEY, DOC, allow_overwrite=False)

    def test_random_suffix_unsupported(self):
        with pytest.raises(StoreError) as exc_info:
            MemoryDocumentStore().write_full(KEY, DOC, add_random_suffix=True)
        assert exc_info.value.key == KEY


# -------------------------------------------------------------------------
# FileDocumentStore
# -------------------------------------------------------------------------


class TestFileDocumentStore:
    def test_missing_file_returns_none(self, tmp_path):
        assert FileDocumentStore(tmp_path / "store").fetch_latest(KEY) is None

    def test_write_creates_root_and_file(self, tmp_path):
        root = tmp_path / "store"
        store = FileDocumentStore(root)

        store.write_full(KEY, DOC)

        assert json.loads((root / KEY).read_text(encoding="utf-8")) == DOC
        assert store.fetch_latest(KEY) == DOC

    def test_write_leaves_no_temp_files(self, tmp_path):
        store = FileDocumentStore(tmp_path)
        store.write_full(KEY, DOC)
        store.write_full(KEY, {"users": []})

        assert os.listdir(tmp_path) == [KEY]
        assert store.fetch_latest(KEY) == {"users": []}

    def test_public_blob_is_world_readable(self, tmp_path):
        store = FileDocumentStore(tmp_path)
        store.write_full(KEY, DOC)

        mode = (tmp_path / KEY).stat().st_mode
        assert mode & stat.S_IROTH

    def test_corrupt_file_raises_store_error(self, tmp_path):
        (tmp_path / KEY).write_text("{not json", encoding="utf-8")

        with pytest.raises(StoreError, match="Failed to read"):
            FileDocumentStore(tmp_path).fetch_latest(KEY)

    @pytest.mark.parametrize("key", ["", "a/b.json", "..\\x.json", "../x.json"])
    def test_invalid_keys_rejected(self, tmp_path, key):
        with pytest.raises(StoreError, match="Invalid blob key"):
            FileDocumentStore(tmp_path).fetch_latest(key)

    def test_unsupported_content_type(self, tmp_path):
        with pytest.raises(StoreError, match="Unsupported content type"):
            FileDocumentStore(tmp_path).write_full(KEY, DOC, content_type="text/plain")

    def test_overwrite_refused_when_disallowed(self, tmp_path):
        store = FileDocumentStore(tmp_path)
        store.write_full(KEY, DOC)

        with pytest.raises(StoreError, match="already exists"):
            store.write_full(KEY, {}, allow_overwrite=False)
        assert store.fetch_latest(KEY) == DOC

    def test_unserializable_document_raises_store_error(self, tmp_path):
        store = FileDocumentStore(tmp_path)

        with pytest.raises(StoreError, match="Failed to write"):
            store.write_full(KEY, {"bad": object()})
        assert os.listdir(tmp_path) == []


# -------------------------------------------------------------------------
# build_store()
# -------------------------------------------------------------------------


class TestBuildStore:
    def test_file_backend_by_default(self, tmp_path):
        store = build_store(Config(store_path=str(tmp_path)))

        assert isinstance(store, FileDocumentStore)
        assert store.root == tmp_path

    def test_http_backend_when_url_set(self):
        store = build_store(
            Config(store_url="https://example.com/api/data", timeout=3, insecure=True)
        )

        assert isinstance(store, HttpDocumentStore)
        assert store.url == "https://example.com/api/data"
        assert store.timeout == 3
        assert store.insecure is True
