"""Document store contract and the local store implementations.

A document store holds whole JSON blobs addressed by a stable key.  It
supports exactly two operations:

* ``fetch_latest(key)`` -- the most recently written document, or
  ``None`` when nothing has been written yet.  Must bypass caches.
* ``write_full(key, document)`` -- replace the blob wholesale.

There is no versioning and no conditional write, so callers that need
conflict detection compare the fetched document against their own
baseline before writing.

Implementations raise ``StoreError`` for every transport or storage
failure; no other exception type escapes a store.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from ..errors import StoreError

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentStore(Protocol):
    """Key to blob store used by the sync client."""

    def fetch_latest(self, key: str) -> Any | None: ...

    def write_full(
        self,
        key: str,
        document: Any,
        *,
        public: bool = True,
        content_type: str = "application/json",
        allow_overwrite: bool = True,
        add_random_suffix: bool = False,
    ) -> None: ...


def encode_blob(document: Any) -> str:
    """Serialize a document the way it is stored: compact JSON, key order kept."""
    return json.dumps(document, ensure_ascii=False, separators=(",", ":"))


class MemoryDocumentStore:
    """In-process store keeping encoded blobs in a dict.

    Each fetch decodes a fresh copy, so callers never share mutable state
    with the store.
    """

    def __init__(self, blobs: dict[str, str] | None = None) -> None:
        self._blobs: dict[str, str] = dict(blobs or {})
        self._lock = threading.Lock()

    def fetch_latest(self, key: str) -> Any | None:
        with self._lock:
            raw = self._blobs.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def write_full(
        self,
        key: str,
        document: Any,
        *,
        public: bool = True,
        content_type: str = "application/json",
        allow_overwrite: bool = True,
        add_random_suffix: bool = False,
    ) -> None:
        if add_random_suffix:
            raise StoreError("Random key suffixes are not supported", key)
        with self._lock:
            if key in self._blobs and not allow_overwrite:
                raise StoreError(f"Blob '{key}' already exists", key)
            self._blobs[key] = encode_blob(document)

    def raw(self, key: str) -> str | None:
        """Return the stored blob text for *key* (``None`` if absent)."""
        with self._lock:
            return self._blobs.get(key)


class FileDocumentStore:
    """Store one JSON file per key under *root*.

    Writes go to a temp file in the same directory followed by
    ``os.replace()`` so readers never observe a partial blob.

    Args:
        root: Directory holding the blobs.  Created on first write.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or ".." in key:
            raise StoreError(f"Invalid blob key '{key}'", key)
        return self.root / key

    def fetch_latest(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            with open(path, encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Failed to read blob '{key}': {exc}", key) from exc

    def write_full(
        self,
        key: str,
        document: Any,
        *,
        public: bool = True,
        content_type: str = "application/json",
        allow_overwrite: bool = True,
        add_random_suffix: bool = False,
    ) -> None:
        if add_random_suffix:
            raise StoreError("Random key suffixes are not supported", key)
        if content_type != "application/json":
            raise StoreError(f"Unsupported content type '{content_type}'", key)
        target = self._path(key)
        if target.exists() and not allow_overwrite:
            raise StoreError(f"Blob '{key}' already exists", key)

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.root), suffix=".tmp")
        except OSError as exc:
            raise StoreError(f"Failed to write blob '{key}': {exc}", key) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(encode_blob(document))
            os.replace(tmp_path, target)
        except BaseException as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(exc, (OSError, TypeError, ValueError)):
                raise StoreError(f"Failed to write blob '{key}': {exc}", key) from exc
            raise
        if public:
            # Blobs are world-readable, matching the public-read contract.
            os.chmod(target, 0o644)
        logger.debug("Wrote blob %s (%s)", key, target)


def build_store(config: Config) -> DocumentStore:
    """Create the store selected by *config* (HTTP when a URL is set)."""
    if config.backend == "http":
        from .client import HttpDocumentStore

        assert config.store_url is not None
        return HttpDocumentStore(
            config.store_url, timeout=config.timeout, insecure=config.insecure
        )
    return FileDocumentStore(config.store_path)
