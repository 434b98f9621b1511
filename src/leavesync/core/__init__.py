"""Document store transports shared by the sync client and the HTTP server."""

from .async_utils import run_sync
from .client import HttpDocumentStore
from .store import (
    DocumentStore,
    FileDocumentStore,
    MemoryDocumentStore,
    build_store,
)

__all__ = [
    "DocumentStore",
    "FileDocumentStore",
    "HttpDocumentStore",
    "MemoryDocumentStore",
    "build_store",
    "run_sync",
]
