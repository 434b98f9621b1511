"""Unified configuration schema for leavesync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the document store, the sync model, the HTTP server and
logging.  ``to_fallbacks()`` flattens a validated config into the dict
that ``config.load_config()`` consumes as its lowest-precedence source.

Usage:
    from leavesync.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StoreConfig(BaseModel):
    """Document store settings.

    ``url`` selects the HTTP store; without it the file store rooted at
    ``path`` is used.
    """

    url: str | None = Field(default=None, description="HTTP data endpoint URL")
    path: str | None = Field(
        default=None, description="Directory of the file-backed store"
    )
    key: str | None = Field(default=None, description="Blob key")
    timeout: float = Field(
        default=10.0, gt=0, le=300, description="HTTP timeout in seconds"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Sync model selection and auto-sync timings."""

    mode: Literal["manual", "auto"] = Field(
        default="manual", description="Sync model"
    )
    poll_interval: float = Field(
        default=15.0, ge=1, le=3600, description="Seconds between polls"
    )
    autosave_delay: float = Field(
        default=2.0, gt=0, le=600, description="Debounce before auto-save"
    )
    echo_window: float = Field(
        default=5.0, gt=0, le=3600, description="Poll suppression after save"
    )
    prefs_path: str | None = Field(
        default=None, description="Device preference file"
    )

    model_config = {"frozen": True}


class ServerConfig(BaseModel):
    """HTTP data endpoint settings."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            ``None`` keeps the entry point's default.
        file: Optional log file path.
        debug: Force DEBUG level.
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get their defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten the store, sync, server and logging sections into the
    ``yaml_fallbacks`` dict understood by ``load_config()``.

    ``None`` values are dropped so they never shadow built-in defaults.
    """
    flat: dict[str, Any] = {}
    flat.update(unified.store.model_dump())
    flat.update(unified.sync.model_dump())
    flat.update(unified.server.model_dump())
    flat["debug"] = unified.logging.debug
    return {k: v for k, v in flat.items() if v is not None}
