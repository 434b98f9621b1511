"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, to_fallbacks
from ..core.store import build_store
from ..prefs import DevicePreferences
from ..session import SchedulingSession
from ..sync import AutoSync, SyncClient, format_load_result

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Build the document store and sync client, then run the initial load
    - Restore the device's last user and start auto-sync when configured

    A store that cannot be reached does not stop startup: the initial
    load falls back to the built-in defaults and the failure is reported.

    On shutdown:
    - Stop auto-sync; unsaved edits are logged, never written implicitly

    Args:
        config_overrides: Optional dict with config values from CLI
            (store_url, store_path, sync_mode, insecure, debug)

    Yields:
        Dict with 'session', 'client' and 'autosync' (None in manual mode)

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("LeaveSync MCP Server starting...")

    try:
        load_dotenv()

        yaml_fallbacks: dict[str, Any] | None = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            config_path = config_files[0]
            unified = build_config(load_hierarchical_config())
            yaml_fallbacks = to_fallbacks(unified)
            sources.append(f"config file: {config_path}")

        overrides = config_overrides or {}
        config = load_config(
            store_url=overrides.get("store_url"),
            store_path=overrides.get("store_path"),
            sync_mode=overrides.get("sync_mode"),
            insecure=overrides.get("insecure", False),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        target = config.store_url or config.store_path
        logger.info("Store: %s (%s)", target, config.backend)
        _stderr_print(f"  Store: {target} ({config.backend})")
    except (ValueError, TypeError) as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Check LEAVESYNC_STORE_URL / LEAVESYNC_STORE_PATH.")
        raise RuntimeError(f"Configuration error: {e}") from e

    store = build_store(config)
    client = SyncClient(store, key=config.blob_key)
    session = SchedulingSession(client, prefs=DevicePreferences(config.prefs_path))

    result = await client.load()
    summary = format_load_result(result)
    logger.info(summary)
    _stderr_print(f"  {summary}")
    user = session.restore_user()
    if user is not None:
        _stderr_print(f"  Active user: {user.name}")

    autosync: AutoSync | None = None
    if config.sync_mode == "auto":
        autosync = AutoSync(
            client,
            poll_interval=config.poll_interval,
            autosave_delay=config.autosave_delay,
            echo_window=config.echo_window,
        )
        autosync.start()
        _stderr_print(f"  Auto-sync: polling every {config.poll_interval:g}s")
    else:
        _stderr_print("  Sync mode: manual (use sync_save / sync_refresh)")

    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"session": session, "client": client, "autosync": autosync}
    finally:
        if autosync is not None:
            await autosync.stop()
        if client.dirty:
            logger.warning("Shutting down with unsaved changes")
            _stderr_print("WARNING: unsaved changes were discarded.")
        logger.info("MCP server shutting down")
        _stderr_print("LeaveSync MCP Server shutting down.")
