"""Flat runtime configuration for LeaveSync clients and servers.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    LEAVESYNC_STORE_URL: HTTP endpoint of the shared blob (``.../api/data``)
    LEAVESYNC_STORE_PATH: Directory for the file-backed store (used when no URL)
    LEAVESYNC_BLOB_KEY: Key of the shared blob (default: leavesync-data.json)
    LEAVESYNC_SYNC_MODE: ``manual`` (default) or ``auto``
    LEAVESYNC_POLL_INTERVAL: Seconds between remote polls in auto mode (default: 15)
    LEAVESYNC_AUTOSAVE_DELAY: Quiet period before auto-save in seconds (default: 2)
    LEAVESYNC_ECHO_WINDOW: Seconds after a save during which polls are skipped (default: 5)
    LEAVESYNC_TIMEOUT: HTTP timeout in seconds (default: 10)
    LEAVESYNC_INSECURE: Skip SSL verification (optional, default: false)
    LEAVESYNC_PREFS_PATH: Device preference file (default: ~/.config/leavesync/device.json)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_BLOB_KEY = "leavesync-data.json"
DEFAULT_STORE_PATH = ".leavesync/store"
DEFAULT_PREFS_PATH = str(Path.home() / ".config" / "leavesync" / "device.json")
SYNC_MODES = ("manual", "auto")


@dataclass
class Config:
    store_url: str | None = None
    store_path: str = DEFAULT_STORE_PATH
    blob_key: str = DEFAULT_BLOB_KEY
    sync_mode: str = "manual"
    poll_interval: float = 15.0
    autosave_delay: float = 2.0
    echo_window: float = 5.0
    timeout: float = 10.0
    insecure: bool = False
    debug: bool = False
    prefs_path: str = DEFAULT_PREFS_PATH
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    @property
    def backend(self) -> str:
        """``http`` when a store URL is configured, otherwise ``file``."""
        return "http" if self.store_url else "file"


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the store URL, blob key, sync mode or a timing value
            is invalid.
    """
    if config.store_url is not None:
        config.store_url = config.store_url.strip()
        if not config.store_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid store URL '{config.store_url}': must start with http:// or https://"
            )
        parsed = urlparse(config.store_url)
        if not parsed.hostname:
            raise ValueError(
                f"Invalid store URL '{config.store_url}': URL must include a hostname"
            )
        config.store_url = config.store_url.removesuffix("/")

    config.blob_key = config.blob_key.strip()
    if not config.blob_key or "/" in config.blob_key or ".." in config.blob_key:
        raise ValueError(
            f"Invalid blob key '{config.blob_key}': must be a plain, non-empty file name"
        )

    if config.sync_mode not in SYNC_MODES:
        raise ValueError(
            f"Invalid sync mode '{config.sync_mode}': must be one of {', '.join(SYNC_MODES)}"
        )

    for name in ("poll_interval", "autosave_delay", "echo_window", "timeout"):
        if getattr(config, name) <= 0:
            raise ValueError(f"Invalid {name} '{getattr(config, name)}': must be positive")

    if config.sync_mode == "auto" and config.echo_window >= config.poll_interval * 4:
        logger.warning(
            "echo_window (%.1fs) spans several poll cycles (%.1fs); remote changes will be picked up late",
            config.echo_window,
            config.poll_interval,
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_float_env(key: str, low: float, high: float) -> float | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low:g} and {high:g}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low:g} and {high:g}"
        )
    return value


def load_config(
    store_url: str | None = None,
    store_path: str | None = None,
    sync_mode: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        store_url: Override store URL.
        store_path: Override file store directory.
        sync_mode: Override sync mode (``manual`` or ``auto``).
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML ``store``, ``sync``
            and ``server`` sections, used when CLI arg and env var are unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If any resolved value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_url = store_url or os.getenv("LEAVESYNC_STORE_URL") or fb.get("url")
    final_path = (
        store_path
        or os.getenv("LEAVESYNC_STORE_PATH")
        or fb.get("path")
        or DEFAULT_STORE_PATH
    )
    final_key = os.getenv("LEAVESYNC_BLOB_KEY") or fb.get("key") or DEFAULT_BLOB_KEY
    final_mode = (
        sync_mode
        or os.getenv("LEAVESYNC_SYNC_MODE")
        or fb.get("mode")
        or "manual"
    ).strip().lower()
    final_prefs = (
        os.getenv("LEAVESYNC_PREFS_PATH") or fb.get("prefs_path") or DEFAULT_PREFS_PATH
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("LEAVESYNC_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("LEAVESYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    def _number(env_key: str, yaml_key: str, default: float, low: float, high: float) -> float:
        env_val = _get_float_env(env_key, low, high)
        if env_val is not None:
            return env_val
        if yaml_key in fb:
            return float(fb[yaml_key])
        return default

    config = Config(
        store_url=final_url,
        store_path=final_path,
        blob_key=final_key,
        sync_mode=final_mode,
        poll_interval=_number("LEAVESYNC_POLL_INTERVAL", "poll_interval", 15.0, 1, 3600),
        autosave_delay=_number("LEAVESYNC_AUTOSAVE_DELAY", "autosave_delay", 2.0, 0.1, 600),
        echo_window=_number("LEAVESYNC_ECHO_WINDOW", "echo_window", 5.0, 0.1, 3600),
        timeout=_number("LEAVESYNC_TIMEOUT", "timeout", 10.0, 1, 300),
        insecure=final_insecure,
        debug=final_debug,
        prefs_path=final_prefs,
        server_host=os.getenv("LEAVESYNC_HOST") or fb.get("host") or "127.0.0.1",
        server_port=int(os.getenv("LEAVESYNC_PORT") or fb.get("port") or 8000),
    )

    validate_config(config)

    return config
