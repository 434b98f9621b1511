"""Logging setup for the two LeaveSync entry points.

``leavesync-mcp`` speaks MCP over stdio, so it logs to a file and never to
stdout.  ``leavesync-server`` logs to stderr (plus an optional file) and
lets uvicorn's loggers propagate into the same handlers, so request
errors and sync messages share one format.

Level precedence: ``debug`` flag > ``LOG_LEVEL`` env var > configured
level (``logging.level`` in YAML) > per-mode default.
"""

import logging
import os
import sys

DEFAULT_LOG_FILE = "/tmp/leavesync.log"

MODE_DEFAULT_LEVELS = {"mcp": "WARNING", "http": "INFO"}

_TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
_FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty below WARNING: HTTP client internals and one line per request.
_QUIET_LOGGERS = ("urllib3", "httpx", "httpcore", "uvicorn.access")
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def resolve_level(mode: str, debug: bool = False, level: str | None = None) -> int:
    """Numeric log level for *mode*.

    An unknown level name falls back to the mode default instead of failing
    startup.
    """
    if debug:
        return logging.DEBUG
    default = MODE_DEFAULT_LEVELS[mode]
    name = (os.getenv("LOG_LEVEL") or level or default).upper()
    resolved = logging.getLevelName(name)
    if isinstance(resolved, int):
        return resolved
    return logging.getLevelName(default)


def _file_handler(path: str) -> logging.Handler:
    # delay: the file is created on the first record, not at startup
    handler = logging.FileHandler(path, mode="a", delay=True)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def setup_logging(
    mode: str = "http",
    debug: bool = False,
    level: str | None = None,
    log_file: str | None = None,
) -> int:
    """Configure the root logger for *mode* ("mcp" or "http").

    In ``mcp`` mode the file is *log_file*, else ``LOG_FILE``, else
    ``DEFAULT_LOG_FILE``.  In ``http`` mode *log_file* adds a file next to
    stderr.

    Returns:
        The level that was applied.

    Raises:
        ValueError: Unknown *mode*.
    """
    if mode not in MODE_DEFAULT_LEVELS:
        raise ValueError(f"Unknown logging mode: {mode!r}")
    log_level = resolve_level(mode, debug=debug, level=level)

    handlers: list[logging.Handler] = []
    if mode == "mcp":
        handlers.append(_file_handler(log_file or os.getenv("LOG_FILE") or DEFAULT_LOG_FILE))
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt=_DATE_FORMAT))
        handlers.append(stderr_handler)
        if log_file:
            handlers.append(_file_handler(log_file))
        # uvicorn.run(log_config=None) leaves these unconfigured
        for name in _UVICORN_LOGGERS:
            uvicorn_logger = logging.getLogger(name)
            uvicorn_logger.handlers.clear()
            uvicorn_logger.propagate = True

    logging.basicConfig(level=log_level, handlers=handlers)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.NOTSET if log_level == logging.DEBUG else logging.WARNING
        )
    return log_level
