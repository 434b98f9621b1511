"""``leavesync-server``: serve the shared document over HTTP with uvicorn.

Configuration follows the same precedence as the MCP server
(CLI > env vars / .env > YAML > defaults).  The blob lives in a
``FileDocumentStore`` under ``--store-path``.
"""

import argparse
import logging
import sys

import uvicorn
from dotenv import load_dotenv

from .. import __version__
from ..config import load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import LoggingConfig, build_config, to_fallbacks
from ..core.store import FileDocumentStore
from ..logger import setup_logging
from .app import create_app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leavesync-server",
        description="Serve the LeaveSync shared document at /data",
    )
    parser.add_argument("--host", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Port (default: 8000)")
    parser.add_argument(
        "--store-path", help="Directory holding the document file"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file", help="Also write logs to this file"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"leavesync-server version {__version__}",
    )
    return parser


def run(argv: list[str] | None = None) -> None:
    """Entry point for ``leavesync-server``."""
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        fallbacks = None
        log_config = LoggingConfig()
        if discover_config_files():
            unified = build_config(load_hierarchical_config())
            fallbacks = to_fallbacks(unified)
            log_config = unified.logging
        config = load_config(
            store_path=args.store_path,
            debug=args.debug,
            yaml_fallbacks=fallbacks,
        )
    except (ValueError, TypeError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(
        mode="http",
        debug=config.debug,
        level=log_config.level,
        log_file=args.log_file or log_config.file,
    )

    host = args.host or config.server_host
    port = args.port or config.server_port
    store = FileDocumentStore(config.store_path)
    logger.info(
        "Serving %s from %s on http://%s:%d/data",
        config.blob_key,
        config.store_path,
        host,
        port,
    )
    uvicorn.run(
        create_app(store, config.blob_key),
        host=host,
        port=port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
