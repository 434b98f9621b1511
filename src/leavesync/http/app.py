"""FastAPI app serving the shared document at ``/data``.

The endpoint is deliberately dumb: it reads and replaces one blob and
knows nothing about conflicts.  Conflict detection happens in each
``SyncClient`` (fetch, compare with baseline, then PUT).

    GET     -> 200 document, or 200 null when absent or unreadable
    PUT     -> 200 {"ok": true}, or 500 {"error": "Failed to save data"}
    OPTIONS -> 200
    other   -> 405 {"error": "Method not allowed"}
"""

import json
import logging

from fastapi import FastAPI, Request, Response
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import DEFAULT_BLOB_KEY
from ..core.async_utils import run_sync
from ..core.store import DocumentStore

logger = logging.getLogger(__name__)

DATA_PATH = "/data"
ALLOWED_METHODS = ["GET", "PUT", "OPTIONS"]


def create_app(store: DocumentStore, key: str = DEFAULT_BLOB_KEY) -> FastAPI:
    """Build the app around *store*, serving the blob under *key*."""
    app = FastAPI(title="LeaveSync shared document", version=__version__)
    app.state.store = store
    app.state.blob_key = key

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=ALLOWED_METHODS,
        allow_headers=["Content-Type"],
    )

    @app.get(DATA_PATH)
    async def read_data() -> JSONResponse:
        try:
            document = await run_sync(store.fetch_latest, key)
        except Exception as e:
            logger.error("Error reading blob %s: %s", key, e)
            document = None
        return JSONResponse(document)

    @app.put(DATA_PATH)
    async def write_data(request: Request) -> JSONResponse:
        try:
            document = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
        try:
            await run_sync(
                store.write_full,
                key,
                document,
                public=True,
                content_type="application/json",
                allow_overwrite=True,
                add_random_suffix=False,
            )
        except Exception as e:
            logger.error("Error writing blob %s: %s", key, e)
            return JSONResponse({"error": "Failed to save data"}, status_code=500)
        logger.info("Stored shared document %s", key)
        return JSONResponse({"ok": True})

    @app.options(DATA_PATH)
    async def preflight() -> Response:
        return Response(status_code=200)

    @app.exception_handler(StarletteHTTPException)
    async def method_not_allowed(request: Request, exc: StarletteHTTPException) -> Response:
        # Any method without a route on DATA_PATH lands here, TRACE included.
        if exc.status_code == 405:
            return JSONResponse(
                {"error": "Method not allowed"}, status_code=405, headers=exc.headers
            )
        return await http_exception_handler(request, exc)

    return app
