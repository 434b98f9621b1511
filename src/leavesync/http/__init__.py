"""HTTP variant of the document store: a FastAPI app served by uvicorn."""

from .app import create_app

__all__ = ["create_app"]
