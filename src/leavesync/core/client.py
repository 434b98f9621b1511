"""HTTP document store talking to a LeaveSync ``/data`` endpoint."""

import json
import logging
import threading
import time
from typing import Any

import requests

from ..errors import StoreError

logger = logging.getLogger(__name__)


class HttpDocumentStore:
    """Document store backed by the HTTP data endpoint.

    The endpoint serves exactly one blob, so ``key`` only labels errors
    and log lines.  Reads append a cache-busting ``t`` parameter and send
    ``Cache-Control: no-store`` so CDN or proxy copies are never returned.

    Args:
        url: Full endpoint URL, e.g. ``https://example.com/api/data``.
        timeout: Per-request timeout in seconds (connect and read).
        insecure: Disable SSL certificate verification.
    """

    def __init__(self, url: str, timeout: float = 10.0, insecure: bool = False):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.insecure = insecure
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = not self.insecure
        session.headers.update({"Accept": "application/json"})
        return session

    def fetch_latest(self, key: str) -> Any | None:
        """GET the current document; ``None`` when the endpoint has none yet."""
        try:
            response = self._get_session().get(
                self.url,
                params={"t": int(time.time() * 1000)},
                headers={"Cache-Control": "no-store"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            logger.debug("Fetch of %s failed: %s", key, exc)
            raise StoreError(f"Failed to fetch '{key}': {exc}", key) from exc
        except json.JSONDecodeError as exc:
            raise StoreError(f"Endpoint returned invalid JSON for '{key}': {exc}", key) from exc

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
        """PUT the whole document.

        Blob options (public access, no random suffix, overwrite) are
        fixed server-side; values the endpoint cannot honour are rejected.
        """
        if add_random_suffix or not allow_overwrite:
            raise StoreError(
                "The HTTP endpoint always overwrites a stable key", key
            )
        try:
            response = self._get_session().put(
                self.url,
                data=json.dumps(document, ensure_ascii=False, separators=(",", ":")).encode("utf-8"),
                headers={"Content-Type": content_type},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StoreError(f"Cloud save failed: {exc}", key) from exc

        if not response.ok:
            detail = response.text or response.reason or "Unknown error"
            raise StoreError(f"Cloud save failed: {detail}", key)
