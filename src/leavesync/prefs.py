"""Device-scoped preferences (which user last used this device, ...).

Values live in a small JSON file on the local machine and are never sent
to the document store.  Reads fall back on any error; failed writes are
logged and otherwise ignored, since a lost preference only costs the
user one extra click.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "leavesync_currentUserId"


class DevicePreferences:
    """JSON-file key/value store for one device.

    Args:
        path: Preference file.  Created with its parent directory on the
            first ``set()``.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def _read_all(self) -> dict[str, Any]:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable preferences %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, fallback: Any = None) -> Any:
        """Return the stored value for *key*, or *fallback*."""
        return self._read_all().get(key, fallback)

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* (atomic file replace)."""
        data = self._read_all()
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Could not save preference %s: %s", key, exc)
