"""Local key/value store backed by one JSON file per key."""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from client_tracker.application.interfaces import LocalStore
from client_tracker.domain.exceptions import LocalPersistenceError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileStore(LocalStore):
    """Stores each key as ``<storage_dir>/<key>.json``.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write never leaves a truncated file behind.
    """

    def __init__(self, storage_dir: str | Path):
        self._root = Path(storage_dir)

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise LocalPersistenceError(key, "invalid storage key")
        return self._root / f"{key}.json"

    def read(self, key: str) -> Any | None:
        path = self._path_for(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise LocalPersistenceError(key, str(exc)) from exc

        try:
            return json.loads(text)
        except ValueError as exc:
            raise LocalPersistenceError(key, f"corrupt JSON: {exc}") from exc

    def write(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        try:
            encoded = json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as exc:
            raise LocalPersistenceError(key, f"value is not serializable: {exc}") from exc

        tmp_name = None
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self._root)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(encoded)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise LocalPersistenceError(key, str(exc)) from exc

        logger.debug("Stored %s (%d bytes)", path.name, len(encoded))
