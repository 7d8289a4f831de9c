"""Key-value persistence backing the content cache and results sink."""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
import re
import tempfile
from threading import Lock
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Dict-backed store; values are deep-copied so callers cannot alias stored state."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any | None:
        value = self._values.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._values)


class JsonFileStore:
    """Stores each key as one JSON document inside a data directory."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory.expanduser()
        self._directory.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        path = self._path_for(key)
        with self._lock:
            if not path.exists():
                return None
            text = path.read_text(encoding="utf-8")
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable document for key %s", key)
            return None

    def set(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        payload = json.dumps(value, ensure_ascii=False, indent=2)
        with self._lock:
            fd, temp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(temp_name, path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise

    def delete(self, key: str) -> None:
        with self._lock:
            self._path_for(key).unlink(missing_ok=True)

    def _path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"
