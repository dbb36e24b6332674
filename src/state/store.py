from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable


logger = logging.getLogger(__name__)

DEFAULT_STORE_DIR_ENV = "RESUME_STORE_DIR"


def _default_store_file() -> Path:
    # Prefer explicit env var, else project-local .cache folder
    base = os.environ.get(DEFAULT_STORE_DIR_ENV)
    if base:
        return Path(base) / "resume_state.json"
    return Path(".cache") / "resume_state.json"


@runtime_checkable
class StateStore(Protocol):
    """Durable keyed string store scoped to one device.

    Access is synchronous and single-threaded; every operation is an
    independent single-key write.
    """

    def get(self, key: str) -> str:
        """Return the stored value, or "" when the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class MemoryStateStore:
    """Dict-backed store. Not durable; useful for tests and embedding."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str:
        return self._data.get(key, "")

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStateStore:
    """
    Store backed by a single JSON object file: { key: value, ... }.

    - Loaded lazily on first access; non-string values in the file are ignored.
    - A corrupt or unreadable file is treated as empty (and logged).
    - Every mutation rewrites the file atomically (temp file + rename).
      Write failures propagate to the caller.
    """

    def __init__(self, path: Optional[os.PathLike[str] | str] = None) -> None:
        self._path = Path(path) if path else _default_store_file()
        self._data: Dict[str, str] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if not self._path.exists():
            return
        try:
            with self._path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as ex:
            # Corrupt store: start fresh; the next write replaces the file
            logger.warning("Ignoring unreadable state file %s: %s", self._path, ex)
            return
        if isinstance(raw, dict):
            self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
        else:
            logger.warning("Ignoring state file %s: top-level value is not an object", self._path)

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=str(self._path.parent),
            prefix=".tmp_state_",
            suffix=self._path.suffix or ".json",
            text=True,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True, ensure_ascii=False)
                f.write("\n")
            os.replace(temp_path, self._path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def get(self, key: str) -> str:
        self._ensure_loaded()
        return self._data.get(key, "")

    def set(self, key: str, value: str) -> None:
        self._ensure_loaded()
        self._data[key] = value
        self._save()

    def delete(self, key: str) -> None:
        self._ensure_loaded()
        if key in self._data:
            del self._data[key]
            self._save()

    def keys(self) -> List[str]:
        self._ensure_loaded()
        return list(self._data)
