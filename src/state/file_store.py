from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional


logger = logging.getLogger(__name__)


class JsonFileStore:
    """
    Tiny JSON-file key-value store: { "<namespace>.<key>": "<serialized>", ... }.

    - Loaded lazily on first access; a corrupt or unreadable file is ignored
      and the store starts empty.
    - Every mutation rewrites the whole file. Save failures propagate to the
      caller; the `Storage` adapter treats them as best-effort.
    - Not safe for concurrent writers in different processes (last writer wins).
    """

    def __init__(self, path: os.PathLike[str] | str) -> None:
        self._path = Path(path)
        self._data: Dict[str, str] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
        except (OSError, ValueError) as exc:
            logger.warning("ignoring unreadable storage file %s: %s", self._path, exc)
            self._data = {}

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, sort_keys=True)

    def get_item(self, key: str) -> Optional[str]:
        self._ensure_loaded()
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._ensure_loaded()
        self._data[key] = value
        self._save()

    def remove_item(self, key: str) -> None:
        self._ensure_loaded()
        if self._data.pop(key, None) is not None:
            self._save()


__all__ = ["JsonFileStore"]
