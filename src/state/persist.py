from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from common.storage import Storage

from .observable import ObservableStore


logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistedStore(Generic[T]):
    """
    Persistence decorator around an `ObservableStore`.

    - Every state change writes `{"state": partialize(state), "version": N}`
      under the logical key `name` (best-effort; see `Storage`).
    - `rehydrate()` reads the envelope back and hands the persisted slice to
      `merge(persisted, current)`; a missing, corrupt or version-mismatched
      envelope merges `None` so `merge` can apply its own defaults.
    - With `skip_hydration=True` nothing is read until `rehydrate()` is called.
    """

    def __init__(
        self,
        store: ObservableStore[T],
        storage: Storage,
        *,
        name: str,
        version: int,
        partialize: Callable[[T], Dict[str, Any]],
        merge: Callable[[Optional[Dict[str, Any]], T], T],
        skip_hydration: bool = False,
    ) -> None:
        self._store = store
        self._storage = storage
        self._name = name
        self._version = version
        self._partialize = partialize
        self._merge = merge
        self._hydrated = False
        self._hydrating = False
        store.subscribe(self._on_change)
        if not skip_hydration:
            self.rehydrate()

    def has_hydrated(self) -> bool:
        return self._hydrated

    def rehydrate(self) -> None:
        persisted = self._read()
        self._hydrating = True
        try:
            self._store.set_state(lambda current: self._merge(persisted, current))
        finally:
            self._hydrating = False
        self._hydrated = True
        # Persist the merged result so a discarded envelope is replaced.
        self._write(self._store.get_state())

    # -------- Internal --------
    def _read(self) -> Optional[Dict[str, Any]]:
        envelope = self._storage.get(self._name)
        if envelope is None:
            return None
        if not isinstance(envelope, dict) or not isinstance(envelope.get("state"), dict):
            logger.warning("discarding persisted %s: unexpected shape", self._name)
            return None
        version = envelope.get("version", 0)
        if version != self._version:
            logger.warning(
                "discarding persisted %s: version %s, expected %s", self._name, version, self._version
            )
            return None
        return envelope["state"]

    def _write(self, state: T) -> None:
        self._storage.set(self._name, {"state": self._partialize(state), "version": self._version})

    def _on_change(self, state: T, _prev: T) -> None:
        if self._hydrating:
            return
        self._write(state)


__all__ = ["PersistedStore"]
