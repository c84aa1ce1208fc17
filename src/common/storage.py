from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Protocol


logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "fhevm"
ENV_STORAGE_DIR = "FHEVM_STORAGE_DIR"

BIGINT_PREFIX = "bigint::"
BYTES_PREFIX = "uint8array::"

# Integers beyond this magnitude are tagged so that readers limited to
# double-precision numbers do not silently round them.
MAX_SAFE_INTEGER = 2**53 - 1


class BaseStore(Protocol):
    """Minimal string key-value store the adapter writes through."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class NoopStore:
    """Store used when nothing durable is available; reads always miss."""

    def get_item(self, key: str) -> Optional[str]:
        return None

    def set_item(self, key: str, value: str) -> None:
        return None

    def remove_item(self, key: str) -> None:
        return None


class MemoryStore:
    """Process-local dict store. Handy for tests and short-lived scripts."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def __len__(self) -> int:
        return len(self._data)


# -------- Serialization --------
def _encode(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        if abs(value) > MAX_SAFE_INTEGER:
            return f"{BIGINT_PREFIX}{value}"
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BYTES_PREFIX + ",".join(str(b) for b in bytes(value))
    if isinstance(value, dict):
        return {str(k): _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, str):
        if value.startswith(BIGINT_PREFIX):
            return int(value[len(BIGINT_PREFIX):])
        if value.startswith(BYTES_PREFIX):
            body = value[len(BYTES_PREFIX):]
            if not body:
                return b""
            return bytes(int(n) for n in body.split(","))
        return value
    if isinstance(value, dict):
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def default_serialize(value: Any) -> str:
    """JSON-encode `value`, tagging big integers and byte buffers first."""
    return json.dumps(_encode(value), separators=(",", ":"), sort_keys=True)


def default_deserialize(data: str) -> Any:
    return _decode(json.loads(data))


# -------- Adapter --------
class Storage:
    """
    Namespaced, serializing facade over a `BaseStore`.

    Every logical key is stored as "<namespace>.<key>". Writes are
    best-effort: a failing backend (quota, permissions, network) is logged
    and ignored so callers can treat storage as always present. Reads that
    fail or hold undecodable data return the caller's default.
    """

    def __init__(
        self,
        store: Optional[BaseStore] = None,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        serialize: Callable[[Any], str] = default_serialize,
        deserialize: Callable[[str], Any] = default_deserialize,
    ) -> None:
        self._store: BaseStore = store if store is not None else NoopStore()
        self._namespace = namespace
        self._serialize = serialize
        self._deserialize = deserialize

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def store(self) -> BaseStore:
        return self._store

    def key_for(self, key: str) -> str:
        return f"{self._namespace}.{key}"

    def get(self, key: str, default: Any = None) -> Any:
        full = self.key_for(key)
        try:
            raw = self._store.get_item(full)
        except Exception as exc:
            logger.warning("storage read failed for %s: %s", full, exc)
            return default
        if not raw:
            return default
        try:
            value = self._deserialize(raw)
        except Exception as exc:
            logger.warning("discarding undecodable value at %s: %s", full, exc)
            return default
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self.remove(key)
            return
        full = self.key_for(key)
        try:
            self._store.set_item(full, self._serialize(value))
        except Exception as exc:
            logger.warning("storage write ignored for %s: %s", full, exc)

    def remove(self, key: str) -> None:
        full = self.key_for(key)
        try:
            self._store.remove_item(full)
        except Exception as exc:
            logger.warning("storage remove ignored for %s: %s", full, exc)


def get_default_store() -> BaseStore:
    """JSON file store when FHEVM_STORAGE_DIR is set, otherwise a no-op store."""
    base = os.environ.get(ENV_STORAGE_DIR)
    if base:
        from state.file_store import JsonFileStore

        return JsonFileStore(os.path.join(base, "fhevm-storage.json"))
    return NoopStore()


__all__ = [
    "BaseStore",
    "NoopStore",
    "MemoryStore",
    "Storage",
    "default_serialize",
    "default_deserialize",
    "get_default_store",
    "DEFAULT_NAMESPACE",
    "BIGINT_PREFIX",
    "BYTES_PREFIX",
]
