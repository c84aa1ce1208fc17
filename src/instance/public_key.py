from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from common.storage import Storage


PUBLIC_KEY_STORAGE_KEY = "public-key"


@dataclass(frozen=True)
class PublicKeyMaterial:
    public_key: Optional[Any] = None
    public_params: Optional[Any] = None

    @property
    def empty(self) -> bool:
        return self.public_key is None and self.public_params is None


class PublicKeyCache:
    """
    Network public key / public params, cached per ACL address.

    Stored as one mapping under "<namespace>.public-key":
        { "<acl address, lower-case>": {"publicKey": ..., "publicParams": ...} }
    Updates are read-modify-write; concurrent writers race and the last wins.
    """

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def _entries(self) -> Dict[str, Any]:
        raw = self._storage.get(PUBLIC_KEY_STORAGE_KEY, {})
        return raw if isinstance(raw, dict) else {}

    def get(self, acl_address: str) -> PublicKeyMaterial:
        entry = self._entries().get(acl_address.lower())
        if not isinstance(entry, dict):
            return PublicKeyMaterial()
        return PublicKeyMaterial(
            public_key=entry.get("publicKey"),
            public_params=entry.get("publicParams"),
        )

    def set(self, acl_address: str, public_key: Any, public_params: Any) -> None:
        entries = self._entries()
        entries[acl_address.lower()] = {"publicKey": public_key, "publicParams": public_params}
        self._storage.set(PUBLIC_KEY_STORAGE_KEY, entries)


__all__ = ["PublicKeyCache", "PublicKeyMaterial", "PUBLIC_KEY_STORAGE_KEY"]
