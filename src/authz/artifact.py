from __future__ import annotations

import json
import time
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from web3 import Web3


SECONDS_PER_DAY = 86_400
DEFAULT_DURATION_DAYS = 365
SIGNATURE_STORAGE_PREFIX = "decryption-signature"


class AuthorizationArtifact(BaseModel):
    """
    Signed, time-boxed permission for `user_address` to decrypt values held
    by `contract_addresses`.

    Fields
    - public_key / private_key: the re-encryption key pair the engine answers to.
    - signature: the user's EIP-712 signature over the authorization payload.
    - contract_addresses: sorted, checksummed, de-duplicated.
    - start_timestamp: unix seconds; duration_days: validity length.

    Notes
    - Serialized with camelCase keys ("publicKey", "startTimestamp", ...).
    - Immutable: a stale artifact is replaced by a freshly signed one.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    public_key: str
    private_key: str
    signature: str = Field(..., min_length=1)
    contract_addresses: Tuple[str, ...] = Field(..., min_length=1)
    user_address: str
    start_timestamp: int = Field(..., ge=0)
    duration_days: int = Field(..., gt=0)

    @property
    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * SECONDS_PER_DAY

    def is_valid(self, now: Optional[int] = None) -> bool:
        current = int(time.time()) if now is None else now
        return current < self.expires_at

    def covers(self, contract_addresses: Iterable[str]) -> bool:
        granted = {a.lower() for a in self.contract_addresses}
        return all(a.lower() in granted for a in contract_addresses)


def normalize_addresses(contract_addresses: Iterable[str]) -> List[str]:
    """Checksum, de-duplicate and sort; order of the input never matters."""
    out = set()
    for addr in contract_addresses:
        if not isinstance(addr, str) or not Web3.is_address(addr):
            raise ValueError(f"Invalid contract address: {addr!r}")
        out.add(Web3.to_checksum_address(addr))
    return sorted(out, key=str.lower)


def authorization_storage_key(
    network_id: Optional[int], user_address: str, contract_addresses: Iterable[str]
) -> str:
    addrs = sorted({a.lower() for a in contract_addresses})
    payload = json.dumps([network_id, user_address.lower(), addrs], separators=(",", ":"))
    return f"{SIGNATURE_STORAGE_PREFIX}:{Web3.to_hex(Web3.keccak(text=payload))}"


__all__ = [
    "AuthorizationArtifact",
    "normalize_addresses",
    "authorization_storage_key",
    "DEFAULT_DURATION_DAYS",
    "SECONDS_PER_DAY",
]
