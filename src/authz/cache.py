from __future__ import annotations

import logging
import time
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from common.errors import ErrorCode, SessionError
from common.storage import MemoryStore, Storage

from .artifact import (
    DEFAULT_DURATION_DAYS,
    AuthorizationArtifact,
    authorization_storage_key,
    normalize_addresses,
)
from .signer import signer_address


logger = logging.getLogger(__name__)


def _load_cached(storage: Storage, key: str) -> Optional[AuthorizationArtifact]:
    raw = storage.get(key)
    if raw is None:
        return None
    try:
        return AuthorizationArtifact.model_validate(raw)
    except ValidationError as exc:
        logger.warning("discarding malformed decryption signature at %s: %s", key, exc)
        return None


async def sign_authorization(
    instance: Any,
    contract_addresses: List[str],
    signer: Any,
    *,
    user_address: str,
    now: Optional[int] = None,
    duration_days: int = DEFAULT_DURATION_DAYS,
) -> AuthorizationArtifact:
    """Mint a new artifact: fresh key pair, EIP-712 payload, user signature."""
    start = int(time.time()) if now is None else now
    keypair = instance.generate_keypair()
    eip712 = instance.create_eip712(keypair["publicKey"], contract_addresses, start, duration_days)
    types = {k: v for k, v in eip712["types"].items() if k != "EIP712Domain"}
    try:
        signature = await signer.sign_typed_data(eip712["domain"], types, eip712["message"])
    except Exception as exc:
        raise SessionError(
            ErrorCode.SIGNATURE_ERROR, f"Failed to sign decryption authorization: {exc}"
        ) from exc
    if not isinstance(signature, str) or not signature:
        raise SessionError(ErrorCode.SIGNATURE_ERROR, "Signer returned an empty signature")

    return AuthorizationArtifact(
        public_key=keypair["publicKey"],
        private_key=keypair["privateKey"],
        signature=signature,
        contract_addresses=tuple(contract_addresses),
        user_address=user_address,
        start_timestamp=start,
        duration_days=duration_days,
    )


async def load_or_sign(
    instance: Any,
    contract_addresses: Iterable[str],
    signer: Any,
    storage: Optional[Storage] = None,
    *,
    now: Optional[int] = None,
    duration_days: int = DEFAULT_DURATION_DAYS,
) -> AuthorizationArtifact:
    """
    Return a stored authorization covering `contract_addresses`, or sign and
    store a new one.

    A stored artifact is reused only when it belongs to the signer, has not
    expired and covers every requested contract; anything else (including
    partial coverage) is a miss and triggers a new signature that replaces
    the stored entry.

    Raises SessionError(SIGNATURE_ERROR) when the signing round-trip fails.
    """
    addresses = normalize_addresses(contract_addresses)
    if not addresses:
        raise ValueError("contract_addresses must not be empty")
    store = storage if storage is not None else Storage(MemoryStore())
    user = await signer_address(signer)
    key = authorization_storage_key(getattr(instance, "network_id", None), user, addresses)

    cached = _load_cached(store, key)
    if cached is not None:
        if cached.user_address.lower() != user.lower():
            logger.info("stored decryption signature belongs to another user; re-signing")
        elif not cached.is_valid(now):
            logger.info("stored decryption signature expired at %s; re-signing", cached.expires_at)
        elif not cached.covers(addresses):
            logger.info("stored decryption signature does not cover the request; re-signing")
        else:
            return cached

    artifact = await sign_authorization(
        instance, addresses, signer, user_address=user, now=now, duration_days=duration_days
    )
    store.set(key, artifact.model_dump(by_alias=True))
    return artifact


__all__ = ["load_or_sign", "sign_authorization"]
