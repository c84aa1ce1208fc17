from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence

from authz.artifact import AuthorizationArtifact, normalize_addresses
from authz.cache import load_or_sign
from common.errors import ErrorCode, SessionError
from common.storage import Storage

if TYPE_CHECKING:
    from state.session import SessionStore


logger = logging.getLogger(__name__)

_HANDLE_RE = re.compile(r"^0x[0-9a-fA-F]+$")
HANDLE_LENGTH = 66


def validate_handle(handle: Any) -> None:
    if not isinstance(handle, str) or not handle:
        raise SessionError(ErrorCode.INVALID_HANDLE, "Invalid handle: must be a non-empty string")
    if not _HANDLE_RE.match(handle):
        raise SessionError(
            ErrorCode.INVALID_HANDLE, f"Invalid handle format: {handle} (must be 0x-prefixed hex)"
        )
    if len(handle) != HANDLE_LENGTH:
        logger.warning("handle %s has unexpected length %d, expected %d", handle, len(handle), HANDLE_LENGTH)


async def get_decryption_signature(
    instance: Any,
    contract_addresses: Iterable[str],
    signer: Any,
    storage: Optional[Storage] = None,
) -> AuthorizationArtifact:
    return await load_or_sign(instance, contract_addresses, signer, storage)


async def decrypt(
    session: "SessionStore",
    instance: Any,
    requests: Sequence[Mapping[str, str]],
    signer: Any,
    storage: Optional[Storage] = None,
    *,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Decrypt ciphertext handles with the signer's authorization.

    `requests` are `{"handle": "0x...", "contractAddress": "0x..."}` mappings.
    Returns plaintexts keyed by handle. Failures are recorded in the session's
    `error` field (the ready instance is kept) and re-raised as SessionError.
    """
    if not requests:
        return {}
    try:
        return await _decrypt(session, instance, requests, signer, storage, now)
    except SessionError as exc:
        _record_error(session, exc)
        raise
    except Exception as exc:
        err = SessionError(ErrorCode.DECRYPT_ERROR, str(exc) or type(exc).__name__)
        _record_error(session, err)
        raise err from exc


async def _decrypt(
    session: "SessionStore",
    instance: Any,
    requests: Sequence[Mapping[str, str]],
    signer: Any,
    storage: Optional[Storage],
    now: Optional[int],
) -> Dict[str, Any]:
    for req in requests:
        validate_handle(req.get("handle"))
    addresses: List[str] = normalize_addresses(req["contractAddress"] for req in requests)

    store = storage if storage is not None else session.storage
    sig = await load_or_sign(instance, addresses, signer, store, now=now)
    if not sig.is_valid(now):
        raise SessionError(
            ErrorCode.SIGNATURE_EXPIRED,
            "Decryption signature has expired. Please refresh and try again.",
        )
    if not sig.covers(addresses):
        raise SessionError(
            ErrorCode.SIGNATURE_MISMATCH,
            "Cached signature does not cover all requested contracts.",
        )

    try:
        return await instance.user_decrypt(
            [{"handle": r["handle"], "contractAddress": r["contractAddress"]} for r in requests],
            sig.private_key,
            sig.public_key,
            sig.signature,
            list(sig.contract_addresses),
            sig.user_address,
            sig.start_timestamp,
            sig.duration_days,
        )
    except Exception as exc:
        raise SessionError(
            ErrorCode.DECRYPT_ERROR, f"{type(exc).__name__}: {exc}"
        ) from exc


def _record_error(session: "SessionStore", exc: BaseException) -> None:
    logger.warning("decryption failed: %s", exc)
    session.set_state(lambda s: s.evolve(error=exc))


__all__ = ["decrypt", "get_decryption_signature", "validate_handle"]
