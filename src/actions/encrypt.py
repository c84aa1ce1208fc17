from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Tuple

from common.errors import ErrorCode, SessionError


ENCRYPTION_METHODS: Dict[str, str] = {
    "ebool": "add_bool",
    "euint8": "add8",
    "euint16": "add16",
    "euint32": "add32",
    "euint64": "add64",
    "euint128": "add128",
    "euint256": "add256",
    "eaddress": "add_address",
}


def get_encryption_method(fhe_type: str) -> str:
    """Map an encrypted type name to its input-builder method."""
    try:
        return ENCRYPTION_METHODS[fhe_type]
    except KeyError:
        raise SessionError(ErrorCode.ENCRYPT_ERROR, f"Unknown encryption type: {fhe_type}") from None


def to_hex(value: bytes | bytearray | str) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else f"0x{value}"
    return "0x" + bytes(value).hex()


async def encrypt(
    instance: Any,
    contract_address: str,
    user_address: str,
    values: Iterable[Tuple[str, Any]],
) -> Dict[str, Any]:
    """
    Encrypt `values` as inputs for `contract_address` on behalf of `user_address`.

    `values` is a sequence of `(type, value)` pairs, e.g.
    `[("euint8", 42), ("ebool", True)]`. Returns `{"handles": [...], "inputProof": ...}`.
    """
    builder = instance.create_encrypted_input(contract_address, user_address)
    for fhe_type, value in values:
        method = getattr(builder, get_encryption_method(fhe_type), None)
        if not callable(method):
            raise SessionError(
                ErrorCode.ENCRYPT_ERROR,
                f"Invalid encryption method for type {fhe_type}; the engine may be a different version.",
            )
        try:
            method(value)
        except (TypeError, ValueError) as exc:
            raise SessionError(
                ErrorCode.ENCRYPT_ERROR, f"Failed to encrypt value of type {fhe_type}: {exc}"
            ) from exc
    return await builder.encrypt()


async def encrypt_with(
    instance: Any,
    contract_address: str,
    user_address: str,
    build_fn: Callable[[Any], None],
) -> Dict[str, Any]:
    """Like `encrypt`, but `build_fn` drives the input builder directly."""
    builder = instance.create_encrypted_input(contract_address, user_address)
    build_fn(builder)
    return await builder.encrypt()


__all__ = ["encrypt", "encrypt_with", "get_encryption_method", "to_hex", "ENCRYPTION_METHODS"]
