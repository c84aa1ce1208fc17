from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    CHAIN_NOT_CONFIGURED = "CHAIN_NOT_CONFIGURED"
    CHAIN_MISMATCH = "CHAIN_MISMATCH"
    SSR_NOT_SUPPORTED = "SSR_NOT_SUPPORTED"
    WEB3_CLIENTVERSION_ERROR = "WEB3_CLIENTVERSION_ERROR"
    FHEVM_RELAYER_METADATA_ERROR = "FHEVM_RELAYER_METADATA_ERROR"
    RELAYER_INIT_ERROR = "RELAYER_INIT_ERROR"
    INVALID_ACL_ADDRESS = "INVALID_ACL_ADDRESS"
    SIGNATURE_ERROR = "SIGNATURE_ERROR"
    SIGNATURE_EXPIRED = "SIGNATURE_EXPIRED"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
    INVALID_HANDLE = "INVALID_HANDLE"
    ENCRYPT_ERROR = "ENCRYPT_ERROR"
    DECRYPT_ERROR = "DECRYPT_ERROR"


class SessionError(RuntimeError):
    """Base error for session operations, tagged with a short code."""

    def __init__(self, code: ErrorCode | str, message: Optional[str] = None) -> None:
        self.code = ErrorCode(code)
        self.message = message or self.code.value
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class OperationCancelledError(RuntimeError):
    """Raised when a caller-supplied cancel token fires mid-operation."""

    def __init__(self, message: str = "FHEVM operation was cancelled") -> None:
        super().__init__(message)


class RpcError(RuntimeError):
    """Base error for the JSON-RPC client."""


class RpcTransportError(RpcError):
    """The endpoint could not be reached or answered with a non-200 status."""


class RpcResponseError(RpcError):
    """The endpoint answered with a JSON-RPC error object or a malformed body."""

    def __init__(self, message: str, *, code: Optional[int] = None) -> None:
        self.code = code
        super().__init__(message)


__all__ = [
    "ErrorCode",
    "SessionError",
    "OperationCancelledError",
    "RpcError",
    "RpcTransportError",
    "RpcResponseError",
]
