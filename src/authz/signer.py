from __future__ import annotations

from typing import Any, Dict, Mapping, Protocol

from eth_account import Account
from web3 import Web3


class Signer(Protocol):
    """A wallet able to produce EIP-712 structured-data signatures."""

    async def get_address(self) -> str: ...

    async def sign_typed_data(
        self,
        domain: Mapping[str, Any],
        types: Mapping[str, Any],
        message: Mapping[str, Any],
    ) -> str: ...


async def signer_address(signer: Any) -> str:
    getter = getattr(signer, "get_address", None)
    address = await getter() if getter is not None else getattr(signer, "address", None)
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ValueError(f"Signer returned an invalid address: {address!r}")
    return Web3.to_checksum_address(address)


class LocalAccountSigner:
    """Signer backed by a raw private key held in-process (scripts, tests)."""

    def __init__(self, private_key: str | bytes) -> None:
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    async def get_address(self) -> str:
        return self._account.address

    async def sign_typed_data(
        self,
        domain: Mapping[str, Any],
        types: Mapping[str, Any],
        message: Mapping[str, Any],
    ) -> str:
        message_types: Dict[str, Any] = {k: v for k, v in types.items() if k != "EIP712Domain"}
        signed = self._account.sign_typed_data(
            domain_data=dict(domain),
            message_types=message_types,
            message_data=dict(message),
        )
        return Web3.to_hex(signed.signature)


__all__ = ["Signer", "LocalAccountSigner", "signer_address"]
