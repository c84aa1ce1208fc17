from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from web3 import Web3

from .probe import RelayerMetadata


SECONDS_PER_DAY = 86_400

EIP712_DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

USER_DECRYPT_FIELDS = [
    {"name": "publicKey", "type": "bytes"},
    {"name": "contractAddresses", "type": "address[]"},
    {"name": "startTimestamp", "type": "uint256"},
    {"name": "durationDays", "type": "uint256"},
]


@dataclass(frozen=True)
class _Ciphertext:
    value: Any
    fhe_type: str
    contract_address: str


def _hex(data: bytes) -> str:
    return Web3.to_hex(data)


class SimulatedEncryptedInput:
    """Builder for encrypted inputs, bound to one contract and user."""

    def __init__(self, engine: "SimulatedInstance", contract_address: str, user_address: str) -> None:
        if not Web3.is_address(contract_address):
            raise ValueError(f"Invalid contract address: {contract_address}")
        if not Web3.is_address(user_address):
            raise ValueError(f"Invalid user address: {user_address}")
        self._engine = engine
        self._contract = contract_address
        self._user = user_address
        self._values: List[_Ciphertext] = []

    def _add_uint(self, value: int, bits: int) -> "SimulatedEncryptedInput":
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"euint{bits} expects an int, got {type(value).__name__}")
        if value < 0 or value >= 2**bits:
            raise ValueError(f"value {value} out of range for euint{bits}")
        self._values.append(_Ciphertext(value, f"euint{bits}", self._contract.lower()))
        return self

    def add_bool(self, value: bool | int) -> "SimulatedEncryptedInput":
        if value not in (True, False, 0, 1):
            raise ValueError(f"ebool expects a boolean, got {value!r}")
        self._values.append(_Ciphertext(bool(value), "ebool", self._contract.lower()))
        return self

    def add8(self, value: int) -> "SimulatedEncryptedInput":
        return self._add_uint(value, 8)

    def add16(self, value: int) -> "SimulatedEncryptedInput":
        return self._add_uint(value, 16)

    def add32(self, value: int) -> "SimulatedEncryptedInput":
        return self._add_uint(value, 32)

    def add64(self, value: int) -> "SimulatedEncryptedInput":
        return self._add_uint(value, 64)

    def add128(self, value: int) -> "SimulatedEncryptedInput":
        return self._add_uint(value, 128)

    def add256(self, value: int) -> "SimulatedEncryptedInput":
        return self._add_uint(value, 256)

    def add_address(self, value: str) -> "SimulatedEncryptedInput":
        if not Web3.is_address(value):
            raise ValueError(f"eaddress expects an address, got {value!r}")
        self._values.append(
            _Ciphertext(Web3.to_checksum_address(value), "eaddress", self._contract.lower())
        )
        return self

    async def encrypt(self) -> Dict[str, Any]:
        if not self._values:
            raise ValueError("nothing to encrypt: add at least one value")
        return self._engine._register(self._contract, self._user, self._values)


class SimulatedInstance:
    """
    Lightweight stand-in engine for local development networks.

    Ciphertexts never leave the process: handles are keccak digests and the
    plaintexts sit in an in-memory registry. `user_decrypt` still enforces
    the authorization's contract set and validity window so callers exercise
    the same rules as against a production engine.
    """

    def __init__(self, *, network_id: int, rpc_url: str, metadata: RelayerMetadata) -> None:
        self.network_id = network_id
        self.rpc_url = rpc_url
        self.metadata = metadata
        self._registry: Dict[str, _Ciphertext] = {}
        self._nonce = 0

    # --------------- Encryption ---------------
    def create_encrypted_input(self, contract_address: str, user_address: str) -> SimulatedEncryptedInput:
        return SimulatedEncryptedInput(self, contract_address, user_address)

    def _register(self, contract: str, user: str, values: Sequence[_Ciphertext]) -> Dict[str, Any]:
        self._nonce += 1
        handles: List[bytes] = []
        for index, ct in enumerate(values):
            seed = f"{self.network_id}:{contract.lower()}:{user.lower()}:{self._nonce}:{index}"
            handle = bytes(Web3.keccak(text=seed))
            self._registry[_hex(handle)] = ct
            handles.append(handle)
        proof = bytes(Web3.keccak(b"".join(handles) + b"simulated-input-proof"))
        return {"handles": handles, "inputProof": proof}

    # --------------- Keys & authorization ---------------
    def generate_keypair(self) -> Dict[str, str]:
        private_key = "0x" + secrets.token_hex(32)
        return {"publicKey": _hex(Web3.keccak(hexstr=private_key)), "privateKey": private_key}

    def create_eip712(
        self,
        public_key: str,
        contract_addresses: Iterable[str],
        start_timestamp: int,
        duration_days: int,
    ) -> Dict[str, Any]:
        return {
            "domain": {
                "name": "Decryption",
                "version": "1",
                "chainId": self.network_id,
                "verifyingContract": Web3.to_checksum_address(self.metadata.kms_verifier_address),
            },
            "types": {
                "EIP712Domain": list(EIP712_DOMAIN_FIELDS),
                "UserDecryptRequestVerification": list(USER_DECRYPT_FIELDS),
            },
            "primaryType": "UserDecryptRequestVerification",
            "message": {
                "publicKey": public_key,
                "contractAddresses": [Web3.to_checksum_address(a) for a in contract_addresses],
                "startTimestamp": int(start_timestamp),
                "durationDays": int(duration_days),
            },
        }

    def get_public_key(self) -> Dict[str, Any]:
        return {
            "publicKeyId": f"simulated-{self.network_id}",
            "publicKey": bytes(Web3.keccak(text=f"public-key:{self.metadata.acl_address.lower()}")),
        }

    def get_public_params(self, bits: int) -> Dict[str, Any]:
        return {
            str(bits): {
                "publicParamsId": f"simulated-{self.network_id}-{bits}",
                "publicParams": bytes(Web3.keccak(text=f"public-params:{bits}")),
            }
        }

    # --------------- Decryption ---------------
    async def user_decrypt(
        self,
        requests: Sequence[Mapping[str, str]],
        private_key: str,
        public_key: str,
        signature: str,
        contract_addresses: Sequence[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
        *,
        now: Optional[int] = None,
    ) -> Dict[str, Any]:
        if not signature:
            raise ValueError("missing authorization signature")
        if _hex(Web3.keccak(hexstr=private_key)) != public_key.lower():
            raise ValueError("key pair mismatch")
        current = int(time.time()) if now is None else now
        if current >= start_timestamp + duration_days * SECONDS_PER_DAY:
            raise ValueError("authorization expired")

        allowed = {a.lower() for a in contract_addresses}
        out: Dict[str, Any] = {}
        for req in requests:
            handle = req["handle"].lower()
            contract = req["contractAddress"].lower()
            if contract not in allowed:
                raise PermissionError(f"contract {req['contractAddress']} not covered by authorization")
            ct = self._registry.get(handle)
            if ct is None or ct.contract_address != contract:
                raise KeyError(f"unknown handle {req['handle']} for contract {req['contractAddress']}")
            out[req["handle"]] = ct.value
        return out


async def create_simulated_instance(
    *, rpc_url: str, network_id: int, metadata: RelayerMetadata
) -> SimulatedInstance:
    return SimulatedInstance(network_id=network_id, rpc_url=rpc_url, metadata=metadata)


__all__ = [
    "SimulatedInstance",
    "SimulatedEncryptedInput",
    "create_simulated_instance",
    "SECONDS_PER_DAY",
]
