from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from common.errors import ErrorCode, RpcError, SessionError
from common.rpc import RpcClient, close_provider


logger = logging.getLogger(__name__)


class RelayerMetadata(BaseModel):
    """Contract addresses a local FHEVM development node reports about itself."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    acl_address: str = Field(..., alias="ACLAddress")
    input_verifier_address: str = Field(..., alias="InputVerifierAddress")
    kms_verifier_address: str = Field(..., alias="KMSVerifierAddress")

    @field_validator("acl_address", "input_verifier_address", "kms_verifier_address")
    @classmethod
    def _hex_address(cls, v: str) -> str:
        if not v.startswith("0x"):
            raise ValueError("address must start with 0x")
        return v


async def fetch_client_version(rpc_url: str, *, rpc_factory: Callable[[str], Any] = RpcClient) -> Any:
    rpc = rpc_factory(rpc_url)
    try:
        return await rpc.request("web3_clientVersion", [])
    except (RpcError, ValueError) as exc:
        err = SessionError(
            ErrorCode.WEB3_CLIENTVERSION_ERROR,
            f"The URL {rpc_url} is not a Web3 node or is not reachable. Please check the endpoint.",
        )
        raise err from exc
    finally:
        await close_provider(rpc)


async def fetch_relayer_metadata(rpc_url: str, *, rpc_factory: Callable[[str], Any] = RpcClient) -> Any:
    rpc = rpc_factory(rpc_url)
    try:
        return await rpc.request("fhevm_relayer_metadata", [])
    except (RpcError, ValueError) as exc:
        err = SessionError(
            ErrorCode.FHEVM_RELAYER_METADATA_ERROR,
            f"The URL {rpc_url} is not a FHEVM Hardhat node or is not reachable. Please check the endpoint.",
        )
        raise err from exc
    finally:
        await close_provider(rpc)


async def probe_simulated_node(
    rpc_url: str, *, rpc_factory: Callable[[str], Any] = RpcClient
) -> Optional[RelayerMetadata]:
    """
    Return the node's relayer metadata if `rpc_url` is a compatible local
    development node, else None.

    An unreachable or non-conformant endpoint is logged and reported as None
    so the caller can fall back to the production path.
    """
    try:
        version = await fetch_client_version(rpc_url, rpc_factory=rpc_factory)
    except SessionError as exc:
        logger.warning("simulated node probe failed: %s", exc)
        return None
    if not isinstance(version, str) or "hardhat" not in version.lower():
        logger.info("endpoint %s is not a hardhat node (%r)", rpc_url, version)
        return None

    try:
        raw = await fetch_relayer_metadata(rpc_url, rpc_factory=rpc_factory)
    except SessionError as exc:
        logger.warning("simulated node probe failed: %s", exc)
        return None
    if not isinstance(raw, dict):
        return None
    try:
        return RelayerMetadata.model_validate(raw)
    except ValidationError as exc:
        logger.warning("relayer metadata from %s is incomplete: %s", rpc_url, exc)
        return None


__all__ = [
    "RelayerMetadata",
    "fetch_client_version",
    "fetch_relayer_metadata",
    "probe_simulated_node",
]
