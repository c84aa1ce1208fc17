from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from common.rpc import RpcClient, close_provider, parse_chain_id


LOCAL_DEV_NETWORK_ID = 31337
DEFAULT_SIMULATION_NETWORKS: Dict[int, str] = {LOCAL_DEV_NETWORK_ID: "http://localhost:8545"}


@dataclass(frozen=True)
class ResolvedNetwork:
    network_id: int
    is_simulated: bool
    endpoint_url: Optional[str] = None


def merged_simulation_table(simulation_networks: Optional[Mapping[int, str]]) -> Dict[int, str]:
    table = dict(DEFAULT_SIMULATION_NETWORKS)
    table.update(simulation_networks or {})
    return table


def classify_network(
    network_id: int,
    handle: Any,
    simulation_networks: Optional[Mapping[int, str]] = None,
) -> ResolvedNetwork:
    """Pure classification of an already-known network id.

    Simulated ids get an endpoint: the handle itself when it is a URL,
    otherwise the table's entry. Other ids resolve to the id alone.
    """
    table = merged_simulation_table(simulation_networks)
    if network_id in table:
        url = handle if isinstance(handle, str) else table[network_id]
        return ResolvedNetwork(network_id=network_id, is_simulated=True, endpoint_url=url)
    return ResolvedNetwork(network_id=network_id, is_simulated=False)


async def fetch_network_id(handle: Any, *, rpc_factory: Callable[[str], Any] = RpcClient) -> int:
    """Ask a provider, or a JSON-RPC endpoint URL, for its chain id."""
    if isinstance(handle, str):
        rpc = rpc_factory(handle)
        try:
            return parse_chain_id(await rpc.request("eth_chainId", []))
        finally:
            await close_provider(rpc)
    return parse_chain_id(await handle.request("eth_chainId", []))


async def resolve_network(
    handle: Any,
    simulation_networks: Optional[Mapping[int, str]] = None,
    *,
    rpc_factory: Callable[[str], Any] = RpcClient,
) -> ResolvedNetwork:
    network_id = await fetch_network_id(handle, rpc_factory=rpc_factory)
    return classify_network(network_id, handle, simulation_networks)


__all__ = [
    "ResolvedNetwork",
    "DEFAULT_SIMULATION_NETWORKS",
    "LOCAL_DEV_NETWORK_ID",
    "classify_network",
    "fetch_network_id",
    "resolve_network",
    "merged_simulation_table",
]
