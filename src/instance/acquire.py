from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Optional

from web3 import Web3

from common.cancel import CancelToken, raise_if_cancelled
from common.errors import ErrorCode, OperationCancelledError, SessionError
from state.models import SessionStatus

from .bridge import ensure_bridge_ready
from .probe import probe_simulated_node
from .public_key import PublicKeyCache
from .resolver import ResolvedNetwork, resolve_network
from .simulated import create_simulated_instance

if TYPE_CHECKING:
    from state.session import SessionStore


logger = logging.getLogger(__name__)

PUBLIC_PARAMS_BITS = 2048


def get_instance(session: "SessionStore", network_id: Optional[int] = None) -> Optional[Any]:
    """Cached instance for `network_id` (or the selected network); never constructs."""
    return session.get_instance(network_id)


async def acquire_instance(
    session: "SessionStore",
    provider: Any,
    *,
    network_id: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
) -> Any:
    """
    Resolve the network behind `provider` and return its instance, building
    it at most once per network id for the life of `session`.

    `provider` is a JSON-RPC endpoint URL or any object with an async
    `request(method, params)`. Status moves idle/ready/error -> loading ->
    ready or error. Every failure after the loading transition is recorded
    in the session state and re-raised.

    Raises:
    - SessionError(CHAIN_NOT_CONFIGURED) for a network outside the session.
    - SessionError(CHAIN_MISMATCH) when `network_id` disagrees with the provider.
    - SessionError(SSR_NOT_SUPPORTED / RELAYER_INIT_ERROR / INVALID_ACL_ADDRESS)
      from the production path.
    - OperationCancelledError when `cancel` fires.
    """
    resolved = await resolve_network(
        provider, session.simulation_networks, rpc_factory=session.rpc_factory
    )
    raise_if_cancelled(cancel)

    if not session.is_configured(resolved.network_id):
        sims = session.simulation_networks
        raise SessionError(
            ErrorCode.CHAIN_NOT_CONFIGURED,
            f"Chain {resolved.network_id} is not configured. "
            f"Configured chains: {session.networks}"
            + (f", simulation chains: {sorted(sims)}" if sims else ""),
        )
    if network_id is not None and network_id != resolved.network_id:
        raise SessionError(
            ErrorCode.CHAIN_MISMATCH,
            f"Provider reports chain {resolved.network_id}, expected {network_id}",
        )

    session.set_state(
        lambda s: s.evolve(network_id=resolved.network_id, status=SessionStatus.LOADING, error=None)
    )
    try:
        instance = await _obtain(session, provider, resolved, cancel)
    except asyncio.CancelledError:
        _record_failure(session, OperationCancelledError("FHEVM operation was cancelled (task)"))
        raise
    except Exception as exc:
        _record_failure(session, exc)
        raise

    session.set_state(lambda s: s.evolve(instance=instance, status=SessionStatus.READY, error=None))
    return instance


def _record_failure(session: "SessionStore", exc: BaseException) -> None:
    logger.warning("instance acquisition failed: %s", exc)
    session.set_state(lambda s: s.evolve(instance=None, status=SessionStatus.ERROR, error=exc))


async def _obtain(
    session: "SessionStore", provider: Any, resolved: ResolvedNetwork, cancel: Optional[CancelToken]
) -> Any:
    nid = resolved.network_id
    cache = session.instances
    while True:
        raise_if_cancelled(cancel)
        cached = cache.get(nid)
        if cached is not None:
            return cached

        pending = cache.pending(nid)
        if pending is None:
            break
        try:
            shared = await asyncio.shield(pending)
        except OperationCancelledError:
            # The other caller was cancelled; build it ourselves.
            continue
        except asyncio.CancelledError:
            if not pending.cancelled():
                raise
            continue
        # Our own token may have fired while the other caller was building.
        raise_if_cancelled(cancel)
        return shared

    fut = cache.begin(nid)
    try:
        instance = await _construct(session, provider, resolved, cancel)
        raise_if_cancelled(cancel)
    except BaseException as exc:
        cache.fail(nid, fut, exc)
        raise
    cache.finish(nid, fut, instance)
    logger.info("instance ready for network %s", nid)
    return instance


async def _construct(
    session: "SessionStore", provider: Any, resolved: ResolvedNetwork, cancel: Optional[CancelToken]
) -> Any:
    if resolved.is_simulated and resolved.endpoint_url:
        metadata = await probe_simulated_node(resolved.endpoint_url, rpc_factory=session.rpc_factory)
        raise_if_cancelled(cancel)
        if metadata is not None:
            factory = session.simulated_factory or create_simulated_instance
            instance = await factory(
                rpc_url=resolved.endpoint_url, network_id=resolved.network_id, metadata=metadata
            )
            raise_if_cancelled(cancel)
            return instance
        logger.info(
            "network %s is not a compatible local node; using the production path",
            resolved.network_id,
        )

    raise_if_cancelled(cancel)
    return await _construct_production(session, provider, resolved, cancel)


async def _construct_production(
    session: "SessionStore", provider: Any, resolved: ResolvedNetwork, cancel: Optional[CancelToken]
) -> Any:
    bridge = await ensure_bridge_ready(session.bridge, cancel=cancel)

    network_config = dict(bridge.network_config(resolved.network_id))
    acl_address = network_config.get("aclContractAddress")
    if not isinstance(acl_address, str) or not Web3.is_address(acl_address):
        raise SessionError(
            ErrorCode.INVALID_ACL_ADDRESS,
            f"Invalid ACL contract address: {acl_address} for chain {resolved.network_id}",
        )

    keys = PublicKeyCache(session.storage)
    material = keys.get(acl_address)
    if material.empty:
        logger.info("no cached public key for ACL %s; the engine will fetch one", acl_address)
    raise_if_cancelled(cancel)

    instance = await bridge.create_instance(
        {
            **network_config,
            "network": provider,
            "publicKey": material.public_key,
            "publicParams": material.public_params,
        }
    )

    # Kept even when the call is cancelled below.
    keys.set(acl_address, instance.get_public_key(), instance.get_public_params(PUBLIC_PARAMS_BITS))
    raise_if_cancelled(cancel)
    return instance


__all__ = ["acquire_instance", "get_instance", "PUBLIC_PARAMS_BITS"]
