from __future__ import annotations

import weakref
from typing import Any, Dict, Mapping, Optional, Protocol

from common.cancel import CancelToken, raise_if_cancelled
from common.errors import ErrorCode, SessionError


class RelayerBridge(Protocol):
    """
    Boundary to the production encryption engine.

    The engine itself (key material, proofs, relayer calls) lives outside this
    package; a host registers an implementation on the `SessionStore`.
    """

    def is_loaded(self) -> bool: ...

    async def load(self) -> None: ...

    async def init_sdk(self, options: Optional[Dict[str, Any]] = None) -> bool: ...

    def network_config(self, network_id: int) -> Mapping[str, Any]: ...

    async def create_instance(self, config: Mapping[str, Any]) -> Any: ...


# Bridges that already completed init_sdk() in this process.
_initialized: "weakref.WeakSet[Any]" = weakref.WeakSet()


def is_bridge_initialized(bridge: Any) -> bool:
    return bridge in _initialized


def reset_bridge_state() -> None:
    _initialized.clear()


async def ensure_bridge_ready(
    bridge: Optional[RelayerBridge],
    *,
    cancel: Optional[CancelToken] = None,
    options: Optional[Dict[str, Any]] = None,
) -> RelayerBridge:
    """Load and initialize `bridge` once per process.

    Raises SSR_NOT_SUPPORTED when no production bridge is available and
    RELAYER_INIT_ERROR when initialization reports failure.
    """
    if bridge is None:
        raise SessionError(
            ErrorCode.SSR_NOT_SUPPORTED,
            "Production FHEVM instances require a relayer bridge. Use simulation networks otherwise.",
        )
    if not bridge.is_loaded():
        await bridge.load()
        raise_if_cancelled(cancel)
    if not is_bridge_initialized(bridge):
        ok = await bridge.init_sdk(options)
        if not ok:
            raise SessionError(ErrorCode.RELAYER_INIT_ERROR, "Relayer bridge initialization failed.")
        _initialized.add(bridge)
        raise_if_cancelled(cancel)
    return bridge


__all__ = ["RelayerBridge", "ensure_bridge_ready", "is_bridge_initialized", "reset_bridge_state"]
