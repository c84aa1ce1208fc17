from __future__ import annotations

import functools
import logging
import os
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from pydantic import ValidationError

from common.config import SessionConfig
from common.rpc import RpcClient
from common.storage import Storage, get_default_store

from .file_store import JsonFileStore
from .instances import InstanceCache
from .models import PERSISTED_STATE_VERSION, PersistedState, SessionState, SessionStatus
from .observable import ObservableStore, Unsubscribe
from .persist import PersistedStore


logger = logging.getLogger(__name__)

S = TypeVar("S")

STATE_STORAGE_KEY = "state"


class SessionStore:
    """
    Session state holder: network selection, instance status, last error.

    Usage
    - `SessionStore([31337], simulation_networks={31337: "http://localhost:8545"})`
    - `state` is an immutable `SessionState`; change it with `set_state`.
    - `subscribe(selector, listener)` is notified with `(new, previous)` slices.
    - Only `network_id` is persisted, under "<namespace>.state". On load, an
      unknown network id falls back to the first configured network and
      status always restarts at idle.

    The instance cache is owned here and exposed read-only through
    `get_instance`; construction lives in `instance.acquire`.
    """

    def __init__(
        self,
        networks: Sequence[int],
        *,
        simulation_networks: Optional[Mapping[int, str]] = None,
        storage: Optional[Storage] = None,
        persist: bool = True,
        ssr: bool = False,
        bridge: Optional[Any] = None,
        simulated_factory: Optional[Callable[..., Any]] = None,
        rpc_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        initial_networks = self._validate_networks(networks)
        if not initial_networks:
            raise ValueError("networks must contain at least one network id")

        self._networks: ObservableStore[List[int]] = ObservableStore(initial_networks)
        self._simulation_networks: Dict[int, str] = dict(simulation_networks or {})
        self._storage = storage if storage is not None else Storage(get_default_store())
        self._ssr = bool(ssr)
        self._instances = InstanceCache()
        self._store: ObservableStore[SessionState] = ObservableStore(self._initial_state())

        self.bridge = bridge
        self.simulated_factory = simulated_factory
        self.rpc_factory: Callable[[str], Any] = rpc_factory or RpcClient

        self._persisted: Optional[PersistedStore[SessionState]] = None
        if persist:
            self._persisted = PersistedStore(
                self._store,
                self._storage,
                name=STATE_STORAGE_KEY,
                version=PERSISTED_STATE_VERSION,
                partialize=self._partialize,
                merge=self._merge_persisted,
                skip_hydration=self._ssr,
            )

    @classmethod
    def from_config(cls, config: SessionConfig, **overrides: Any) -> "SessionStore":
        if "storage" not in overrides:
            if config.storage_dir:
                store = JsonFileStore(os.path.join(config.storage_dir, "fhevm-storage.json"))
            else:
                store = get_default_store()
            overrides["storage"] = Storage(store, namespace=config.storage_namespace)
        overrides.setdefault(
            "rpc_factory", functools.partial(RpcClient, timeout=config.rpc_timeout)
        )
        overrides.setdefault("ssr", config.ssr)
        return cls(
            config.networks,
            simulation_networks=config.simulation_networks,
            **overrides,
        )

    # -------- Read-only views --------
    @property
    def state(self) -> SessionState:
        return self._store.get_state()

    @property
    def networks(self) -> List[int]:
        return list(self._networks.get_state())

    @property
    def simulation_networks(self) -> Dict[int, str]:
        return dict(self._simulation_networks)

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def instances(self) -> InstanceCache:
        return self._instances

    @property
    def ssr(self) -> bool:
        return self._ssr

    def is_configured(self, network_id: int) -> bool:
        return network_id in self._networks.get_state() or network_id in self._simulation_networks

    def get_instance(self, network_id: Optional[int] = None) -> Optional[Any]:
        nid = network_id if network_id is not None else self.state.network_id
        return self._instances.get(nid)

    # -------- State --------
    def set_state(self, value: Any) -> None:
        """Replace the state with `value` or `value(current)`.

        Anything that is not a valid `SessionState` for this session (wrong
        shape, broken invariant, unconfigured network) resets to the initial
        state instead of being stored partially.
        """
        nxt = value(self.state) if callable(value) else value
        self._store.set_state(self._coerce(nxt))

    def subscribe(
        self,
        selector: Callable[[SessionState], S],
        listener: Callable[[S, S], None],
        *,
        emit_immediately: bool = False,
        equality_fn: Optional[Callable[[S, S], bool]] = None,
    ) -> Unsubscribe:
        return self._store.subscribe_selector(
            selector,
            listener,
            emit_immediately=emit_immediately,
            equality_fn=equality_fn,
        )

    # -------- Networks --------
    def set_networks(self, value: Any) -> None:
        """Replace the network list atomically; an empty result is ignored.

        If the selected network is no longer configured, the state resets to
        the first network of the new list.
        """
        current = self._networks.get_state()
        nxt = value(list(current)) if callable(value) else value
        networks = self._validate_networks(nxt)
        if not networks:
            return
        self._networks.set_state(networks)
        if not self.is_configured(self.state.network_id):
            logger.info(
                "network %s was removed; selecting %s", self.state.network_id, networks[0]
            )
            self._store.set_state(SessionState.initial(networks[0]))

    def subscribe_networks(self, listener: Callable[[List[int], List[int]], None]) -> Unsubscribe:
        return self._networks.subscribe(listener)

    # -------- Persistence --------
    def has_hydrated(self) -> bool:
        return self._persisted is not None and self._persisted.has_hydrated()

    def rehydrate(self) -> None:
        if self._persisted is not None:
            self._persisted.rehydrate()

    # -------- Internal --------
    @staticmethod
    def _validate_networks(networks: Any) -> List[int]:
        if networks is None:
            return []
        out: List[int] = []
        for nid in networks:
            if isinstance(nid, bool) or not isinstance(nid, int):
                raise TypeError(f"network ids must be integers, got {nid!r}")
            if nid not in out:
                out.append(nid)
        return out

    def _initial_state(self) -> SessionState:
        return SessionState.initial(self._networks.get_state()[0])

    def _coerce(self, value: Any) -> SessionState:
        try:
            if isinstance(value, SessionState):
                state = value
            elif isinstance(value, dict):
                state = SessionState.model_validate(value)
            else:
                raise TypeError(f"unexpected state type {type(value).__name__}")
        except (TypeError, ValidationError) as exc:
            logger.warning("resetting corrupt session state: %s", exc)
            return self._initial_state()
        if not self.is_configured(state.network_id):
            logger.warning("resetting session state with unconfigured network %s", state.network_id)
            return self._initial_state()
        return state

    @staticmethod
    def _partialize(state: SessionState) -> Dict[str, Any]:
        return PersistedState(network_id=state.network_id).model_dump(by_alias=True)

    def _merge_persisted(
        self, persisted: Optional[Dict[str, Any]], current: SessionState
    ) -> SessionState:
        network_id = current.network_id
        if persisted is not None:
            try:
                candidate = PersistedState.model_validate(persisted).network_id
            except ValidationError as exc:
                logger.warning("ignoring persisted session state: %s", exc)
            else:
                if candidate in self._networks.get_state():
                    network_id = candidate
                else:
                    network_id = self._networks.get_state()[0]
        return SessionState(network_id=network_id, status=SessionStatus.IDLE)


__all__ = ["SessionStore", "STATE_STORAGE_KEY"]
