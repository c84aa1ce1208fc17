from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterator, Optional


def _consume_exception(future: "asyncio.Future[Any]") -> None:
    # Waiters are optional; mark the failure as retrieved either way.
    if not future.cancelled():
        future.exception()


class InstanceCache:
    """
    Per-network instance cache, owned by a `SessionStore`.

    - At most one instance per network id; entries are never evicted.
    - In-flight constructions are tracked as pending futures so concurrent
      acquisitions for the same id can share a single construction.
    """

    def __init__(self) -> None:
        self._instances: Dict[int, Any] = {}
        self._pending: Dict[int, "asyncio.Future[Any]"] = {}

    def get(self, network_id: int) -> Optional[Any]:
        return self._instances.get(network_id)

    def has(self, network_id: int) -> bool:
        return network_id in self._instances

    def set(self, network_id: int, instance: Any) -> None:
        if instance is None:
            raise ValueError("instance must not be None")
        self._instances[network_id] = instance

    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._instances))

    # -------- In-flight constructions --------
    def pending(self, network_id: int) -> Optional["asyncio.Future[Any]"]:
        fut = self._pending.get(network_id)
        if fut is not None and fut.done():
            return None
        return fut

    def begin(self, network_id: int) -> "asyncio.Future[Any]":
        fut: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        fut.add_done_callback(_consume_exception)
        self._pending[network_id] = fut
        return fut

    def finish(self, network_id: int, fut: "asyncio.Future[Any]", instance: Any) -> None:
        self.set(network_id, instance)
        self._release(network_id, fut)
        if not fut.done():
            fut.set_result(instance)

    def fail(self, network_id: int, fut: "asyncio.Future[Any]", exc: BaseException) -> None:
        self._release(network_id, fut)
        if fut.done():
            return
        if isinstance(exc, asyncio.CancelledError):
            fut.cancel()
        else:
            fut.set_exception(exc)

    def _release(self, network_id: int, fut: "asyncio.Future[Any]") -> None:
        if self._pending.get(network_id) is fut:
            del self._pending[network_id]


__all__ = ["InstanceCache"]
