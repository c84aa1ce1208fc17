from __future__ import annotations

from typing import Any, Callable, Generic, List, Optional, TypeVar


T = TypeVar("T")
S = TypeVar("S")

Listener = Callable[[T, T], None]
Unsubscribe = Callable[[], None]


def default_equality(a: Any, b: Any) -> bool:
    return a is b or a == b


class ObservableStore(Generic[T]):
    """
    A single mutable value with change notification.

    - `set_state` accepts a value or an updater `fn(current) -> next`.
    - Listeners receive `(next, previous)` after every set, in subscription order.
    - `subscribe_selector` narrows notifications to a derived slice.
    """

    def __init__(self, initial: T) -> None:
        self._state = initial
        self._listeners: List[Listener] = []

    def get_state(self) -> T:
        return self._state

    def set_state(self, value: T | Callable[[T], T]) -> None:
        nxt = value(self._state) if callable(value) else value
        prev = self._state
        self._state = nxt
        for listener in list(self._listeners):
            listener(nxt, prev)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def subscribe_selector(
        self,
        selector: Callable[[T], S],
        listener: Callable[[S, S], None],
        *,
        emit_immediately: bool = False,
        equality_fn: Optional[Callable[[S, S], bool]] = None,
    ) -> Unsubscribe:
        equal = equality_fn or default_equality
        current = {"value": selector(self._state)}

        def on_change(state: T, _prev: T) -> None:
            nxt = selector(state)
            prev_slice = current["value"]
            if equal(prev_slice, nxt):
                return
            current["value"] = nxt
            listener(nxt, prev_slice)

        if emit_immediately:
            listener(current["value"], current["value"])
        return self.subscribe(on_change)


__all__ = ["ObservableStore", "Unsubscribe", "default_equality"]
