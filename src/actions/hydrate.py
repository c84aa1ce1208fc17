from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional

from state.models import SessionStatus

if TYPE_CHECKING:
    from state.session import SessionStore


@dataclass
class Hydration:
    session: "SessionStore"

    def on_mount(self) -> None:
        """Read persisted state now if construction skipped it (ssr=True)."""
        if self.session.ssr and not self.session.has_hydrated():
            self.session.rehydrate()


def hydrate(session: "SessionStore", initial_state: Optional[Mapping[str, Any]] = None) -> Hydration:
    """
    Seed `session` with a server-provided state before persisted data is read.

    Only the network id is taken from `initial_state`; an unconfigured id
    falls back to the first configured network and status stays idle.
    """
    if initial_state is not None and not session.has_hydrated():
        nid = initial_state.get("network_id", initial_state.get("networkId"))
        if not isinstance(nid, int) or isinstance(nid, bool) or not session.is_configured(nid):
            nid = session.networks[0]
        session.set_state(
            lambda s: s.evolve(network_id=nid, instance=None, status=SessionStatus.IDLE, error=None)
        )
    return Hydration(session)


__all__ = ["hydrate", "Hydration"]
