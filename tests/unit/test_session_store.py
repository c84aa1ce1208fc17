from __future__ import annotations

import pytest

from actions.hydrate import hydrate
from common.config import SessionConfig
from common.storage import MemoryStore, Storage
from state.models import SessionState, SessionStatus
from state.session import SessionStore


def _storage(initial=None) -> Storage:
    return Storage(MemoryStore(initial))


def test_initial_state_selects_first_network():
    session = SessionStore([11155111, 31337], storage=_storage())
    assert session.state.network_id == 11155111
    assert session.state.status is SessionStatus.IDLE
    assert session.state.instance is None
    assert session.state.error is None


def test_empty_network_list_rejected():
    with pytest.raises(ValueError):
        SessionStore([], storage=_storage())


def test_set_networks_replaces_and_ignores_empty():
    session = SessionStore([1, 2], storage=_storage())
    seen = []
    session.subscribe_networks(lambda nxt, prev: seen.append((nxt, prev)))

    session.set_networks([])
    assert session.networks == [1, 2]
    assert seen == []

    session.set_networks(lambda cur: cur + [3, 3])
    assert session.networks == [1, 2, 3]
    assert seen == [([1, 2, 3], [1, 2])]

    with pytest.raises(TypeError):
        session.set_networks(["1"])


def test_set_networks_reselects_when_current_network_is_removed():
    store = _storage()
    session = SessionStore([1, 2], storage=store)
    instance = object()
    session.set_state(lambda s: s.evolve(instance=instance, status=SessionStatus.READY))

    session.set_networks([2])

    assert session.networks == [2]
    assert session.state == SessionState.initial(2)
    assert store.get("state") == {"state": {"networkId": 2}, "version": 1}


def test_set_networks_keeps_selection_that_is_still_configured():
    session = SessionStore([1, 2], simulation_networks={7: "http://localhost:8545"}, storage=_storage())
    instance = object()
    session.set_state(lambda s: s.evolve(instance=instance, status=SessionStatus.READY))

    session.set_networks([1, 3])
    assert session.state.instance is instance

    session.set_state(lambda s: s.evolve(network_id=7, instance=None, status=SessionStatus.IDLE))
    session.set_networks([3])
    assert session.state.network_id == 7


def test_storage_failures_are_logged(caplog):
    class _Failing:
        def get_item(self, key):
            return None

        def set_item(self, key, value):
            raise OSError("quota exceeded")

        def remove_item(self, key):
            raise PermissionError("denied")

    storage = Storage(_Failing())
    with caplog.at_level("WARNING", logger="common.storage"):
        storage.set("state", {"networkId": 1})
        storage.remove("state")

    messages = [r.getMessage() for r in caplog.records if r.levelname == "WARNING"]
    assert any("quota exceeded" in m for m in messages)
    assert any("denied" in m for m in messages)


def test_subscribe_selector_notifies_on_change_only():
    session = SessionStore([1, 2], storage=_storage())
    events = []
    unsubscribe = session.subscribe(lambda s: s.network_id, lambda nxt, prev: events.append((nxt, prev)))

    session.set_state(lambda s: s.evolve(error=RuntimeError("noise")))
    assert events == []

    session.set_state(lambda s: s.evolve(network_id=2))
    assert events == [(2, 1)]

    unsubscribe()
    session.set_state(lambda s: s.evolve(network_id=1))
    assert events == [(2, 1)]


def test_subscribe_emit_immediately_and_custom_equality():
    session = SessionStore([1, 2], storage=_storage())
    events = []
    session.subscribe(
        lambda s: s.status,
        lambda nxt, prev: events.append((nxt, prev)),
        emit_immediately=True,
        equality_fn=lambda a, b: True,
    )
    session.set_state(lambda s: s.evolve(status=SessionStatus.LOADING))
    assert events == [(SessionStatus.IDLE, SessionStatus.IDLE)]


def test_persisted_shape_is_network_id_only():
    backend = MemoryStore()
    session = SessionStore([1, 2], storage=Storage(backend))
    session.set_state(lambda s: s.evolve(network_id=2, status=SessionStatus.LOADING))

    stored = Storage(backend).get("state")
    assert stored == {"state": {"networkId": 2}, "version": 1}


def test_rehydrate_restores_known_network_with_idle_status():
    store = _storage()
    store.set("state", {"state": {"networkId": 2}, "version": 1})

    session = SessionStore([1, 2], storage=store)
    assert session.has_hydrated() is True
    assert session.state.network_id == 2
    assert session.state.status is SessionStatus.IDLE


def test_rehydrate_unknown_network_falls_back_to_first():
    store = _storage()
    store.set("state", {"state": {"networkId": 999}, "version": 1})

    session = SessionStore([5, 6], storage=store)
    assert session.state.network_id == 5
    assert session.state.status is SessionStatus.IDLE
    assert store.get("state") == {"state": {"networkId": 5}, "version": 1}


@pytest.mark.parametrize(
    "raw",
    [
        '{"state": {"networkId": "2"}, "version": 1}',
        '{"state": {"networkId": 2}, "version": 7}',
        '["not", "an", "envelope"]',
        "{truncated",
    ],
)
def test_corrupt_envelope_keeps_defaults(raw):
    session = SessionStore([1, 2], storage=_storage({"fhevm.state": raw}))
    assert session.state.network_id == 1
    assert session.state.status is SessionStatus.IDLE


def test_corrupt_set_state_resets_to_initial():
    session = SessionStore([1, 2], storage=_storage())
    session.set_state(lambda s: s.evolve(network_id=2))

    session.set_state({"network_id": 2, "status": "ready"})  # ready without instance
    assert session.state == SessionState.initial(1)

    session.set_state(lambda s: s.evolve(network_id=2))
    session.set_state({"network_id": 404})
    assert session.state.network_id == 1

    session.set_state("garbage")
    assert session.state == SessionState.initial(1)


def test_state_model_rejects_broken_invariants():
    with pytest.raises(ValueError):
        SessionState(network_id=1, status=SessionStatus.ERROR)


def test_ssr_skips_hydration_until_mount():
    store = _storage()
    store.set("state", {"state": {"networkId": 2}, "version": 1})

    session = SessionStore([1, 2], storage=store, ssr=True)
    assert session.has_hydrated() is False
    assert session.state.network_id == 1

    hydration = hydrate(session)
    hydration.on_mount()
    assert session.has_hydrated() is True
    assert session.state.network_id == 2

    hydration.on_mount()  # idempotent
    assert session.state.network_id == 2


def test_hydrate_seeds_initial_state_before_mount():
    session = SessionStore([1, 2], storage=_storage(), ssr=True)

    hydrate(session, {"networkId": 2})
    assert session.state.network_id == 2

    hydrate(session, {"network_id": 77})
    assert session.state.network_id == 1
    assert session.state.status is SessionStatus.IDLE


def test_persist_disabled_never_writes():
    backend = MemoryStore()
    session = SessionStore([1, 2], storage=Storage(backend), persist=False)
    session.set_state(lambda s: s.evolve(network_id=2))
    assert len(backend) == 0
    assert session.has_hydrated() is False


def test_from_config_uses_namespace_and_storage_dir(tmp_path):
    cfg = SessionConfig(
        networks=[31337],
        simulation_networks={31337: "http://localhost:8545"},
        storage_namespace="wallet",
        storage_dir=str(tmp_path),
    )
    session = SessionStore.from_config(cfg)
    assert session.storage.namespace == "wallet"
    assert session.simulation_networks == {31337: "http://localhost:8545"}
    assert (tmp_path / "fhevm-storage.json").exists()
