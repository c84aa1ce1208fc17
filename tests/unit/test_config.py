from __future__ import annotations

import pytest

from common.config import load_config, parse_networks, parse_simulation_networks


def test_parse_networks_keeps_order_and_dedupes():
    assert parse_networks("11155111, 31337,11155111\n1") == [11155111, 31337, 1]


@pytest.mark.parametrize("raw", ["", " , ", "31337,sepolia"])
def test_parse_networks_rejects_bad_lists(raw):
    with pytest.raises(ValueError):
        parse_networks(raw)


def test_parse_simulation_networks():
    assert parse_simulation_networks(None) == {}
    assert parse_simulation_networks("31337=http://localhost:8545, 1337=http://127.0.0.1:9000") == {
        31337: "http://localhost:8545",
        1337: "http://127.0.0.1:9000",
    }
    with pytest.raises(ValueError):
        parse_simulation_networks("31337")
    with pytest.raises(ValueError):
        parse_simulation_networks("local=http://localhost:8545")


def test_load_config_requires_networks(monkeypatch):
    monkeypatch.delenv("FHEVM_NETWORKS", raising=False)
    with pytest.raises(RuntimeError):
        load_config()


def test_load_config_reads_env(monkeypatch, tmp_path):
    monkeypatch.setenv("FHEVM_NETWORKS", "31337,11155111")
    monkeypatch.setenv("FHEVM_SIMULATION_NETWORKS", "31337=http://localhost:8545")
    monkeypatch.setenv("FHEVM_STORAGE_NAMESPACE", "wallet")
    monkeypatch.setenv("FHEVM_STORAGE_DIR", str(tmp_path))
    monkeypatch.setenv("FHEVM_RPC_TIMEOUT", "2.5")
    monkeypatch.setenv("FHEVM_SSR", "true")

    cfg = load_config()
    assert cfg.networks == [31337, 11155111]
    assert cfg.simulation_networks == {31337: "http://localhost:8545"}
    assert cfg.storage_namespace == "wallet"
    assert cfg.storage_dir == str(tmp_path)
    assert cfg.rpc_timeout == 2.5
    assert cfg.ssr is True


def test_load_config_defaults(monkeypatch):
    monkeypatch.setenv("FHEVM_NETWORKS", "1")
    for name in (
        "FHEVM_SIMULATION_NETWORKS",
        "FHEVM_STORAGE_NAMESPACE",
        "FHEVM_STORAGE_DIR",
        "FHEVM_RPC_TIMEOUT",
        "FHEVM_SSR",
    ):
        monkeypatch.delenv(name, raising=False)

    cfg = load_config()
    assert cfg.simulation_networks == {}
    assert cfg.storage_namespace == "fhevm"
    assert cfg.storage_dir is None
    assert cfg.ssr is False
