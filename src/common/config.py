from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .rpc import DEFAULT_TIMEOUT
from .storage import DEFAULT_NAMESPACE


ENV_NETWORKS = "FHEVM_NETWORKS"
ENV_SIMULATION_NETWORKS = "FHEVM_SIMULATION_NETWORKS"
ENV_STORAGE_NAMESPACE = "FHEVM_STORAGE_NAMESPACE"
ENV_STORAGE_DIR = "FHEVM_STORAGE_DIR"
ENV_RPC_TIMEOUT = "FHEVM_RPC_TIMEOUT"
ENV_SSR = "FHEVM_SSR"


@dataclass
class SessionConfig:
    networks: List[int]
    simulation_networks: Dict[int, str] = field(default_factory=dict)
    storage_namespace: str = DEFAULT_NAMESPACE
    storage_dir: Optional[str] = None
    rpc_timeout: float = DEFAULT_TIMEOUT
    ssr: bool = False


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def parse_networks(raw: str) -> List[int]:
    """Parse "31337, 11155111" into an ordered, de-duplicated id list."""
    out: List[int] = []
    for tok in raw.replace("\n", ",").replace(" ", ",").split(","):
        tok = tok.strip()
        if not tok:
            continue
        try:
            nid = int(tok)
        except ValueError:
            raise ValueError(f"Invalid network id '{tok}' in {ENV_NETWORKS}") from None
        if nid not in out:
            out.append(nid)
    if not out:
        raise ValueError(f"{ENV_NETWORKS} must list at least one network id")
    return out


def parse_simulation_networks(raw: Optional[str]) -> Dict[int, str]:
    """Parse "31337=http://localhost:8545,1337=http://127.0.0.1:8545"."""
    if not raw:
        return {}
    out: Dict[int, str] = {}
    for tok in raw.replace("\n", ",").split(","):
        tok = tok.strip()
        if not tok:
            continue
        nid, sep, url = tok.partition("=")
        if not sep or not url.strip():
            raise ValueError(f"Invalid entry '{tok}' in {ENV_SIMULATION_NETWORKS}; expected id=url")
        try:
            out[int(nid.strip())] = url.strip()
        except ValueError:
            raise ValueError(f"Invalid network id '{nid}' in {ENV_SIMULATION_NETWORKS}") from None
    return out


def load_config() -> SessionConfig:
    """Load session configuration from environment variables."""
    networks = parse_networks(_require(_getenv(ENV_NETWORKS), ENV_NETWORKS))
    simulation = parse_simulation_networks(_getenv(ENV_SIMULATION_NETWORKS))
    timeout = float(_getenv(ENV_RPC_TIMEOUT, str(DEFAULT_TIMEOUT)))
    ssr = (_getenv(ENV_SSR, "false") or "false").strip().lower() in ("1", "true", "yes")
    return SessionConfig(
        networks=networks,
        simulation_networks=simulation,
        storage_namespace=_getenv(ENV_STORAGE_NAMESPACE, DEFAULT_NAMESPACE) or DEFAULT_NAMESPACE,
        storage_dir=_getenv(ENV_STORAGE_DIR),
        rpc_timeout=timeout,
        ssr=ssr,
    )


__all__ = ["SessionConfig", "load_config", "parse_networks", "parse_simulation_networks"]
