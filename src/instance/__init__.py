"""
Network resolution and instance acquisition.

Modules:
- resolver: network id lookup and simulated/production classification
- probe: local development node detection (client version + relayer metadata)
- bridge: production encryption bridge boundary and one-time initialization
- simulated: in-process stand-in engine for simulated networks
- public_key: per-ACL-address public key cache
- acquire: `acquire_instance` / `get_instance`
"""

from .acquire import acquire_instance, get_instance
from .resolver import ResolvedNetwork, resolve_network

__all__ = ["acquire_instance", "get_instance", "resolve_network", "ResolvedNetwork"]
