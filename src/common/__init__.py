"""
Common utilities for the FHEVM session manager.

Modules:
- errors: error codes and exception types
- cancel: cooperative cancellation token
- storage: namespaced serializing key-value adapter and basic stores
- rpc: async JSON-RPC client for EVM nodes
- config: environment-driven configuration
"""

__all__ = [
    "errors",
    "cancel",
    "storage",
    "rpc",
    "config",
]
