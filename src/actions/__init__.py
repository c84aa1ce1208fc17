"""
Actions built on the session core.

Modules:
- encrypt: typed encrypted inputs through an instance's input builder
- decrypt: handle decryption with a cached or freshly signed authorization
- hydrate: seed server-provided state and rehydrate on mount
"""

__all__ = [
    "encrypt",
    "decrypt",
    "hydrate",
]
