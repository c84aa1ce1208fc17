"""
Decryption authorization: time-boxed, signature-backed permission to decrypt
values held by a set of contracts, cached through the storage adapter.
"""

from .artifact import AuthorizationArtifact
from .cache import load_or_sign
from .signer import LocalAccountSigner, Signer

__all__ = ["AuthorizationArtifact", "load_or_sign", "LocalAccountSigner", "Signer"]
