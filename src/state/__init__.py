"""
Session state, persistence and storage backends.

This package defines the session record (`SessionState`), the observable
store and its persistence decorator, the per-network instance cache, and
the durable string stores (JSON file, encrypted S3) the storage adapter
can write through.
"""

from .models import PersistedState, SessionState, SessionStatus

__all__ = ["SessionState", "SessionStatus", "PersistedState"]
