from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


PERSISTED_STATE_VERSION = 1


class SessionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class SessionState(BaseModel):
    """
    Current session record: selected network, instance, status and last error.

    Fields
    - network_id: the selected network id.
    - instance: the live instance for `network_id` once status is READY.
    - status: one of idle/loading/ready/error.
    - error: the last failure; required when status is ERROR.

    Notes
    - Instances of this model are immutable; use `evolve()` to derive the next
      state so the invariants are re-checked on every transition.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    network_id: int
    instance: Optional[Any] = None
    status: SessionStatus = SessionStatus.IDLE
    error: Optional[BaseException] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "SessionState":
        if self.status is SessionStatus.READY and self.instance is None:
            raise ValueError("status 'ready' requires an instance")
        if self.status is SessionStatus.ERROR and self.error is None:
            raise ValueError("status 'error' requires an error")
        return self

    @classmethod
    def initial(cls, network_id: int) -> "SessionState":
        return cls(network_id=network_id)

    def evolve(self, **changes: Any) -> "SessionState":
        data = {
            "network_id": self.network_id,
            "instance": self.instance,
            "status": self.status,
            "error": self.error,
        }
        data.update(changes)
        return SessionState(**data)


class PersistedState(BaseModel):
    """The persistable slice of `SessionState`: only the network id."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    network_id: int = Field(..., alias="networkId", strict=True)
