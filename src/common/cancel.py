from __future__ import annotations

from typing import Optional

from .errors import OperationCancelledError


class CancelToken:
    """
    Cooperative cancellation signal passed down an async call chain.

    - `cancel()` flips the token once; later calls are no-ops.
    - `raise_if_cancelled()` is called at every suspension point by the code
      that owns the operation.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            if self._reason:
                raise OperationCancelledError(self._reason)
            raise OperationCancelledError()


def raise_if_cancelled(token: Optional[CancelToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()


__all__ = ["CancelToken", "raise_if_cancelled"]
