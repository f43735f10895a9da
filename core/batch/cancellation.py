"""
Cancellation tokens for in-flight jobs.

A parent fan-out owns one token; each child gets a linked token, so
cancelling the parent reaches every child's provider wait.
"""

from typing import Optional

from providers.base import OperationCancelledError


class CancellationToken:
    """Cooperative cancellation flag, checked between provider calls"""

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._parent = parent
        self._cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Cancelled") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    def is_cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._parent is not None and self._parent.is_cancelled()

    def cancellation_reason(self) -> str:
        if self._cancelled:
            return self.reason or "Cancelled"
        if self._parent is not None:
            return self._parent.cancellation_reason()
        return "Cancelled"

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise OperationCancelledError(self.cancellation_reason())

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)

    def __repr__(self) -> str:
        return f"<CancellationToken cancelled={self.is_cancelled()}>"
