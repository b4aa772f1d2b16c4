"""Cooperative cancellation token for bulk catalog operations.

Batch loops call :meth:`CancellationToken.raise_if_cancelled` between
iterations; discovery and credential resolution are not cancellable.
"""

from __future__ import annotations

from threading import Lock

from nexuscat.exceptions import CancelledError


class CancellationToken:
    """A cooperative cancellation flag, safe to set from another thread."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._cancelled = False
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. Later calls keep the first reason."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._reason = reason

    def raise_if_cancelled(self) -> None:
        """Raise ``CancelledError`` if the token is cancelled."""
        if self._cancelled:
            raise CancelledError(self._reason or "operation cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled}, reason={self._reason!r})"
