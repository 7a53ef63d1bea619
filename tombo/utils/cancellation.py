"""Cooperative cancellation for provider requests.

An editor cancels a completion or hover request when the user keeps
typing. Providers check the token after every await and return nothing
once it has been cancelled, so a stale answer is never delivered.
"""

from __future__ import annotations

from typing import Callable, List

__all__ = ["CancellationToken"]


class CancellationToken:
    """Flag shared between a request's owner and the provider serving it.

    Example::

        >>> token = CancellationToken()
        >>> token.is_cancellation_requested
        False
        >>> token.cancel()
        >>> token.is_cancellation_requested
        True
    """

    __slots__ = ("_cancelled", "_callbacks")

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation. Callbacks run once, on the first call."""
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancelled(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancellation, or now if already cancelled."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)
