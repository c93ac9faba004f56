"""
Request-scoped cancellation.

A token is created per resolution request and polled by the scanner and the
resolver between units of work.
"""

import threading

from .errors import ResolutionCancelled


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ResolutionCancelled("resolution request was cancelled")
