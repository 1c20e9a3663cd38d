"""Progress reporting and cooperative cancellation for background passes."""

import threading
from typing import Optional

from taiti.errors import CancelledError


class CancellationToken:
    """Thread-safe cancellation flag shared between a pass and its caller."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: Optional[str] = None) -> None:
        """Raise CancelledError if cancellation was requested."""
        if self._event.is_set():
            raise CancelledError(f"Cancelled during {where}" if where else None)


class ProgressReporter:
    """Receives progress of a pass and carries its cancellation token.

    Subclasses override update() to render progress; the default
    implementation only records the latest values.
    """

    def __init__(self, token: Optional[CancellationToken] = None) -> None:
        self.token = token or CancellationToken()
        self.fraction = 0.0
        self.label = ""

    def update(self, fraction: float, label: str = "") -> None:
        """Record progress.

        Args:
            fraction: Share of the pass done, between 0 and 1
            label: Item currently being processed
        """
        self.fraction = min(max(fraction, 0.0), 1.0)
        self.label = label

    def check_cancelled(self, where: Optional[str] = None) -> None:
        self.token.raise_if_cancelled(where)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled
