"""Cooperative cancellation for background scans."""

from __future__ import annotations

import threading

from filedrap.errors import ScanCancelled


class CancellationToken:
    """Flag shared between the owner thread and a scan worker."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        """Return whether cancellation was requested."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation; safe to call more than once."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise :class:`ScanCancelled` when cancellation was requested."""
        if self._event.is_set():
            raise ScanCancelled("Scan cancelled")


__all__ = ["CancellationToken"]
