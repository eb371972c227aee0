"""Scan lifecycle event registry."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

SCAN_STARTED = "scan.started"
SCAN_COMPLETED = "scan.completed"
SCAN_FAILED = "scan.failed"
SCAN_CANCELLED = "scan.cancelled"

Listener = Callable[[Any], None]


class ScanEvents:
    """Named-event callback registry.

    Listener exceptions are logged and never interrupt the scan that
    emitted the event.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def subscribe(self, name: str, callback: Listener) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._listeners.setdefault(name, []).append(callback)

        def _unsubscribe() -> None:
            listeners = self._listeners.get(name, [])
            if callback in listeners:
                listeners.remove(callback)

        return _unsubscribe

    def emit(self, name: str, payload: Any) -> None:
        for callback in list(self._listeners.get(name, [])):
            try:
                callback(payload)
            except Exception:
                logger.exception("Listener for %s failed", name)
