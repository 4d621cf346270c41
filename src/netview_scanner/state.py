"""
Process-scoped scanner state.

One ScannerState is created at startup and passed by reference to the
range scanner and the monitor. Nothing may scan or monitor until
``initialize()`` has been called; ``shutdown()`` returns it to the
uninitialized state and clears the history.
"""

from __future__ import annotations

import logging
from typing import Optional

from .exceptions import NotInitializedError
from .history import MAX_HISTORY_ITEMS, ScanHistory

logger = logging.getLogger(__name__)


class ScannerState:
    """Shared state for one scanner process."""

    def __init__(self, history: Optional[ScanHistory] = None, history_size: int = MAX_HISTORY_ITEMS):
        self.history = history or ScanHistory(max_items=history_size)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> "ScannerState":
        if not self._initialized:
            self._initialized = True
            logger.debug("Scanner state initialized")
        return self

    def shutdown(self) -> None:
        if self._initialized:
            self._initialized = False
            self.history.clear()
            logger.debug("Scanner state shut down")

    def require_initialized(self, operation: str) -> None:
        """Raise NotInitializedError if the state is not ready."""
        if not self._initialized:
            raise NotInitializedError(
                f"Scanner not initialized, cannot {operation}"
            )
