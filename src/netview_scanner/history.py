"""
Recent scan history.

Keeps the most recent scan ranges, newest first. Submitting the same
range twice in a row does not add a second entry.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ._types import HistoryEntry, ScanRequest, now_utc

logger = logging.getLogger(__name__)

MAX_HISTORY_ITEMS = 10


class ScanHistory:
    """Bounded in-memory log of requested scan ranges."""

    def __init__(self, max_items: int = MAX_HISTORY_ITEMS):
        if max_items < 1:
            raise ValueError(f"History size must be positive: {max_items}")
        self.max_items = max_items
        self._entries: list[HistoryEntry] = []
        self._lock = threading.Lock()

    def record(self, request: Optional[ScanRequest]) -> bool:
        """
        Add a scan range to the history.

        Returns False when nothing was recorded: the request is missing an
        address, or it repeats the most recent entry.
        """
        if request is None or not request.start_address or not request.end_address:
            return False

        with self._lock:
            if self._entries:
                latest = self._entries[0]
                if (latest.start_address == request.start_address
                        and latest.end_address == request.end_address):
                    logger.debug(
                        f"Range {request.start_address}-{request.end_address} "
                        "repeats the latest history entry, not recorded"
                    )
                    return False

            entry = HistoryEntry(
                start_address=request.start_address,
                end_address=request.end_address,
                timestamp=now_utc(),
            )
            self._entries.insert(0, entry)
            del self._entries[self.max_items:]
        return True

    def entries(self) -> list[HistoryEntry]:
        """Copy of the history, newest first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
