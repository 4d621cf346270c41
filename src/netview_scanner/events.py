"""
Notification sinks.

The scanner and monitor publish four kinds of notification through an
EventSink: discovered hosts, scan errors, scan completion and host
status changes. What happens to them (UI push, logging, HTTP polling)
is decided by the sink attached at composition time.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ._types import Host, StatusChangeEvent

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """Receiver for scanner and monitor notifications."""

    @abstractmethod
    def host_found(self, host: Host) -> None:
        pass

    @abstractmethod
    def scan_error(self, message: str) -> None:
        pass

    @abstractmethod
    def scan_complete(self, success: bool) -> None:
        pass

    @abstractmethod
    def host_status_update(self, event: StatusChangeEvent) -> None:
        pass


class LoggingEventSink(EventSink):
    """Writes every notification to the log."""

    def host_found(self, host: Host) -> None:
        logger.info(
            f"Host found: {host.address} "
            f"({host.hostname or 'unknown'}, {host.device_type.value}) "
            f"ports={sorted(host.open_ports)}"
        )

    def scan_error(self, message: str) -> None:
        logger.warning(f"Scan error: {message}")

    def scan_complete(self, success: bool) -> None:
        logger.info(f"Scan complete (success={success})")

    def host_status_update(self, event: StatusChangeEvent) -> None:
        logger.info(
            f"Host {event.address} is now {'online' if event.is_online else 'offline'}"
        )


class InventoryEventSink(EventSink):
    """
    Keeps the latest view of the network in memory.

    Hosts are keyed by address, so a later scan replaces an earlier
    record for the same host.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hosts: dict[str, Host] = {}
        self._statuses: dict[str, bool] = {}
        self.last_error: Optional[str] = None
        self.last_completion: Optional[bool] = None
        self.completions = 0

    def host_found(self, host: Host) -> None:
        with self._lock:
            self._hosts[host.address] = host
            self._statuses[host.address] = True

    def scan_error(self, message: str) -> None:
        with self._lock:
            self.last_error = message

    def scan_complete(self, success: bool) -> None:
        with self._lock:
            self.last_completion = success
            self.completions += 1

    def host_status_update(self, event: StatusChangeEvent) -> None:
        with self._lock:
            self._statuses[event.address] = event.is_online

    def hosts(self) -> list[Host]:
        with self._lock:
            return list(self._hosts.values())

    def get_host(self, address: str) -> Optional[Host]:
        with self._lock:
            return self._hosts.get(address)

    def statuses(self) -> dict[str, bool]:
        with self._lock:
            return dict(self._statuses)

    def clear(self) -> None:
        with self._lock:
            self._hosts.clear()
            self._statuses.clear()
            self.last_error = None
            self.last_completion = None


class FanoutEventSink(EventSink):
    """Forwards each notification to several sinks in order."""

    def __init__(self, sinks: Sequence[EventSink]):
        self.sinks = list(sinks)

    def host_found(self, host: Host) -> None:
        for sink in self.sinks:
            sink.host_found(host)

    def scan_error(self, message: str) -> None:
        for sink in self.sinks:
            sink.scan_error(message)

    def scan_complete(self, success: bool) -> None:
        for sink in self.sinks:
            sink.scan_complete(success)

    def host_status_update(self, event: StatusChangeEvent) -> None:
        for sink in self.sinks:
            sink.host_status_update(event)
