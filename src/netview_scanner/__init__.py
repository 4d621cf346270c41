"""
Netview Scanner - IPv4 range discovery and host monitoring.

Scans an inclusive address range for alive hosts, gathers open ports,
hostname and MAC vendor for each one, labels it with a device type, and
can then watch the discovered hosts for online/offline transitions.

Architecture:
    RangeScanner - one-shot discovery over a bounded worker pool
    HostMonitor  - periodic status checks of a fixed host set
    EventSink    - where discoveries and status changes are delivered
"""

__version__ = "0.1.0"

from ._types import (
    DeviceType,
    Host,
    ScanRequest,
    StatusChangeEvent,
    HistoryEntry,
    ProbeResult,
)
from .exceptions import (
    NetviewError,
    InvalidAddressError,
    ScanValidationError,
    PreconditionError,
    NotInitializedError,
    ScanInProgressError,
)
from .events import EventSink, LoggingEventSink, InventoryEventSink, FanoutEventSink
from .state import ScannerState
from .scanner import RangeScanner, ScanState
from .monitor import HostMonitor, MonitorState

__all__ = [
    "__version__",
    "DeviceType",
    "Host",
    "ScanRequest",
    "StatusChangeEvent",
    "HistoryEntry",
    "ProbeResult",
    "NetviewError",
    "InvalidAddressError",
    "ScanValidationError",
    "PreconditionError",
    "NotInitializedError",
    "ScanInProgressError",
    "EventSink",
    "LoggingEventSink",
    "InventoryEventSink",
    "FanoutEventSink",
    "ScannerState",
    "RangeScanner",
    "ScanState",
    "HostMonitor",
    "MonitorState",
]
