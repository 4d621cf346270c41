"""
Type definitions for the network scanner.

These dataclasses define the core domain model for range discovery,
device classification and host monitoring.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional


def now_utc() -> datetime:
    """Get current UTC timestamp (replaces deprecated datetime.utcnow())."""
    return datetime.now(timezone.utc)


class DeviceType(str, Enum):
    """Device classification labels."""
    PRINTER = "printer"
    ROUTER_FIREWALL = "router_firewall"
    MACOS_PC = "macos_pc"
    RASPBERRY_PI = "raspberry_pi"
    WINDOWS_PC = "windows_pc"
    LINUX_SERVER = "linux_server"
    LINUX_PC = "linux_pc"
    ANDROID_MOBILE = "android_mobile"
    IOS_MOBILE = "ios_mobile"
    GENERIC = "generic_device"


# Ports scanned when a request does not name any
DEFAULT_SCAN_PORTS: tuple[int, ...] = (22, 80, 443, 8080, 445)

# Common consumer/SOHO gateway addresses
DEFAULT_GATEWAY_ADDRESSES = frozenset({
    "192.168.1.1",
    "192.168.0.1",
    "10.0.0.1",
})


def normalize_ports(ports: Optional[Iterable[int]]) -> tuple[int, ...]:
    """Deduplicate a port list, keeping first-seen order."""
    seen: dict[int, None] = {}
    for port in ports or ():
        port = int(port)
        if not 0 < port < 65536:
            raise ValueError(f"Port out of range: {port}")
        seen.setdefault(port, None)
    return tuple(seen)


@dataclass(frozen=True)
class Host:
    """
    An alive host discovered by a range scan.

    Identity is the address. Open ports are a set; callers must not rely
    on any ordering.
    """
    address: str
    hostname: str = ""
    mac_address: str = ""
    os_name: str = ""  # OS fingerprinting is not performed
    open_ports: frozenset[int] = field(default_factory=frozenset)
    device_type: DeviceType = DeviceType.GENERIC

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "hostname": self.hostname,
            "mac_address": self.mac_address,
            "os_name": self.os_name,
            "open_ports": sorted(self.open_ports),
            "device_type": self.device_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Host":
        device_type = data.get("device_type") or DeviceType.GENERIC.value
        return cls(
            address=data["address"],
            hostname=data.get("hostname") or "",
            mac_address=data.get("mac_address") or "",
            os_name=data.get("os_name") or "",
            open_ports=frozenset(int(p) for p in data.get("open_ports") or ()),
            device_type=DeviceType(device_type),
        )


@dataclass(frozen=True)
class ScanRequest:
    """
    A request to scan an inclusive IPv4 range.

    Constructed by the caller and never mutated. An empty ``ports`` means
    the scanner's default port set is used. ``hidden_host_ports`` is only
    consulted when ``search_hidden_hosts`` is set and is tried in order.
    """
    start_address: str
    end_address: str
    ports: tuple[int, ...] = ()
    search_hidden_hosts: bool = False
    hidden_host_ports: tuple[int, ...] = ()

    def effective_ports(self, default: Iterable[int] = DEFAULT_SCAN_PORTS) -> tuple[int, ...]:
        return normalize_ports(self.ports) or normalize_ports(default)


@dataclass(frozen=True)
class StatusChangeEvent:
    """A monitored host went online or offline."""
    address: str
    is_online: bool

    def to_dict(self) -> dict:
        return {"address": self.address, "is_online": self.is_online}


@dataclass(frozen=True)
class HistoryEntry:
    """A previously requested scan range."""
    start_address: str
    end_address: str
    timestamp: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict:
        return {
            "start_address": self.start_address,
            "end_address": self.end_address,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ProbeResult:
    """
    Outcome of a liveness check.

    ``rtt`` is the elapsed time in seconds of the affirmative probe and is
    None when the host is not alive.
    """
    alive: bool
    rtt: Optional[float] = None
    method: Optional[str] = None


NOT_ALIVE = ProbeResult(alive=False)
