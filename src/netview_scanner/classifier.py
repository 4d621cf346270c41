"""
Device classification based on hostname, MAC vendor and open ports.

Rules are evaluated in a fixed order and the first match wins. There is
no scoring: the same inputs always produce the same label.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ._types import DEFAULT_GATEWAY_ADDRESSES, DeviceType

logger = logging.getLogger(__name__)

PRINTER_PORTS = frozenset({631, 9100, 515})  # IPP, RAW/JetDirect, LPD
MAC_PORTS = frozenset({22, 548, 445})  # SSH, AFP, SMB
WINDOWS_PORTS = frozenset({135, 137, 138, 139, 445, 3389})  # RPC, NetBIOS, SMB, RDP
LINUX_SERVICE_PORTS = frozenset({5000, 5001, 8080, 8000, 3000})
SSH_PORT = 22

NETWORK_HOSTNAME_HINTS = ("router", "gateway", "firewall", "switch")
MAC_HOSTNAME_HINTS = ("macbook", "imac", "apple")
LINUX_SERVER_HOSTNAME_HINTS = ("server", "nas", "ubuntu-server", "centos", "debian")


@dataclass(frozen=True)
class ClassificationResult:
    """Result of device classification."""
    device_type: DeviceType
    reason: str


def _contains_any(text: str, hints: Iterable[str]) -> bool:
    return any(hint in text for hint in hints)


def _detect_printer(hostname: str, ports: frozenset[int]) -> Optional[ClassificationResult]:
    if "printer" in hostname:
        return ClassificationResult(DeviceType.PRINTER, "Printer hostname pattern")
    if ports & PRINTER_PORTS:
        return ClassificationResult(
            DeviceType.PRINTER,
            f"Printer port detected ({sorted(ports & PRINTER_PORTS)})",
        )
    return None


def _detect_network_device(address: str, hostname: str) -> Optional[ClassificationResult]:
    if _contains_any(hostname, NETWORK_HOSTNAME_HINTS):
        return ClassificationResult(DeviceType.ROUTER_FIREWALL, "Network device hostname pattern")
    if address in DEFAULT_GATEWAY_ADDRESSES:
        return ClassificationResult(DeviceType.ROUTER_FIREWALL, "Well-known gateway address")
    return None


def _detect_mac(hostname: str, ports: frozenset[int]) -> Optional[ClassificationResult]:
    if _contains_any(hostname, MAC_HOSTNAME_HINTS):
        return ClassificationResult(DeviceType.MACOS_PC, "Apple hostname pattern")
    if ports & MAC_PORTS and "linux" not in hostname:
        return ClassificationResult(
            DeviceType.MACOS_PC,
            f"Mac service ports detected ({sorted(ports & MAC_PORTS)})",
        )
    return None


def _detect_by_vendor(vendor: str) -> Optional[ClassificationResult]:
    if "apple" in vendor:
        return ClassificationResult(DeviceType.MACOS_PC, "Apple hardware vendor")
    if "raspberry" in vendor:
        return ClassificationResult(DeviceType.RASPBERRY_PI, "Raspberry Pi hardware vendor")
    return None


def _detect_windows(ports: frozenset[int]) -> Optional[ClassificationResult]:
    if ports & WINDOWS_PORTS:
        return ClassificationResult(
            DeviceType.WINDOWS_PC,
            f"Windows service ports detected ({sorted(ports & WINDOWS_PORTS)})",
        )
    return None


def _detect_linux(hostname: str, ports: frozenset[int]) -> Optional[ClassificationResult]:
    if SSH_PORT not in ports:
        return None
    if _contains_any(hostname, LINUX_SERVER_HOSTNAME_HINTS):
        return ClassificationResult(DeviceType.LINUX_SERVER, "SSH with server hostname pattern")
    if ports & LINUX_SERVICE_PORTS:
        return ClassificationResult(DeviceType.LINUX_SERVER, "SSH with application ports")
    return ClassificationResult(DeviceType.LINUX_PC, "SSH without server signals")


def _detect_mobile(hostname: str) -> Optional[ClassificationResult]:
    if "android" in hostname:
        return ClassificationResult(DeviceType.ANDROID_MOBILE, "Android hostname pattern")
    if "iphone" in hostname or "ipad" in hostname:
        return ClassificationResult(DeviceType.IOS_MOBILE, "iOS hostname pattern")
    return None


def classify(
    address: str,
    hostname: Optional[str],
    vendor: Optional[str],
    open_ports: Iterable[int],
) -> ClassificationResult:
    """
    Classify a host from the evidence gathered during a scan.

    Precedence: printer, network device, Mac (hostname/ports), vendor
    (Apple / Raspberry Pi), Windows ports, Linux (SSH), mobile hostname,
    generic.

    Args:
        address: IPv4 address of the host
        hostname: Reverse-resolved hostname ("" or None if unknown)
        vendor: Vendor name resolved from the MAC address
        open_ports: Ports found open on the host

    Returns:
        ClassificationResult with device type and the matching rule
    """
    hostname_lower = (hostname or "").lower()
    vendor_lower = (vendor or "").lower()
    ports = frozenset(open_ports)

    result = (
        _detect_printer(hostname_lower, ports)
        or _detect_network_device(address, hostname_lower)
        or _detect_mac(hostname_lower, ports)
        or _detect_by_vendor(vendor_lower)
        or _detect_windows(ports)
        or _detect_linux(hostname_lower, ports)
        or _detect_mobile(hostname_lower)
    )
    if result is None:
        result = ClassificationResult(DeviceType.GENERIC, "No clear classification signals")

    logger.debug(f"{address} classified as {result.device_type.value}: {result.reason}")
    return result


def classify_device(
    address: str,
    hostname: Optional[str],
    vendor: Optional[str],
    open_ports: Iterable[int],
) -> DeviceType:
    """Return only the device type label for a host."""
    return classify(address, hostname, vendor, open_ports).device_type
