"""
MAC address vendor lookup.

Two sources are available: a small built-in OUI table that works fully
offline, and the ``mac-vendor-lookup`` package backed by the IEEE OUI
database (downloaded to a local cache on first use).
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from mac_vendor_lookup import AsyncMacLookup, InvalidMacError
from mac_vendor_lookup import VendorNotFoundError as _UpstreamVendorNotFound

from .exceptions import VendorNotFoundError

logger = logging.getLogger(__name__)

# Common OUI prefixes (first 3 octets)
DEFAULT_OUI_MAP: dict[str, str] = {
    "00:50:56": "VMware",
    "00:0C:29": "VMware",
    "00:1C:42": "Parallels",
    "08:00:27": "VirtualBox",
    "52:54:00": "QEMU/KVM",
    "00:15:5D": "Microsoft Hyper-V",
    "D4:BE:D9": "Dell",
    "00:1E:67": "HP",
    "3C:D9:2B": "HP",
    "00:1A:A0": "Lenovo",
    "78:DD:12": "Lenovo",
    "F0:9F:C2": "Apple",
    "3C:22:FB": "Apple",
    "AC:DE:48": "Apple",
    "A4:83:E7": "Apple",
    "F0:18:98": "Apple",
    "B8:27:EB": "Raspberry Pi Foundation",
    "DC:A6:32": "Raspberry Pi Trading",
    "E4:5F:01": "Raspberry Pi Trading",
    "D8:3A:DD": "Raspberry Pi Trading",
    "28:CD:C1": "Raspberry Pi Trading",
    "00:1B:63": "Cisco",
    "00:26:CB": "Cisco",
    "00:00:5E": "IANA (VRRP)",
}

_HEX_ONLY = re.compile(r"[^0-9A-F]")


def oui_prefix(mac_address: str) -> Optional[str]:
    """Return the ``XX:XX:XX`` OUI prefix of a MAC address, if well-formed."""
    digits = _HEX_ONLY.sub("", mac_address.upper())
    if len(digits) != 12:
        return None
    return ":".join(digits[i:i + 2] for i in range(0, 6, 2))


class VendorLookup(ABC):
    """Maps hardware addresses to vendor names."""

    @abstractmethod
    async def lookup(self, mac_address: str) -> str:
        """
        Look up the vendor for a MAC address.

        Raises:
            VendorNotFoundError: if no vendor is known
        """
        pass

    async def lookup_or_empty(self, mac_address: str) -> str:
        """Vendor name, or "" when the address is empty or unknown."""
        if not mac_address:
            return ""
        try:
            return await self.lookup(mac_address)
        except VendorNotFoundError:
            return ""


class StaticVendorLookup(VendorLookup):
    """
    Offline lookup from a fixed OUI table.

    The table can be extended by passing ``extra`` prefixes.
    """

    def __init__(self, extra: Optional[dict[str, str]] = None):
        self._table = dict(DEFAULT_OUI_MAP)
        for prefix, vendor in (extra or {}).items():
            digits = _HEX_ONLY.sub("", prefix.upper())
            if len(digits) >= 6:
                self._table[":".join(digits[i:i + 2] for i in range(0, 6, 2))] = vendor

    async def lookup(self, mac_address: str) -> str:
        prefix = oui_prefix(mac_address)
        if prefix is None or prefix not in self._table:
            raise VendorNotFoundError(mac_address)
        return self._table[prefix]


class MacVendorLookup(VendorLookup):
    """Lookup backed by the ``mac-vendor-lookup`` OUI database."""

    def __init__(self, lookup: Optional[AsyncMacLookup] = None):
        self._lookup = lookup or AsyncMacLookup()

    async def update(self) -> None:
        """Refresh the cached OUI database (requires network access)."""
        await self._lookup.update_vendors()
        logger.info("MAC vendor database updated")

    async def lookup(self, mac_address: str) -> str:
        try:
            return await self._lookup.lookup(mac_address)
        except (_UpstreamVendorNotFound, InvalidMacError) as e:
            raise VendorNotFoundError(mac_address) from e


def get_vendor_lookup(source: str = "static") -> VendorLookup:
    """Vendor lookup factory keyed by configuration name."""
    if source == "static":
        return StaticVendorLookup()
    elif source == "mac-vendor-lookup":
        return MacVendorLookup()
    else:
        raise ValueError(f"Unsupported vendor source: {source}")
