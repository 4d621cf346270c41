"""
Best-effort hostname and hardware address resolution.

Both lookups are advisory: every failure yields an empty string and is
never reported as a scan error.
"""

from __future__ import annotations

import asyncio
import logging
import platform
import re
import socket
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ARP_TIMEOUT = 2.0

# xx:xx:xx:xx:xx:xx or xx-xx-xx-xx-xx-xx
MAC_PATTERN = re.compile(r"(?:[0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}")


async def resolve_hostname(address: str) -> str:
    """Reverse-resolve an address, returning "" on failure."""
    loop = asyncio.get_running_loop()
    try:
        name, _aliases, _addrs = await loop.run_in_executor(
            None, socket.gethostbyaddr, address
        )
    except (OSError, UnicodeError) as e:
        logger.debug(f"Reverse lookup for {address} failed: {e}")
        return ""
    return name.rstrip(".")


def normalize_mac(mac: str) -> str:
    """Format a MAC address upper-case with colon separators."""
    return mac.upper().replace("-", ":")


def parse_arp_output(output: str, address: str) -> str:
    """
    Find the MAC address for ``address`` in ``arp`` output.

    Only lines that mention the address are considered, since Windows
    may list the whole table.
    """
    pattern = re.compile(rf"(?<![\d.]){re.escape(address)}(?![\d.])")
    for line in output.splitlines():
        if not pattern.search(line):
            continue
        match = MAC_PATTERN.search(line)
        if match:
            return normalize_mac(match.group(0))
    return ""


class ArpResolver(ABC):
    """Resolves an IPv4 address to a hardware address."""

    @abstractmethod
    async def resolve(self, address: str) -> str:
        """Return the MAC address, or "" if unknown."""
        pass


class NullArpResolver(ArpResolver):
    """Resolver for platforms without ARP support."""

    async def resolve(self, address: str) -> str:
        return ""


class CommandArpResolver(ArpResolver):
    """
    Reads the local ARP cache via the system ``arp`` command.

    Hosts that have not exchanged traffic recently will not be in the
    cache; the scan's own probes usually populate it.
    """

    def __init__(
        self,
        build_command: Callable[[str], list[str]],
        timeout: float = ARP_TIMEOUT,
    ):
        self.build_command = build_command
        self.timeout = timeout

    async def resolve(self, address: str) -> str:
        cmd = self.build_command(address)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.debug(f"Cannot run {cmd[0]}: {e}")
            return ""

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.debug(f"ARP lookup for {address} timed out")
            return ""

        if proc.returncode != 0:
            logger.debug(f"ARP lookup for {address} exited with {proc.returncode}")
            return ""

        return parse_arp_output(stdout.decode(errors="replace"), address)


def _unix_arp_command(address: str) -> list[str]:
    # -n skips DNS resolution
    return ["arp", "-n", address]


def _windows_arp_command(address: str) -> list[str]:
    return ["arp", "-a", address]


def get_arp_resolver(system: Optional[str] = None, timeout: float = ARP_TIMEOUT) -> ArpResolver:
    """ARP resolver factory: returns the implementation for the platform."""
    system = (system or platform.system()).lower()

    if system in ("linux", "darwin"):
        return CommandArpResolver(_unix_arp_command, timeout=timeout)
    elif system == "windows":
        return CommandArpResolver(_windows_arp_command, timeout=timeout)
    else:
        logger.info(f"ARP lookup not supported on {system}, MAC addresses disabled")
        return NullArpResolver()
