"""
Concurrent TCP connect port scanning for hosts already known to be alive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from ._types import normalize_ports
from .probes import KnockOutcome, tcp_knock

logger = logging.getLogger(__name__)

PORT_SCAN_TIMEOUT = 0.5


class PortScanner:
    """
    Test a set of candidate ports with one connect attempt each.

    A port is open only if the connection succeeds; a refusal proves the
    host is up but the port closed, so it is not reported.
    """

    def __init__(self, timeout: float = PORT_SCAN_TIMEOUT, knock: Callable = tcp_knock):
        self.timeout = timeout
        self._knock = knock

    async def scan(self, address: str, ports: Iterable[int]) -> set[int]:
        """Return the subset of ``ports`` accepting connections."""
        candidates = normalize_ports(ports)
        if not candidates:
            return set()

        outcomes = await asyncio.gather(
            *(self._knock(address, port, self.timeout) for port in candidates)
        )
        open_ports = {
            port
            for port, outcome in zip(candidates, outcomes)
            if outcome == KnockOutcome.OPEN
        }
        logger.debug(f"{address}: {len(open_ports)}/{len(candidates)} ports open")
        return open_ports
