"""
Host liveness probing.

Liveness is decided by an ordered list of interchangeable strategies:
an echo (ping) probe first, then, when hidden-host search is enabled,
TCP connect attempts against a caller-supplied port list. The first
strategy that reports the host alive wins.

A refused TCP connection counts as alive: the host answered, the port
is just closed. Timeouts and other errors are inconclusive.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import math
import platform
import shutil
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional, Sequence

from ._types import NOT_ALIVE, ProbeResult, normalize_ports

logger = logging.getLogger(__name__)

ECHO_TIMEOUT = 1.0
HIDDEN_HOST_TIMEOUT = 0.2


class KnockOutcome(str, Enum):
    """Result of a single TCP connect attempt."""
    OPEN = "open"        # Connected
    REFUSED = "refused"  # Host answered with RST
    TIMEOUT = "timeout"  # No answer within the timeout
    ERROR = "error"      # Unreachable, no route, etc.

    @property
    def affirmative(self) -> bool:
        """True when the attempt proves the host is present."""
        return self in (KnockOutcome.OPEN, KnockOutcome.REFUSED)


def _is_refusal(error: OSError) -> bool:
    if isinstance(error, ConnectionRefusedError):
        return True
    if error.errno == errno.ECONNREFUSED:
        return True
    # Some platforms only report refusal in the message
    return "connection refused" in str(error).lower()


async def tcp_knock(address: str, port: int, timeout: float) -> KnockOutcome:
    """
    Attempt one TCP connection and classify the outcome.

    The connection, if established, is closed before returning.
    """
    writer = None
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(address, port),
            timeout=timeout,
        )
        return KnockOutcome.OPEN
    except asyncio.TimeoutError:
        return KnockOutcome.TIMEOUT
    except OSError as e:
        if _is_refusal(e):
            return KnockOutcome.REFUSED
        logger.debug(f"Connect to {address}:{port} failed: {e}")
        return KnockOutcome.ERROR
    finally:
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass


class ProbeStrategy(ABC):
    """Base class for liveness strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of this strategy."""
        pass

    @abstractmethod
    async def probe(self, address: str) -> ProbeResult:
        """
        Probe a single address.

        Returns a ProbeResult; ``alive=False`` means inconclusive, not
        proven dead.
        """
        pass


class EchoProbe(ProbeStrategy):
    """
    One ICMP echo request via the system ``ping`` binary.

    Using the binary avoids needing raw-socket privileges. A missing
    binary makes the strategy inconclusive rather than failing.
    """

    def __init__(
        self,
        timeout: float = ECHO_TIMEOUT,
        ping_binary: Optional[str] = None,
        system: Optional[str] = None,
    ):
        self.timeout = timeout
        self.ping_binary = ping_binary
        self.system = (system or platform.system()).lower()

    @property
    def name(self) -> str:
        return "echo"

    def build_command(self, binary: str, address: str) -> list[str]:
        """Build the platform-specific single-packet ping command."""
        timeout_ms = max(1, int(self.timeout * 1000))
        if self.system.startswith("win"):
            return [binary, "-n", "1", "-w", str(timeout_ms), address]
        if self.system == "darwin":
            # macOS -W is in milliseconds
            return [binary, "-c", "1", "-W", str(timeout_ms), address]
        # Linux -W expects whole seconds
        return [binary, "-c", "1", "-W", str(max(1, math.ceil(self.timeout))), address]

    async def probe(self, address: str) -> ProbeResult:
        binary = self.ping_binary or shutil.which("ping")
        if not binary:
            logger.debug("ping binary not found, echo probe skipped")
            return NOT_ALIVE

        cmd = self.build_command(binary, address)
        started = time.perf_counter()
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            returncode = await asyncio.wait_for(proc.wait(), timeout=self.timeout + 1.0)
        except asyncio.TimeoutError:
            return NOT_ALIVE
        finally:
            # Timed out or cancelled: never leave ping running
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()

        if returncode == 0:
            return ProbeResult(
                alive=True,
                rtt=time.perf_counter() - started,
                method=self.name,
            )
        return NOT_ALIVE


class TcpConnectProbe(ProbeStrategy):
    """
    TCP connect "ping" over an ordered port list.

    Stops at the first port that connects or refuses.
    """

    def __init__(
        self,
        ports: Sequence[int],
        timeout: float = HIDDEN_HOST_TIMEOUT,
        knock: Callable = tcp_knock,
    ):
        self.ports = normalize_ports(ports)
        self.timeout = timeout
        self._knock = knock

    @property
    def name(self) -> str:
        return "tcp"

    async def probe(self, address: str) -> ProbeResult:
        for port in self.ports:
            started = time.perf_counter()
            outcome = await self._knock(address, port, self.timeout)
            if outcome.affirmative:
                return ProbeResult(
                    alive=True,
                    rtt=time.perf_counter() - started,
                    method=f"{self.name}:{port}/{outcome.value}",
                )
        return NOT_ALIVE


class LivenessProbe:
    """
    Ordered chain of probe strategies.

    Strategy exceptions are treated as inconclusive so a single broken
    strategy never aborts a scan.
    """

    def __init__(self, strategies: Sequence[ProbeStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def for_settings(
        cls,
        search_hidden_hosts: bool = False,
        hidden_host_ports: Sequence[int] = (),
        echo_timeout: float = ECHO_TIMEOUT,
        hidden_host_timeout: float = HIDDEN_HOST_TIMEOUT,
    ) -> "LivenessProbe":
        """Echo probe, followed by the hidden-host TCP fallback if enabled."""
        strategies: list[ProbeStrategy] = [EchoProbe(timeout=echo_timeout)]
        if search_hidden_hosts and hidden_host_ports:
            strategies.append(TcpConnectProbe(hidden_host_ports, timeout=hidden_host_timeout))
        return cls(strategies)

    async def check(self, address: str) -> ProbeResult:
        for strategy in self.strategies:
            try:
                result = await strategy.probe(address)
            except Exception as e:
                logger.debug(f"{strategy.name} probe of {address} failed: {e}")
                continue
            if result.alive:
                return result
        return NOT_ALIVE


# (search_hidden_hosts, hidden_host_ports) -> LivenessProbe
LivenessFactory = Callable[[bool, Sequence[int]], LivenessProbe]
