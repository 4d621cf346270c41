"""
Range scanner - discovery orchestration for an inclusive IPv4 range.

Each address gets one worker: liveness probe, then (for alive hosts)
port scan, hostname and MAC resolution, vendor lookup and
classification. Workers run through a bounded pool. Exactly one
completion notification is published per accepted scan, after every
worker has finished.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence

from ._types import DEFAULT_SCAN_PORTS, Host, ScanRequest, normalize_ports
from .addressing import int_to_ip, ip_to_int
from .classifier import classify_device
from .concurrency import CancellationToken, WorkerPool
from .events import EventSink, LoggingEventSink
from .exceptions import InvalidAddressError, ScanInProgressError, ScanValidationError
from .port_scanner import PortScanner
from .probes import LivenessFactory, LivenessProbe
from .resolvers import ArpResolver, get_arp_resolver, resolve_hostname
from .state import ScannerState
from .vendors import StaticVendorLookup, VendorLookup

logger = logging.getLogger(__name__)

MAX_CONCURRENCY = 100

HostnameResolver = Callable[[str], Awaitable[str]]


class ScanState(str, Enum):
    """Lifecycle of a range scan."""
    IDLE = "idle"
    VALIDATING = "validating"
    RUNNING = "running"
    COMPLETED = "completed"  # Every address was dispatched and finished
    CANCELLED = "cancelled"  # Stopped early by cancel()
    FAILED = "failed"        # Rejected by validation or aborted by an error


class RangeScanner:
    """
    Scans an inclusive IPv4 range and publishes discovered hosts.

    Only one scan runs at a time per scanner instance.
    """

    def __init__(
        self,
        state: ScannerState,
        sink: Optional[EventSink] = None,
        liveness_factory: Optional[LivenessFactory] = None,
        port_scanner: Optional[PortScanner] = None,
        arp_resolver: Optional[ArpResolver] = None,
        vendor_lookup: Optional[VendorLookup] = None,
        hostname_resolver: HostnameResolver = resolve_hostname,
        max_concurrency: int = MAX_CONCURRENCY,
        default_ports: Sequence[int] = DEFAULT_SCAN_PORTS,
    ):
        """
        Initialize the range scanner.

        Args:
            state: Shared process state (history, initialization flag)
            sink: Receiver of hostFound / scanError / scanComplete
            liveness_factory: Builds the liveness probe for a request's
                hidden-host settings
            port_scanner: Port scanner for alive hosts
            arp_resolver: MAC address resolver (platform default if None)
            vendor_lookup: MAC vendor lookup (built-in table if None)
            hostname_resolver: Async reverse-lookup function
            max_concurrency: Maximum addresses probed at once
            default_ports: Ports scanned when a request names none
        """
        self.shared_state = state
        self.sink = sink or LoggingEventSink()
        self._liveness_factory = liveness_factory or LivenessProbe.for_settings
        self.port_scanner = port_scanner or PortScanner()
        self.arp_resolver = arp_resolver or get_arp_resolver()
        self.vendor_lookup = vendor_lookup or StaticVendorLookup()
        self._hostname_resolver = hostname_resolver
        self.max_concurrency = max_concurrency
        self.default_ports = normalize_ports(default_ports)

        self.status = ScanState.IDLE
        self.current_request: Optional[ScanRequest] = None
        self.last_pool: Optional[WorkerPool] = None
        self._token: Optional[CancellationToken] = None

    @property
    def is_running(self) -> bool:
        return self.status in (ScanState.VALIDATING, ScanState.RUNNING)

    def validate(self, request: Optional[ScanRequest]) -> tuple[int, int]:
        """
        Check a request before any probing.

        Returns:
            Numeric (start, end) bounds of the range

        Raises:
            ScanValidationError: if the request cannot be scanned
        """
        if request is None or not request.start_address or not request.end_address:
            raise ScanValidationError("Scan requires a valid start and end IP address.")

        try:
            first = ip_to_int(request.start_address)
            last = ip_to_int(request.end_address)
        except InvalidAddressError as e:
            raise ScanValidationError(f"Invalid IP range: {e}") from e

        if first > last:
            raise ScanValidationError("Start IP cannot be greater than End IP")

        try:
            normalize_ports(request.ports)
            normalize_ports(request.hidden_host_ports)
        except (TypeError, ValueError) as e:
            raise ScanValidationError(f"Invalid port list: {e}") from e

        return first, last

    async def start(self, request: ScanRequest) -> None:
        """
        Validate a request and launch the scan in the background.

        On validation failure a scan error and a failed completion are
        published before ScanValidationError is raised; nothing is probed.

        Raises:
            NotInitializedError: if the shared state is not initialized
            ScanInProgressError: if a scan is already running
            ScanValidationError: if the request is invalid
        """
        self.shared_state.require_initialized("start a scan")
        if self.is_running:
            raise ScanInProgressError("A scan is already running")

        self.status = ScanState.VALIDATING
        self.current_request = request
        try:
            bounds = self.validate(request)
        except ScanValidationError as e:
            logger.warning(f"Scan rejected: {e}")
            self.status = ScanState.FAILED
            self.sink.scan_error(str(e))
            self.sink.scan_complete(False)
            raise

        self.shared_state.history.record(request)

        token = CancellationToken()
        self._token = token
        self.status = ScanState.RUNNING
        logger.info(
            f"Starting scan {request.start_address} - {request.end_address} "
            f"({bounds[1] - bounds[0] + 1} addresses)"
        )
        token.attach(asyncio.create_task(self._execute(request, bounds, token)))

    async def run(self, request: ScanRequest) -> bool:
        """Start a scan and wait for it; returns the completion flag."""
        await self.start(request)
        return await self.wait()

    async def wait(self) -> bool:
        """Wait for the current scan; True if it ran to completion."""
        if self._token is not None:
            await self._token.join()
        return self.status == ScanState.COMPLETED

    def cancel(self) -> None:
        """
        Request early termination.

        No new addresses are dispatched; workers already in flight finish
        on their own timeouts.
        """
        if self._token is not None and self.is_running:
            logger.info("Scan cancellation requested")
            self._token.cancel()

    async def _execute(
        self,
        request: ScanRequest,
        bounds: tuple[int, int],
        token: CancellationToken,
    ) -> None:
        first, last = bounds
        pool = WorkerPool(self.max_concurrency)
        self.last_pool = pool
        completed = False
        final_state = ScanState.CANCELLED

        try:
            ports = request.effective_ports(self.default_ports)
            liveness = self._liveness_factory(
                request.search_hidden_hosts,
                request.hidden_host_ports,
            )
            logger.debug(f"Scanning ports {list(ports)}")

            for value in range(first, last + 1):
                worker = None
                if not token.is_cancelled:
                    worker = await pool.submit(
                        self._scan_address, int_to_ip(value), liveness, ports, token=token
                    )
                if worker is None:
                    logger.info(f"Scan cancelled after {pool.submitted} addresses")
                    break
            else:
                completed = True
                final_state = ScanState.COMPLETED
            await pool.join()
        except asyncio.CancelledError:
            completed = False
            final_state = ScanState.CANCELLED
            await pool.join()
            raise
        except Exception as e:
            logger.error(f"Scan failed: {e}")
            completed = False
            final_state = ScanState.FAILED
            await pool.join()
        finally:
            self.status = final_state
            logger.info(f"Scan finished: {self.status.value}")
            self.sink.scan_complete(completed)

    async def _scan_address(
        self,
        address: str,
        liveness: LivenessProbe,
        ports: Sequence[int],
    ) -> None:
        """Worker: probe one address and publish it if alive."""
        result = await liveness.check(address)
        if not result.alive:
            return

        if result.rtt is not None:
            logger.debug(f"{address} alive via {result.method} (rtt={result.rtt:.3f}s)")
        open_ports = await self.port_scanner.scan(address, ports)
        hostname, mac_address = await asyncio.gather(
            self._hostname_resolver(address),
            self.arp_resolver.resolve(address),
        )
        vendor = await self._lookup_vendor(mac_address)

        host = Host(
            address=address,
            hostname=hostname,
            mac_address=mac_address,
            os_name="",
            open_ports=frozenset(open_ports),
            device_type=classify_device(address, hostname, vendor, open_ports),
        )
        self.sink.host_found(host)

    async def _lookup_vendor(self, mac_address: str) -> str:
        try:
            return await self.vendor_lookup.lookup_or_empty(mac_address)
        except Exception as e:
            logger.debug(f"Vendor lookup for {mac_address} failed: {e}")
            return ""
