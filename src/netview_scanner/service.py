"""
Netview Scanner Service - HTTP control surface and command line.

Wires the range scanner and host monitor to one shared state and an
in-memory inventory, then exposes them over a small aiohttp API. The
``scan`` subcommand runs a single scan without the API and prints each
discovered host as a JSON line.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from aiohttp import web
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from ._types import DeviceType, Host, ScanRequest
from .addressing import ip_to_int
from .config import ScannerConfig, parse_port_list
from .events import FanoutEventSink, InventoryEventSink, LoggingEventSink
from .exceptions import InvalidAddressError, PreconditionError, ScanValidationError
from .monitor import HostMonitor
from .port_scanner import PortScanner
from .probes import LivenessProbe
from .resolvers import ArpResolver, get_arp_resolver, resolve_hostname
from .scanner import HostnameResolver, RangeScanner
from .state import ScannerState
from .vendors import VendorLookup, get_vendor_lookup

logger = logging.getLogger(__name__)


class ScanRequestBody(BaseModel):
    """POST /api/scans body. Accepts snake_case or camelCase keys."""
    start_address: str = Field("", validation_alias=AliasChoices("start_address", "startIp", "startAddress"))
    end_address: str = Field("", validation_alias=AliasChoices("end_address", "endIp", "endAddress"))
    ports: list[int] = Field(default_factory=list)
    search_hidden_hosts: Optional[bool] = Field(
        None, validation_alias=AliasChoices("search_hidden_hosts", "searchHiddenHosts")
    )
    hidden_host_ports: Optional[list[int]] = Field(
        None, validation_alias=AliasChoices("hidden_host_ports", "hiddenHostPorts")
    )

    def to_request(self, config: ScannerConfig) -> ScanRequest:
        """Build a ScanRequest, filling hidden-host settings from config."""
        search_hidden = (
            config.search_hidden_hosts
            if self.search_hidden_hosts is None
            else self.search_hidden_hosts
        )
        hidden_ports = (
            config.hidden_host_ports
            if self.hidden_host_ports is None
            else tuple(self.hidden_host_ports)
        )
        return ScanRequest(
            start_address=self.start_address.strip(),
            end_address=self.end_address.strip(),
            ports=tuple(self.ports),
            search_hidden_hosts=search_hidden,
            hidden_host_ports=hidden_ports,
        )


class HostBody(BaseModel):
    """A host record as returned by GET /api/hosts."""
    address: str = Field(validation_alias=AliasChoices("address", "ipAddress"))
    hostname: str = ""
    mac_address: str = Field("", validation_alias=AliasChoices("mac_address", "macAddress"))
    os_name: str = Field("", validation_alias=AliasChoices("os_name", "os"))
    open_ports: list[int] = Field(default_factory=list, validation_alias=AliasChoices("open_ports", "openPorts"))
    device_type: DeviceType = Field(
        DeviceType.GENERIC, validation_alias=AliasChoices("device_type", "deviceType")
    )

    def to_host(self) -> Host:
        return Host(
            address=self.address,
            hostname=self.hostname,
            mac_address=self.mac_address,
            os_name=self.os_name,
            open_ports=frozenset(self.open_ports),
            device_type=self.device_type,
        )


class MonitorStartBody(BaseModel):
    """
    POST /api/monitor/start body.

    ``addresses`` are looked up in the inventory so their open ports can
    be used for fast checks; ``hosts`` carries full records directly.
    """
    addresses: list[str] = Field(default_factory=list)
    hosts: list[HostBody] = Field(default_factory=list)
    search_hidden_hosts: Optional[bool] = Field(
        None, validation_alias=AliasChoices("search_hidden_hosts", "searchHiddenHosts")
    )
    hidden_host_ports: Optional[list[int]] = Field(
        None, validation_alias=AliasChoices("hidden_host_ports", "hiddenHostPorts")
    )


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"status": "error", "message": message}, status=status)


class NetviewService:
    """
    Network scanner service.

    Owns the shared scanner state, the inventory of discovered hosts, a
    range scanner and a host monitor.
    """

    def __init__(
        self,
        config: ScannerConfig,
        liveness_factory=None,
        port_scanner: Optional[PortScanner] = None,
        arp_resolver: Optional[ArpResolver] = None,
        vendor_lookup: Optional[VendorLookup] = None,
        hostname_resolver: HostnameResolver = resolve_hostname,
    ):
        """
        Initialize the service.

        Args:
            config: Scanner configuration
            liveness_factory: Overrides the configured liveness probe
            port_scanner: Overrides the configured port scanner
            arp_resolver: Overrides the platform ARP resolver
            vendor_lookup: Overrides the configured vendor source
            hostname_resolver: Async reverse-lookup function
        """
        self.config = config
        self.state = ScannerState(history_size=config.history_size)
        self.inventory = InventoryEventSink()
        self.sink = FanoutEventSink([LoggingEventSink(), self.inventory])

        liveness_factory = liveness_factory or self._configured_liveness

        self.scanner = RangeScanner(
            self.state,
            sink=self.sink,
            liveness_factory=liveness_factory,
            port_scanner=port_scanner or PortScanner(timeout=config.port_scan_timeout),
            arp_resolver=arp_resolver or get_arp_resolver(timeout=config.arp_timeout),
            vendor_lookup=vendor_lookup or get_vendor_lookup(config.vendor_source),
            hostname_resolver=hostname_resolver,
            max_concurrency=config.max_concurrency,
            default_ports=config.default_ports,
        )
        self.monitor = HostMonitor(
            self.state,
            sink=self.sink,
            liveness_factory=liveness_factory,
            interval=config.monitor_interval_seconds,
            knock_timeout=config.hidden_host_timeout,
        )

        self._running = False
        self._shutdown_event = asyncio.Event()
        self._api_runner: Optional[web.AppRunner] = None
        self._stop_task: Optional[asyncio.Task] = None

    def _configured_liveness(
        self,
        search_hidden_hosts: bool,
        hidden_host_ports: Sequence[int],
    ) -> LivenessProbe:
        return LivenessProbe.for_settings(
            search_hidden_hosts,
            hidden_host_ports,
            echo_timeout=self.config.echo_timeout,
            hidden_host_timeout=self.config.hidden_host_timeout,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the API server and run until stop() is called."""
        logger.info("Starting Netview scanner service")
        self.state.initialize()
        self._running = True

        await self._start_api_server()
        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """
        Stop monitoring, cancel any scan and shut the API down.

        Safe to call more than once: every caller waits for the same
        teardown to finish.
        """
        if self._stop_task is None:
            self._stop_task = asyncio.create_task(self._teardown())
        await self._stop_task

    async def _teardown(self) -> None:
        logger.info("Stopping Netview scanner service")
        self._running = False

        await self.monitor.stop()
        self.scanner.cancel()
        await self.scanner.wait()
        self.state.shutdown()

        if self._api_runner:
            await self._api_runner.cleanup()
            self._api_runner = None

        # start() returns only once everything above has been released
        self._shutdown_event.set()

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/api/scans", self._handle_start_scan)
        app.router.add_post("/api/scans/cancel", self._handle_cancel_scan)
        app.router.add_get("/api/scans/status", self._handle_scan_status)
        app.router.add_get("/api/scans/history", self._handle_history)
        app.router.add_get("/api/hosts", self._handle_list_hosts)
        app.router.add_post("/api/monitor/start", self._handle_monitor_start)
        app.router.add_post("/api/monitor/stop", self._handle_monitor_stop)
        app.router.add_get("/api/monitor/status", self._handle_monitor_status)
        app.router.add_get("/api/health", self._handle_health)
        return app

    async def _start_api_server(self) -> None:
        self._api_runner = web.AppRunner(self.create_app())
        await self._api_runner.setup()
        site = web.TCPSite(self._api_runner, self.config.api_host, self.config.api_port)
        await site.start()
        logger.info(f"API server listening on {self.config.api_host}:{self.config.api_port}")

    # -------------------------------------------------------------------------
    # API Handlers
    # -------------------------------------------------------------------------

    async def _handle_start_scan(self, request: web.Request) -> web.Response:
        """Handle POST /api/scans."""
        try:
            data = await request.json() if request.body_exists else {}
            body = ScanRequestBody.model_validate(data)
        except ValidationError as e:
            return _error(f"Invalid scan request: {e.errors()[0]['msg']}", 400)
        except ValueError:
            return _error("Request body is not valid JSON", 400)

        scan_request = body.to_request(self.config)
        try:
            await self.scanner.start(scan_request)
        except ScanValidationError as e:
            return _error(str(e), 400)
        except PreconditionError as e:
            return _error(str(e), 409)

        return web.json_response({
            "status": "started",
            "start_address": scan_request.start_address,
            "end_address": scan_request.end_address,
            "ports": list(scan_request.effective_ports(self.scanner.default_ports)),
        }, status=202)

    async def _handle_cancel_scan(self, request: web.Request) -> web.Response:
        """Handle POST /api/scans/cancel."""
        if not self.scanner.is_running:
            return web.json_response({"status": self.scanner.status.value})
        self.scanner.cancel()
        return web.json_response({"status": "cancelling"})

    async def _handle_scan_status(self, request: web.Request) -> web.Response:
        """Handle GET /api/scans/status."""
        current = self.scanner.current_request
        return web.json_response({
            "status": self.scanner.status.value,
            "current": {
                "start_address": current.start_address,
                "end_address": current.end_address,
            } if current else None,
            "last_error": self.inventory.last_error,
            "last_completion": self.inventory.last_completion,
        })

    async def _handle_history(self, request: web.Request) -> web.Response:
        """Handle GET /api/scans/history."""
        return web.json_response({
            "history": [entry.to_dict() for entry in self.state.history.entries()],
        })

    async def _handle_list_hosts(self, request: web.Request) -> web.Response:
        """Handle GET /api/hosts."""
        device_type = request.query.get("type")
        if device_type:
            try:
                type_filter: Optional[DeviceType] = DeviceType(device_type)
            except ValueError:
                return _error(f"Unknown device type: {device_type}", 400)
        else:
            type_filter = None

        statuses = self.inventory.statuses()
        hosts = sorted(self.inventory.hosts(), key=lambda h: ip_to_int(h.address))
        if type_filter:
            hosts = [h for h in hosts if h.device_type == type_filter]

        return web.json_response({
            "hosts": [
                {**host.to_dict(), "is_online": statuses.get(host.address, True)}
                for host in hosts
            ],
            "total": len(hosts),
        })

    async def _handle_monitor_start(self, request: web.Request) -> web.Response:
        """Handle POST /api/monitor/start."""
        try:
            data = await request.json() if request.body_exists else {}
            body = MonitorStartBody.model_validate(data)
        except ValidationError as e:
            return _error(f"Invalid monitor request: {e.errors()[0]['msg']}", 400)
        except ValueError:
            return _error("Request body is not valid JSON", 400)

        hosts: list[Host] = []
        try:
            for address in body.addresses:
                ip_to_int(address)
                hosts.append(self.inventory.get_host(address) or Host(address=address))
            for item in body.hosts:
                ip_to_int(item.address)
                hosts.append(item.to_host())
            hidden_ports = (
                self.config.hidden_host_ports
                if body.hidden_host_ports is None
                else parse_port_list(body.hidden_host_ports)
            )
        except InvalidAddressError as e:
            return _error(f"Invalid host address: {e}", 400)
        except ValueError as e:
            return _error(f"Invalid port list: {e}", 400)

        search_hidden = (
            self.config.search_hidden_hosts
            if body.search_hidden_hosts is None
            else body.search_hidden_hosts
        )
        try:
            await self.monitor.start(hosts, search_hidden, hidden_ports)
        except PreconditionError as e:
            return _error(str(e), 409)

        return web.json_response({
            "status": "active" if self.monitor.is_active() else "stopped",
            "hosts": len(self.monitor.monitored_addresses()),
        })

    async def _handle_monitor_stop(self, request: web.Request) -> web.Response:
        """Handle POST /api/monitor/stop."""
        await self.monitor.stop()
        return web.json_response({"status": "stopped"})

    async def _handle_monitor_status(self, request: web.Request) -> web.Response:
        """Handle GET /api/monitor/status."""
        return web.json_response({
            "active": self.monitor.is_active(),
            "state": self.monitor.status.value,
            "cycles": self.monitor.cycles_completed,
            "hosts": [
                {"address": address, "is_online": self.monitor.status_of(address)}
                for address in self.monitor.monitored_addresses()
            ],
        })

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /api/health."""
        return web.json_response({
            "status": "ok",
            "service": "netview-scanner",
            "initialized": self.state.initialized,
            "scan": self.scanner.status.value,
            "monitoring": self.monitor.is_active(),
            "hosts": len(self.inventory.hosts()),
        })


async def run_single_scan(service: NetviewService, request: ScanRequest) -> bool:
    """Run one scan to completion and print every host found as JSON."""
    service.state.initialize()
    try:
        completed = await service.scanner.run(request)
    finally:
        service.state.shutdown()

    for host in sorted(service.inventory.hosts(), key=lambda h: ip_to_int(h.address)):
        print(json.dumps(host.to_dict()))
    return completed


def _build_parser():
    import argparse

    parser = argparse.ArgumentParser(description="Netview network range scanner")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("--log-level", type=str, default=None, help="Log level")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None, help="API host")
    serve.add_argument("--port", type=int, default=None, help="API port")

    scan = subparsers.add_parser("scan", help="Scan a range once and print hosts")
    scan.add_argument("start", help="First address of the range")
    scan.add_argument("end", help="Last address of the range")
    scan.add_argument("--ports", type=str, default="", help="Comma-separated ports to scan")
    scan.add_argument(
        "--hidden-ports",
        type=str,
        default=None,
        help="Comma-separated ports for hidden host search (enables it)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None):
    """Entry point for netview-scanner."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    command = args.command or "serve"

    # Load configuration
    if args.config:
        config = ScannerConfig.from_yaml(Path(args.config))
    else:
        config = ScannerConfig.from_env()

    if args.log_level:
        config.log_level = args.log_level

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if command == "serve":
        if getattr(args, "host", None):
            config.api_host = args.host
        if getattr(args, "port", None):
            config.api_port = args.port

    # Validate
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        sys.exit(1)

    if command == "scan":
        try:
            hidden_ports = parse_port_list(args.hidden_ports) if args.hidden_ports else ()
            scan_request = ScanRequest(
                start_address=args.start,
                end_address=args.end,
                ports=parse_port_list(args.ports),
                search_hidden_hosts=bool(hidden_ports) or config.search_hidden_hosts,
                hidden_host_ports=hidden_ports or config.hidden_host_ports,
            )
        except ValueError as e:
            logger.error(f"Invalid port list: {e}")
            sys.exit(2)

        service = NetviewService(config)
        try:
            completed = asyncio.run(run_single_scan(service, scan_request))
        except ScanValidationError as e:
            logger.error(str(e))
            sys.exit(2)
        except KeyboardInterrupt:
            logger.info("Interrupted")
            sys.exit(130)
        sys.exit(0 if completed else 1)

    # Create service
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    service = NetviewService(config)

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(service.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        loop.run_until_complete(service.stop())
        loop.close()


if __name__ == "__main__":
    main()
