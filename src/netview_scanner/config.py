"""
Network scanner configuration.

Settings come from environment variables (NETVIEW_*) or a YAML file.
Every value has a default suitable for scanning a home or small office
/24 network.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Union

import yaml

from ._types import DEFAULT_SCAN_PORTS, normalize_ports

logger = logging.getLogger(__name__)

VENDOR_SOURCES = ("static", "mac-vendor-lookup")


def parse_port_list(value: Union[str, Iterable[int], None]) -> tuple[int, ...]:
    """
    Parse a port list from a comma-separated string or an iterable.

    Blank entries are ignored. Raises ValueError on anything that is not
    a port number.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
        return normalize_ports(int(item) for item in items if item)
    return normalize_ports(value)


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").strip().lower() in ("1", "true", "yes")


@dataclass
class ScannerConfig:
    """Network scanner configuration."""

    # Range scanning
    default_ports: tuple[int, ...] = DEFAULT_SCAN_PORTS
    max_concurrency: int = 100
    echo_timeout: float = 1.0
    hidden_host_timeout: float = 0.2
    port_scan_timeout: float = 0.5
    arp_timeout: float = 2.0

    # Hidden host search (TCP fallback when ping gets no reply)
    search_hidden_hosts: bool = False
    hidden_host_ports: tuple[int, ...] = field(default_factory=tuple)

    # Monitoring
    monitor_interval_seconds: float = 10.0

    # History
    history_size: int = 10

    # MAC vendor source: "static" (built-in table) or "mac-vendor-lookup"
    vendor_source: str = "static"

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8085

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ScannerConfig":
        """Load configuration from environment variables."""
        config = cls()

        if ports := os.getenv("NETVIEW_PORTS"):
            config.default_ports = parse_port_list(ports)
        config.max_concurrency = int(os.getenv("NETVIEW_MAX_CONCURRENCY", str(config.max_concurrency)))
        config.echo_timeout = float(os.getenv("NETVIEW_ECHO_TIMEOUT", str(config.echo_timeout)))
        config.port_scan_timeout = float(
            os.getenv("NETVIEW_PORT_SCAN_TIMEOUT", str(config.port_scan_timeout))
        )

        # Hidden hosts
        config.search_hidden_hosts = _env_bool("NETVIEW_SEARCH_HIDDEN_HOSTS", False)
        config.hidden_host_ports = parse_port_list(os.getenv("NETVIEW_HIDDEN_HOST_PORTS", ""))

        # Monitoring / history
        config.monitor_interval_seconds = float(
            os.getenv("NETVIEW_MONITOR_INTERVAL", str(config.monitor_interval_seconds))
        )
        config.history_size = int(os.getenv("NETVIEW_HISTORY_SIZE", str(config.history_size)))

        config.vendor_source = os.getenv("NETVIEW_VENDOR_SOURCE", config.vendor_source)

        # API server
        config.api_host = os.getenv("NETVIEW_API_HOST", config.api_host)
        config.api_port = int(os.getenv("NETVIEW_API_PORT", str(config.api_port)))

        # Logging
        config.log_level = os.getenv("NETVIEW_LOG_LEVEL", "INFO")

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "ScannerConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "scan" in data:
            s = data["scan"]
            if "ports" in s:
                config.default_ports = parse_port_list(s["ports"])
            config.max_concurrency = s.get("max_concurrency", config.max_concurrency)
            config.echo_timeout = s.get("echo_timeout", config.echo_timeout)
            config.hidden_host_timeout = s.get("hidden_host_timeout", config.hidden_host_timeout)
            config.port_scan_timeout = s.get("port_scan_timeout", config.port_scan_timeout)
            config.arp_timeout = s.get("arp_timeout", config.arp_timeout)

        if "hidden_hosts" in data:
            h = data["hidden_hosts"]
            config.search_hidden_hosts = bool(h.get("enabled", False))
            config.hidden_host_ports = parse_port_list(h.get("ports"))

        if "monitor" in data:
            config.monitor_interval_seconds = data["monitor"].get(
                "interval", config.monitor_interval_seconds
            )

        if "history" in data:
            config.history_size = data["history"].get("max_items", config.history_size)

        config.vendor_source = data.get("vendor_source", config.vendor_source)

        if "api" in data:
            a = data["api"]
            config.api_host = a.get("host", config.api_host)
            config.api_port = a.get("port", config.api_port)

        config.log_level = data.get("log_level", "INFO")

        return config

    def validate(self) -> list[str]:
        """Validate configuration, returning list of errors."""
        errors = []

        if not self.default_ports:
            errors.append("No default ports configured")

        if self.max_concurrency < 1:
            errors.append(f"Invalid max concurrency: {self.max_concurrency}")

        for name in ("echo_timeout", "hidden_host_timeout", "port_scan_timeout", "arp_timeout"):
            if getattr(self, name) <= 0:
                errors.append(f"Invalid {name}: {getattr(self, name)}")

        if self.monitor_interval_seconds <= 0:
            errors.append(f"Invalid monitor interval: {self.monitor_interval_seconds}")

        if self.history_size < 1:
            errors.append(f"Invalid history size: {self.history_size}")

        if self.search_hidden_hosts and not self.hidden_host_ports:
            errors.append("Hidden host search enabled but no hidden host ports configured")

        if self.vendor_source not in VENDOR_SOURCES:
            errors.append(f"Unsupported vendor source: {self.vendor_source}")

        if not 0 < self.api_port < 65536:
            errors.append(f"Invalid API port: {self.api_port}")

        return errors


# Example netview.yaml:
"""
scan:
  ports: "22, 80, 443, 8080, 445"
  max_concurrency: 100
  port_scan_timeout: 0.5

hidden_hosts:
  enabled: true
  ports: [7, 9, 13, 21, 23, 25, 110, 143]

monitor:
  interval: 10

history:
  max_items: 10

vendor_source: "static"

api:
  host: "127.0.0.1"
  port: 8085

log_level: "INFO"
"""
