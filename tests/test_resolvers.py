"""Tests for hostname and MAC address resolution."""

import socket

import pytest
from unittest.mock import patch

from netview_scanner.resolvers import (
    CommandArpResolver,
    NullArpResolver,
    get_arp_resolver,
    normalize_mac,
    parse_arp_output,
    resolve_hostname,
)


LINUX_ARP = """\
Address                  HWtype  HWaddress           Flags Mask            Iface
192.168.1.10             ether   aa:bb:cc:dd:ee:ff   C                     eth0
"""

WINDOWS_ARP = """\
Interface: 192.168.1.5 --- 0x4
  Internet Address      Physical Address      Type
  192.168.1.1           00-1b-63-aa-bb-cc     dynamic
  192.168.1.10          dc-a6-32-01-02-03     dynamic
  192.168.1.100         b8-27-eb-99-88-77     dynamic
"""


class TestParseArpOutput:
    """Tests for arp command output parsing."""

    def test_linux_format(self):
        """Should read the HWaddress column."""
        assert parse_arp_output(LINUX_ARP, "192.168.1.10") == "AA:BB:CC:DD:EE:FF"

    def test_windows_format(self):
        """Should pick the matching line and normalize dashes."""
        assert parse_arp_output(WINDOWS_ARP, "192.168.1.10") == "DC:A6:32:01:02:03"

    def test_address_prefix_not_confused(self):
        """192.168.1.10 must not match the 192.168.1.100 line."""
        table = "  192.168.1.100         b8-27-eb-99-88-77     dynamic\n"
        assert parse_arp_output(table, "192.168.1.10") == ""

    def test_interface_header_ignored(self):
        """The interface line has an address but no MAC."""
        assert parse_arp_output(WINDOWS_ARP, "192.168.1.5") == ""

    def test_incomplete_entry(self):
        """Entries without a hardware address yield nothing."""
        output = "192.168.1.77 (192.168.1.77) -- no entry\n"
        assert parse_arp_output(output, "192.168.1.77") == ""

    def test_normalize_mac(self):
        assert normalize_mac("aa-bb-cc-dd-ee-ff") == "AA:BB:CC:DD:EE:FF"


class TestArpResolverFactory:
    """Tests for get_arp_resolver."""

    @pytest.mark.parametrize("system", ["Linux", "Darwin"])
    def test_unix(self, system):
        """Unix platforms use arp -n."""
        resolver = get_arp_resolver(system)
        assert isinstance(resolver, CommandArpResolver)
        assert resolver.build_command("10.0.0.1") == ["arp", "-n", "10.0.0.1"]

    def test_windows(self):
        """Windows uses arp -a."""
        resolver = get_arp_resolver("Windows", timeout=1.5)
        assert resolver.build_command("10.0.0.1") == ["arp", "-a", "10.0.0.1"]
        assert resolver.timeout == 1.5

    def test_unsupported(self):
        """Other platforms get the null resolver."""
        assert isinstance(get_arp_resolver("Plan9"), NullArpResolver)


class TestCommandArpResolver:
    """Tests for running the arp command."""

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        """A missing command resolves to an empty string."""
        resolver = CommandArpResolver(lambda address: ["/nonexistent/arp", address])
        assert await resolver.resolve("10.0.0.1") == ""

    @pytest.mark.asyncio
    async def test_parses_command_output(self):
        """Output of the command is parsed for the address."""
        resolver = CommandArpResolver(
            lambda address: ["echo", f"{address} ether 52:54:00:12:34:56 C eth0"]
        )
        assert await resolver.resolve("10.0.0.1") == "52:54:00:12:34:56"

    @pytest.mark.asyncio
    async def test_null_resolver(self):
        assert await NullArpResolver().resolve("10.0.0.1") == ""


class TestResolveHostname:
    """Tests for reverse DNS."""

    @pytest.mark.asyncio
    async def test_success_strips_trailing_dot(self):
        """Should return the name without the root dot."""
        with patch("netview_scanner.resolvers.socket.gethostbyaddr",
                   return_value=("nas.lan.", [], ["10.0.0.9"])):
            assert await resolve_hostname("10.0.0.9") == "nas.lan"

    @pytest.mark.asyncio
    async def test_failure_is_empty(self):
        """Lookup errors yield an empty string."""
        with patch("netview_scanner.resolvers.socket.gethostbyaddr",
                   side_effect=socket.herror(1, "Unknown host")):
            assert await resolve_hostname("10.0.0.9") == ""
