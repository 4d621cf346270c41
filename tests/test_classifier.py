"""Tests for device classification."""

import pytest

from netview_scanner.classifier import classify, classify_device
from netview_scanner._types import DeviceType


class TestPrinterRules:
    """Printer rules take precedence over everything else."""

    def test_printer_hostname(self):
        """Should classify by printer hostname."""
        assert classify_device("10.0.0.50", "HP-Printer-2F", "", []) == DeviceType.PRINTER

    @pytest.mark.parametrize("port", [631, 9100, 515])
    def test_printer_ports(self, port):
        """Should classify by IPP / JetDirect / LPD port."""
        assert classify_device("10.0.0.50", "", "", [port]) == DeviceType.PRINTER

    def test_printer_beats_linux_server(self):
        """A printer hostname wins over SSH plus a server hint."""
        assert classify_device("10.0.0.50", "printer-nas", "", [22]) == DeviceType.PRINTER

    def test_printer_port_beats_gateway_address(self):
        """Printer ports are checked before gateway addresses."""
        assert classify_device("192.168.1.1", "", "", [9100]) == DeviceType.PRINTER


class TestNetworkDeviceRules:
    """Tests for router/firewall detection."""

    @pytest.mark.parametrize("hostname", ["home-router", "Gateway", "fw-firewall", "core-switch"])
    def test_network_hostnames(self, hostname):
        """Should classify network equipment hostnames."""
        assert classify_device("10.1.1.7", hostname, "", [80]) == DeviceType.ROUTER_FIREWALL

    @pytest.mark.parametrize("address", ["192.168.1.1", "192.168.0.1", "10.0.0.1"])
    def test_gateway_addresses(self, address):
        """Should classify well-known gateway addresses."""
        assert classify_device(address, "", "", [22, 80]) == DeviceType.ROUTER_FIREWALL

    def test_other_dot_one_is_not_gateway(self):
        """Only the listed gateway addresses count."""
        assert classify_device("172.16.0.1", "", "", []) == DeviceType.GENERIC


class TestMacRules:
    """Tests for macOS detection."""

    @pytest.mark.parametrize("hostname", ["Johns-MacBook-Pro", "studio-imac", "apple-tv"])
    def test_mac_hostnames(self, hostname):
        """Should classify Apple hostnames."""
        assert classify_device("10.0.0.20", hostname, "", []) == DeviceType.MACOS_PC

    def test_mac_ports_without_linux_hostname(self):
        """SSH, AFP or SMB without a linux hostname means macOS."""
        assert classify_device("10.0.0.20", "", "", [548]) == DeviceType.MACOS_PC
        assert classify_device("10.0.0.20", "desk", "", [22]) == DeviceType.MACOS_PC

    def test_smb_port_prefers_mac_over_windows(self):
        """Port 445 hits the Mac rule before the Windows rule."""
        assert classify_device("10.0.0.20", "", "", [445, 3389]) == DeviceType.MACOS_PC

    def test_linux_hostname_skips_mac_port_rule(self):
        """A linux hostname falls through to the Linux rules."""
        assert classify_device("10.0.0.20", "linux-box", "", [22]) == DeviceType.LINUX_PC


class TestVendorRules:
    """Tests for MAC vendor based detection."""

    def test_apple_vendor(self):
        """Should classify Apple hardware."""
        assert classify_device("10.0.0.30", "", "Apple, Inc.", []) == DeviceType.MACOS_PC

    def test_raspberry_vendor(self):
        """Should classify Raspberry Pi hardware."""
        assert classify_device("10.0.0.30", "", "Raspberry Pi Trading Ltd", [80]) == DeviceType.RASPBERRY_PI

    def test_vendor_beats_windows_ports(self):
        """Vendor rule comes before Windows ports."""
        assert classify_device("10.0.0.30", "", "Raspberry Pi Foundation", [3389]) == DeviceType.RASPBERRY_PI

    def test_mac_ports_beat_vendor(self):
        """Mac port rule comes before vendor rule."""
        assert classify_device("10.0.0.30", "", "Raspberry Pi Foundation", [22]) == DeviceType.MACOS_PC


class TestWindowsRules:
    """Tests for Windows detection."""

    @pytest.mark.parametrize("port", [135, 137, 138, 139, 3389])
    def test_windows_ports(self, port):
        """Should classify Windows service ports."""
        assert classify_device("10.0.0.40", "", "", [port]) == DeviceType.WINDOWS_PC


class TestLinuxRules:
    """Tests for Linux detection (requires SSH)."""

    def test_server_hostname(self):
        """SSH plus a server hint means Linux server."""
        assert classify_device("10.0.0.60", "linux-fileserver", "", [22]) == DeviceType.LINUX_SERVER

    def test_application_ports(self):
        """SSH plus an application port means Linux server."""
        assert classify_device("10.0.0.60", "linux-dev", "", [22, 3000]) == DeviceType.LINUX_SERVER

    def test_plain_ssh(self):
        """SSH without server signals means Linux PC."""
        assert classify_device("10.0.0.60", "linux-laptop", "", [22, 80]) == DeviceType.LINUX_PC

    def test_server_hint_without_ssh(self):
        """Server hints alone do not make a Linux server."""
        assert classify_device("10.0.0.60", "build-server", "", [8080]) == DeviceType.GENERIC


class TestMobileAndFallback:
    """Tests for mobile hostnames and the generic fallback."""

    def test_android(self):
        assert classify_device("10.0.0.70", "android-5f2a", "", []) == DeviceType.ANDROID_MOBILE

    @pytest.mark.parametrize("hostname", ["Kates-iPhone", "living-room-iPad"])
    def test_ios(self, hostname):
        assert classify_device("10.0.0.70", hostname, "", []) == DeviceType.IOS_MOBILE

    def test_generic(self):
        """Hosts with no signals are generic devices."""
        assert classify_device("10.0.0.80", "", "", [80, 443]) == DeviceType.GENERIC

    def test_none_inputs(self):
        """Missing hostname and vendor are treated as empty."""
        assert classify_device("10.0.0.80", None, None, []) == DeviceType.GENERIC


class TestClassify:
    """Tests for the detailed classification result."""

    def test_reason_included(self):
        """Should report which rule matched."""
        result = classify("10.0.0.50", "", "", [9100])
        assert result.device_type == DeviceType.PRINTER
        assert "9100" in result.reason

    def test_deterministic(self):
        """Same inputs always give the same label."""
        results = {classify("10.0.0.9", "nas", "", [22, 5000]).device_type for _ in range(5)}
        assert results == {DeviceType.MACOS_PC}
