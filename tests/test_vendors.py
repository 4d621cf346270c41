"""Tests for MAC vendor lookup."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from mac_vendor_lookup import InvalidMacError
from mac_vendor_lookup import VendorNotFoundError as UpstreamVendorNotFound

from netview_scanner.exceptions import VendorNotFoundError
from netview_scanner.vendors import (
    MacVendorLookup,
    StaticVendorLookup,
    get_vendor_lookup,
    oui_prefix,
)


class TestOuiPrefix:
    """Tests for OUI prefix extraction."""

    def test_colon_format(self):
        assert oui_prefix("b8:27:eb:12:34:56") == "B8:27:EB"

    def test_dash_format(self):
        assert oui_prefix("DC-A6-32-01-02-03") == "DC:A6:32"

    def test_malformed(self):
        """Anything but 12 hex digits has no prefix."""
        assert oui_prefix("") is None
        assert oui_prefix("b8:27:eb") is None


class TestStaticVendorLookup:
    """Tests for the built-in OUI table."""

    @pytest.mark.asyncio
    async def test_raspberry_pi(self):
        lookup = StaticVendorLookup()
        assert "Raspberry" in await lookup.lookup("b8:27:eb:aa:bb:cc")

    @pytest.mark.asyncio
    async def test_apple(self):
        lookup = StaticVendorLookup()
        assert await lookup.lookup("A4:83:E7:00:11:22") == "Apple"

    @pytest.mark.asyncio
    async def test_unknown_raises(self):
        """Unknown prefixes raise VendorNotFoundError."""
        with pytest.raises(VendorNotFoundError):
            await StaticVendorLookup().lookup("12:34:56:78:9A:BC")

    @pytest.mark.asyncio
    async def test_lookup_or_empty(self):
        """Empty and unknown addresses resolve to an empty vendor."""
        lookup = StaticVendorLookup()
        assert await lookup.lookup_or_empty("") == ""
        assert await lookup.lookup_or_empty("12:34:56:78:9A:BC") == ""

    @pytest.mark.asyncio
    async def test_extra_prefixes(self):
        """Extra prefixes are normalized and merged into the table."""
        lookup = StaticVendorLookup(extra={"12-34-56": "Acme", "abcdef": "Example"})
        assert await lookup.lookup("12:34:56:00:00:01") == "Acme"
        assert await lookup.lookup("ab:cd:ef:00:00:01") == "Example"


class TestMacVendorLookup:
    """Tests for the mac-vendor-lookup backed source."""

    @pytest.mark.asyncio
    async def test_lookup(self):
        upstream = MagicMock()
        upstream.lookup = AsyncMock(return_value="Raspberry Pi Trading Ltd")

        lookup = MacVendorLookup(lookup=upstream)

        assert await lookup.lookup("DC:A6:32:01:02:03") == "Raspberry Pi Trading Ltd"
        upstream.lookup.assert_awaited_once_with("DC:A6:32:01:02:03")

    @pytest.mark.asyncio
    async def test_not_found_translated(self):
        """Upstream errors become VendorNotFoundError."""
        upstream = MagicMock()
        upstream.lookup = AsyncMock(side_effect=UpstreamVendorNotFound("12:34:56:78:9A:BC"))

        with pytest.raises(VendorNotFoundError):
            await MacVendorLookup(lookup=upstream).lookup("12:34:56:78:9A:BC")

    @pytest.mark.asyncio
    async def test_invalid_mac_is_empty(self):
        """Invalid addresses resolve to an empty vendor."""
        upstream = MagicMock()
        upstream.lookup = AsyncMock(side_effect=InvalidMacError("bad"))

        assert await MacVendorLookup(lookup=upstream).lookup_or_empty("bad") == ""

    @pytest.mark.asyncio
    async def test_update(self):
        upstream = MagicMock()
        upstream.update_vendors = AsyncMock()

        await MacVendorLookup(lookup=upstream).update()

        upstream.update_vendors.assert_awaited_once()


class TestFactory:
    """Tests for get_vendor_lookup."""

    def test_static(self):
        assert isinstance(get_vendor_lookup("static"), StaticVendorLookup)

    def test_mac_vendor_lookup(self):
        assert isinstance(get_vendor_lookup("mac-vendor-lookup"), MacVendorLookup)

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_vendor_lookup("ldap")
