"""
IPv4 address <-> integer conversion.

Ranges are enumerated by integer arithmetic: the addresses of
``[start, end]`` are ``int_to_ip(n)`` for ``n`` from ``ip_to_int(start)``
to ``ip_to_int(end)``.
"""

from __future__ import annotations

import ipaddress
from typing import Iterator

from .exceptions import InvalidAddressError

MAX_IPV4 = 2**32 - 1


def ip_to_int(address: str) -> int:
    """
    Convert a dotted-quad IPv4 string to its unsigned 32-bit value.

    Raises:
        InvalidAddressError: if the string is not an IPv4 address
    """
    if not isinstance(address, str) or not address:
        raise InvalidAddressError(str(address))
    try:
        return int(ipaddress.IPv4Address(address))
    except ipaddress.AddressValueError:
        # Distinguish IPv6 input for a clearer message
        try:
            ipaddress.IPv6Address(address)
        except ipaddress.AddressValueError:
            raise InvalidAddressError(address) from None
        raise InvalidAddressError(address, "not an IPv4 address") from None


def int_to_ip(value: int) -> str:
    """Convert an unsigned 32-bit value to dotted-quad form."""
    if not 0 <= value <= MAX_IPV4:
        raise ValueError(f"Value out of IPv4 range: {value}")
    return str(ipaddress.IPv4Address(value))


def normalize(address: str) -> str:
    return int_to_ip(ip_to_int(address))


def range_size(start: str, end: str) -> int:
    """Number of addresses in the inclusive range (0 if start > end)."""
    return max(0, ip_to_int(end) - ip_to_int(start) + 1)


def iter_range(start: str, end: str) -> Iterator[str]:
    """Yield every address of the inclusive range ``[start, end]``."""
    first = ip_to_int(start)
    last = ip_to_int(end)
    for value in range(first, last + 1):
        yield int_to_ip(value)
