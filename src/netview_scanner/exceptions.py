"""
Exception hierarchy for the network scanner.

Only range validation and precondition failures are surfaced to callers.
Individual probe failures are handled where they occur and never raised
past a worker.
"""


class NetviewError(Exception):
    """Base class for scanner errors."""


class InvalidAddressError(NetviewError, ValueError):
    """A string is not an IPv4 dotted-quad address."""

    def __init__(self, address: str, reason: str = "invalid IP address"):
        self.address = address
        super().__init__(f"{reason}: {address!r}")


class ScanValidationError(NetviewError, ValueError):
    """A scan request was rejected before any probing started."""


class PreconditionError(NetviewError):
    """An operation was invoked in a state that does not allow it."""


class NotInitializedError(PreconditionError):
    """The scanner state has not been initialized."""


class ScanInProgressError(PreconditionError):
    """A range scan is already running."""


class VendorNotFoundError(NetviewError, KeyError):
    """No vendor is known for a hardware address."""
