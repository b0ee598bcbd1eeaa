"""
Transport types and exceptions.

WHAT: Status dataclass and error taxonomy for messaging transports
WHY: Ensure consistent contracts across all transports
HOW: Dataclass for status, custom exceptions for errors
"""

from dataclasses import dataclass


@dataclass
class TransportStatus:
    """Health status of a transport."""
    available: bool
    provider: str
    address: str
    endpoint: str | None = None
    error: str | None = None


class TransportTimeoutError(Exception):
    """Request to the messaging network timed out."""
    pass


class TransportUnavailableError(Exception):
    """Messaging network is not reachable or down."""
    pass


class TransportDisabledError(Exception):
    """Transport is closed or not configured."""
    pass


class TransportResponseError(Exception):
    """Messaging network returned an invalid or error response."""
    pass
