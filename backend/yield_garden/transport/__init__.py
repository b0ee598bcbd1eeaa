"""Messaging transport layer."""

from .types import (
    TransportStatus,
    TransportTimeoutError,
    TransportUnavailableError,
    TransportDisabledError,
    TransportResponseError,
)
from .provider import TransportProvider
from .factory import get_transport, reset_transports

__all__ = [
    "TransportStatus",
    "TransportTimeoutError",
    "TransportUnavailableError",
    "TransportDisabledError",
    "TransportResponseError",
    "TransportProvider",
    "get_transport",
    "reset_transports",
]
