"""
Transport factory.

WHAT: Get the configured transport for an agent identity
WHY: Centralize transport selection and reuse one client per identity
HOW: Read TRANSPORT_PROVIDER from config, cache per address, log selection
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .provider import TransportProvider

# One instance per agent address
_transports: dict[str, "TransportProvider"] = {}


def get_transport(address: str) -> "TransportProvider":
    """
    Get the transport bound to an address.
    
    Args:
        address: Agent identity on the messaging network
    
    Returns:
        TransportProvider instance based on settings.TRANSPORT_PROVIDER
    
    Raises:
        ValueError: If provider name is unknown
    """
    key = address.lower()
    if key not in _transports:
        # Import here to avoid circular dependencies
        from ..core.config import settings
        from ..utils.logger import get_logger
        
        logger = get_logger(__name__)
        provider_name = settings.TRANSPORT_PROVIDER
        
        if provider_name == "memory":
            from .memory import InMemoryTransport
            _transports[key] = InMemoryTransport(address)
        elif provider_name == "http_relay":
            from .http_relay import HttpRelayTransport
            _transports[key] = HttpRelayTransport(address)
        else:
            raise ValueError(f"Unknown transport provider: {provider_name}")
        
        logger.info(f"Transport initialized: {provider_name} for {address[:10]}...")
    
    return _transports[key]


def reset_transports() -> None:
    """Forget cached transports (useful for testing)."""
    _transports.clear()
