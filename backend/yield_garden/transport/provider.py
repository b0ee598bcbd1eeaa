"""
Transport protocol definition.

WHAT: Abstract interface for the messaging network
WHY: Decouple agents from a specific network client
HOW: Protocol with async send, stream, ping and close
"""

from typing import AsyncIterator, Protocol

from ..models.transport import InboundMessage
from .types import TransportStatus


class TransportProvider(Protocol):
    """Protocol defining the interface all transports must implement."""
    
    address: str
    
    async def ping(self) -> TransportStatus:
        """Check network health and availability."""
        ...
    
    async def send_message(self, recipient_id: str, text: str) -> str:
        """Send text to a recipient; returns the delivery id."""
        ...
    
    def stream_messages(self) -> AsyncIterator[InboundMessage]:
        """Yield messages in receipt order, including this identity's own sends."""
        ...
    
    async def close(self) -> None:
        """Release connections and end any open stream."""
        ...
