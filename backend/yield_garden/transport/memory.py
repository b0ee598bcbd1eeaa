"""
In-memory transport.

WHAT: Loopback messaging network inside one process
WHY: Local development and tests without an external network
HOW: MemoryHub fans each message out to sender and recipient inbox queues
"""

import asyncio
from typing import AsyncIterator
from uuid import uuid4

from ..models.transport import InboundMessage
from ..utils.logger import get_logger
from .types import TransportDisabledError, TransportStatus

logger = get_logger(__name__)

_CLOSE = object()


def thread_id_for(a: str, b: str) -> str:
    """Stable thread id for a pair of addresses."""
    first, second = sorted((a.lower(), b.lower()))
    return f"dm:{first}:{second}"


class MemoryHub:
    """Shared routing table of address -> inbox queues."""
    
    def __init__(self):
        self._inboxes: dict[str, list[asyncio.Queue]] = {}
    
    def subscribe(self, address: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._inboxes.setdefault(address.lower(), []).append(queue)
        return queue
    
    def unsubscribe(self, address: str, queue: asyncio.Queue) -> None:
        queues = self._inboxes.get(address.lower(), [])
        if queue in queues:
            queues.remove(queue)
    
    def publish(self, sender: str, recipient: str, text: str) -> str:
        """Deliver to both parties, like a conversation stream does."""
        message = InboundMessage(
            message_id=str(uuid4()),
            sender_id=sender,
            thread_id=thread_id_for(sender, recipient),
            text=text,
        )
        targets = {sender.lower(), recipient.lower()}
        for address in targets:
            for queue in self._inboxes.get(address, []):
                queue.put_nowait(message)
        return message.message_id


_default_hub = MemoryHub()


def get_default_hub() -> MemoryHub:
    return _default_hub


class InMemoryTransport:
    """Transport bound to one address on a MemoryHub."""
    
    def __init__(self, address: str, hub: MemoryHub | None = None):
        self.address = address
        self.hub = hub or get_default_hub()
        self._queue = self.hub.subscribe(address)
        self._closed = False
    
    async def ping(self) -> TransportStatus:
        return TransportStatus(
            available=not self._closed,
            provider="memory",
            address=self.address,
            error="closed" if self._closed else None
        )
    
    async def send_message(self, recipient_id: str, text: str) -> str:
        if self._closed:
            raise TransportDisabledError(f"Transport for {self.address} is closed")
        delivery_id = self.hub.publish(self.address, recipient_id, text)
        logger.debug(f"{self.address} -> {recipient_id}: {text[:50]}")
        return delivery_id
    
    async def stream_messages(self) -> AsyncIterator[InboundMessage]:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                return
            yield item
    
    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.hub.unsubscribe(self.address, self._queue)
        self._queue.put_nowait(_CLOSE)
