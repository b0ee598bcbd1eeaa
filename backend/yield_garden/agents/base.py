"""
Agent base class.

WHAT: Shared message plumbing for Farm and Garden agents
WHY: Both agents filter self-messages, record the stream and reply over the transport
HOW: on_message template around an agent-specific respond()
"""

from typing import Literal, Optional

from ..models.transport import InboundMessage
from ..services.message_buffer import MessageBuffer
from ..transport.provider import TransportProvider
from ..transport.types import TransportDisabledError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class BaseAgent:
    """Agent bound to one identity on the messaging network."""
    
    agent_type: Literal["farm", "garden"]
    
    def __init__(
        self,
        address: str,
        *,
        transport: TransportProvider | None = None,
        buffer: MessageBuffer | None = None
    ):
        self.address = address
        self.transport = transport
        self.buffer = buffer
    
    def is_own_message(self, sender_id: str) -> bool:
        """Messages from this agent's identity are echoes of its own sends."""
        return sender_id.lower() == self.address.lower()
    
    async def respond(self, message: InboundMessage) -> Optional[str]:
        """Decide the reply for one inbound message (None = no reply)."""
        raise NotImplementedError
    
    async def on_message(self, message: InboundMessage) -> Optional[str]:
        """
        Handle one message from the transport stream.
        
        WHAT: Filter, record, respond, send
        WHY: Single entry point used by the runner
        HOW: Drop non-text and self messages; send exactly one reply otherwise
        
        Args:
            message: Inbound transport message
        
        Returns:
            Reply text that was sent, or None
        
        Raises:
            StoreUnavailableError: Persistence failed; nothing was sent
            Transport errors from send_message
        """
        if not isinstance(message.text, str) or not message.text.strip():
            logger.debug(f"{self.agent_type}: dropping non-text message {message.message_id}")
            return None
        
        if self.is_own_message(message.sender_id):
            return None
        
        logger.info(f"📨 {self.agent_type} received from {message.sender_id[:10]}...: {message.text[:50]}")
        
        if self.buffer is not None:
            self.buffer.record(
                agent_type=self.agent_type,
                direction="in",
                message_id=message.message_id,
                sender=message.sender_id,
                recipient=self.address,
                thread_id=message.thread_id,
                content=message.text,
                timestamp=message.sent_at
            )
        
        reply = await self.respond(message)
        if reply is None:
            return None
        
        if self.transport is None:
            raise TransportDisabledError(f"{self.agent_type} agent has no transport")
        
        delivery_id = await self.transport.send_message(message.sender_id, reply)
        
        if self.buffer is not None:
            self.buffer.record(
                agent_type=self.agent_type,
                direction="out",
                message_id=delivery_id,
                sender=self.address,
                recipient=message.sender_id,
                thread_id=message.thread_id,
                content=reply
            )
        return reply
