"""
Transport and stream message models.

WHAT: Shapes exchanged with the messaging transport and the stream buffer
WHY: Agents and transports agree on one inbound message type
HOW: Pydantic v2 models; text is Any so undecodable payloads reach the agent and are dropped there
"""

from datetime import datetime
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field


class InboundMessage(BaseModel):
    """A message delivered by the transport."""
    
    message_id: str = Field(default_factory=lambda: str(uuid4()))
    sender_id: str
    thread_id: str
    text: Any = None
    sent_at: datetime = Field(default_factory=datetime.utcnow)


class StreamMessage(BaseModel):
    """A stream buffer entry as served by the API."""
    
    id: int
    message_id: str
    agent_type: Literal["farm", "garden"]
    direction: Literal["in", "out"]
    sender: str
    recipient: str | None = None
    thread_id: str | None = None
    content: str
    timestamp: datetime


class FarmRequestRecord(BaseModel):
    """A command the Farm agent obeyed."""
    
    request: str
    requested_item: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class FarmResponseRecord(BaseModel):
    """What the Farm agent sent back."""
    
    request_id: str
    item: str
    content: str
    response_time_ms: float


class FarmExchange(BaseModel):
    request: FarmRequestRecord
    response: FarmResponseRecord


class FarmStats(BaseModel):
    """Aggregate counters for the Farm agent."""
    
    address: str | None = None
    request_count: int = 0
    total_response_time_ms: float = 0.0
    avg_response_time_ms: float = 0.0
    recent_responses: list[FarmExchange] = Field(default_factory=list)
