"""
SSE streaming endpoint.

WHAT: Server-Sent Events feed of agent messages
WHY: Dashboards show messages as the agents see and send them
HOW: EventSourceResponse over a generator polling the stream buffer with heartbeats
"""

import asyncio
import json
import time
from datetime import datetime
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query
from sse_starlette.sse import EventSourceResponse

from ....core.config import settings
from ....services.message_buffer import MessageBuffer
from ....utils.exceptions import InvalidAgentTypeException
from ....utils.logger import get_logger
from ..dependencies import get_message_buffer

logger = get_logger(__name__)

router = APIRouter()

AGENT_TYPES = ("farm", "garden")


async def message_event_generator(
    agent_type: str,
    buffer: MessageBuffer,
    after_id: Optional[int] = None,
    poll_interval: Optional[float] = None,
    heartbeat_interval: Optional[float] = None
) -> AsyncIterator[dict]:
    """
    Generate SSE events for one agent's message stream.
    
    WHAT: Stream new buffer rows with periodic heartbeats
    WHY: Real-time updates without a message broker
    HOW: Poll since(last_id); the SSE id is the stream id so clients can resume
    
    Args:
        agent_type: "farm" or "garden"
        buffer: Message stream buffer
        after_id: Resume after this stream id (default: only new messages)
        poll_interval: Seconds between polls
        heartbeat_interval: Seconds between heartbeat events
    
    Yields:
        SSE event dicts
    """
    poll_interval = poll_interval if poll_interval is not None else settings.SSE_POLL_INTERVAL
    heartbeat_interval = heartbeat_interval if heartbeat_interval is not None else settings.SSE_HEARTBEAT_INTERVAL
    
    last_id = after_id if after_id is not None else buffer.latest_id(agent_type)
    logger.info(f"Starting SSE stream for {agent_type} after id {last_id}")
    
    yield {
        "event": "connected",
        "data": json.dumps({
            "type": "connected",
            "agent_type": agent_type,
            "timestamp": datetime.now().isoformat()
        })
    }
    
    last_heartbeat = time.monotonic()
    try:
        while True:
            for message in buffer.since(agent_type, last_id):
                last_id = message.id
                yield {
                    "event": "message",
                    "id": str(message.id),
                    "data": message.model_dump_json()
                }
            
            if time.monotonic() - last_heartbeat >= heartbeat_interval:
                last_heartbeat = time.monotonic()
                yield {
                    "event": "heartbeat",
                    "data": json.dumps({
                        "type": "heartbeat",
                        "timestamp": datetime.now().isoformat()
                    })
                }
            
            await asyncio.sleep(poll_interval)
    except asyncio.CancelledError:
        logger.info(f"SSE stream for {agent_type} closed by client")
        raise


@router.get("/stream/{agent_type}/events")
async def stream_events(
    agent_type: str,
    after: Optional[int] = Query(None, ge=0, description="Resume after this stream id"),
    buffer: MessageBuffer = Depends(get_message_buffer)
):
    """
    SSE endpoint for agent messages.
    
    Raises:
        InvalidAgentTypeException: agent_type is not farm or garden
    """
    if agent_type not in AGENT_TYPES:
        raise InvalidAgentTypeException(agent_type)
    return EventSourceResponse(message_event_generator(agent_type, buffer, after_id=after))
