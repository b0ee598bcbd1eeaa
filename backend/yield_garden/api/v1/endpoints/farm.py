"""
Farm agent endpoints.

WHAT: Farm stats snapshot and message stream
WHY: Compare the obeying Farm agent against the Garden agent
HOW: Read the KV snapshot and the stream buffer
"""

from fastapi import APIRouter, Depends, Query

from ....core.kv_store import KeyValueStore
from ....services.message_buffer import MessageBuffer
from ....services.stats import load_farm_stats
from ..dependencies import get_kv_store, get_message_buffer

router = APIRouter()


@router.get("/stats")
async def farm_stats(kv: KeyValueStore = Depends(get_kv_store)):
    """Latest Farm stats snapshot (zeroed if the agent never ran)."""
    return {"success": True, "data": load_farm_stats(kv).model_dump(mode="json")}


@router.get("/stream")
async def farm_stream(
    limit: int = Query(100, ge=1, le=1000),
    buffer: MessageBuffer = Depends(get_message_buffer)
):
    """Most recent Farm messages, oldest first."""
    messages = buffer.recent("farm", limit)
    return {
        "success": True,
        "data": [m.model_dump(mode="json") for m in messages]
    }
