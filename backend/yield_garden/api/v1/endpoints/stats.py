"""
Consolidated stats endpoint.

WHAT: Farm and Garden counters in one response
WHY: Side-by-side comparison view
HOW: consolidated_stats over the stores
"""

from fastapi import APIRouter, Depends

from ....core.kv_store import KeyValueStore
from ....services.conversation_store import ConversationStore
from ....services.payment_tracker import PaymentTracker
from ....services.stats import consolidated_stats
from ..dependencies import get_conversation_store, get_kv_store, get_payment_tracker

router = APIRouter()


@router.get("/stats")
async def all_stats(
    store: ConversationStore = Depends(get_conversation_store),
    tracker: PaymentTracker = Depends(get_payment_tracker),
    kv: KeyValueStore = Depends(get_kv_store)
):
    return {"success": True, "data": consolidated_stats(store, tracker, kv)}
