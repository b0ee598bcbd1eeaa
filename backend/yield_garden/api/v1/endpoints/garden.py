"""
Garden agent endpoints.

WHAT: Read surface over negotiations, agreements, stats and the message stream
WHY: Dashboards observe negotiations without talking to the agent
HOW: Thin handlers over the conversation store, payment tracker and stream buffer
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ....models.garden import PaymentStatus
from ....services.conversation_store import ConversationStore
from ....services.message_buffer import MessageBuffer
from ....services.payment_tracker import PaymentTracker
from ....services.stats import compute_garden_stats
from ....utils.exceptions import AgreementNotFoundException, ConversationNotFoundException
from ....utils.logger import get_logger
from ..dependencies import get_conversation_store, get_message_buffer, get_payment_tracker

logger = get_logger(__name__)

router = APIRouter()


@router.get("/negotiations")
async def list_negotiations(store: ConversationStore = Depends(get_conversation_store)):
    """All live conversations, oldest first."""
    conversations = store.list_conversations()
    return {
        "success": True,
        "data": [c.model_dump(mode="json") for c in conversations]
    }


@router.get("/negotiations/{counterparty_id}")
async def get_negotiation(counterparty_id: str, store: ConversationStore = Depends(get_conversation_store)):
    """
    One conversation by counterparty.
    
    Raises:
        ConversationNotFoundException: No live conversation
    """
    conversation = store.load(counterparty_id)
    if conversation is None:
        raise ConversationNotFoundException(counterparty_id)
    return {"success": True, "data": conversation.model_dump(mode="json")}


@router.delete("/negotiations/{counterparty_id}")
async def delete_negotiation(counterparty_id: str, store: ConversationStore = Depends(get_conversation_store)):
    """
    Administrative delete; the counterparty's next message starts over.
    
    Raises:
        ConversationNotFoundException: No live conversation
    """
    if not store.delete(counterparty_id):
        raise ConversationNotFoundException(counterparty_id)
    logger.info(f"Deleted conversation for {counterparty_id[:10]}...")
    return {"success": True, "data": {"counterparty_id": counterparty_id, "deleted": True}}


@router.get("/agreements")
async def list_agreements(
    status: Optional[PaymentStatus] = Query(None, description="Filter by payment status"),
    thread_id: Optional[str] = Query(None, description="Filter by thread"),
    tracker: PaymentTracker = Depends(get_payment_tracker)
):
    """Payment agreements, oldest first."""
    agreements = tracker.list_by_thread(thread_id) if thread_id else tracker.list_agreements()
    if status is not None:
        agreements = [a for a in agreements if a.status == status]
    return {
        "success": True,
        "data": [a.model_dump(mode="json") for a in agreements]
    }


@router.get("/agreements/{agreement_id}")
async def get_agreement(agreement_id: str, tracker: PaymentTracker = Depends(get_payment_tracker)):
    """
    One agreement by id.
    
    Raises:
        AgreementNotFoundException: Unknown id
    """
    agreement = tracker.get_agreement(agreement_id)
    if agreement is None:
        raise AgreementNotFoundException(agreement_id)
    return {"success": True, "data": agreement.model_dump(mode="json")}


@router.get("/stats")
async def garden_stats(
    store: ConversationStore = Depends(get_conversation_store),
    tracker: PaymentTracker = Depends(get_payment_tracker)
):
    """Negotiation counters recomputed from persisted state."""
    stats = compute_garden_stats(store, tracker)
    return {"success": True, "data": stats.model_dump(mode="json")}


@router.get("/stream")
async def garden_stream(
    limit: int = Query(100, ge=1, le=1000),
    buffer: MessageBuffer = Depends(get_message_buffer)
):
    """Most recent Garden messages, oldest first."""
    messages = buffer.recent("garden", limit)
    return {
        "success": True,
        "data": [m.model_dump(mode="json") for m in messages]
    }
