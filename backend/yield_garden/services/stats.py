"""
Agent statistics aggregation.

WHAT: Garden and Farm counters for the API
WHY: Counters must survive restarts, so they are derived from persisted state
HOW: Garden stats recomputed from conversations and agreements; Farm stats snapshot in the KV store
"""

from datetime import datetime

from ..core.config import settings
from ..core.kv_store import KeyValueStore
from ..models.garden import GardenStats
from ..models.transport import FarmStats
from .conversation_store import ConversationStore
from .payment_tracker import PaymentTracker

FARM_STATS_KEY = "farm:stats"


def compute_garden_stats(
    store: ConversationStore,
    tracker: PaymentTracker,
    *,
    address: str | None = None,
    max_rounds: int | None = None
) -> GardenStats:
    """
    Recompute Garden counters from persisted state.
    
    WHAT: Active/completed negotiations, committed total, average rounds
    WHY: No in-memory counter to lose or drift
    HOW: One pass over live conversations plus the tracker total
    
    Args:
        store: Conversation store
        tracker: Payment tracker
        address: Garden agent address to report
        max_rounds: Configured round limit to report
    
    Returns:
        GardenStats
    """
    conversations = store.list_conversations()
    completed = [c for c in conversations if c.payment_committed]
    accepted = [c for c in conversations if c.accepted]
    
    avg_rounds = (
        sum(c.negotiation_rounds for c in completed) / len(completed)
        if completed else 0.0
    )
    
    return GardenStats(
        address=address if address is not None else (settings.GARDEN_AGENT_ADDRESS or None),
        active_negotiations=len(conversations) - len(completed),
        completed_negotiations=len(completed),
        accepted_negotiations=len(accepted),
        total_committed_usdc=tracker.total_committed(),
        avg_negotiation_rounds=avg_rounds,
        max_negotiation_rounds=max_rounds if max_rounds is not None else settings.GARDEN_MAX_NEGOTIATION_ROUNDS,
    )


def load_farm_stats(kv: KeyValueStore) -> FarmStats:
    """Latest Farm snapshot, or zeroed stats if the agent never ran."""
    data = kv.get(FARM_STATS_KEY)
    if data is None:
        return FarmStats(address=settings.FARM_AGENT_ADDRESS or None)
    return FarmStats.model_validate(data)


def save_farm_stats(kv: KeyValueStore, stats: FarmStats) -> None:
    kv.set(FARM_STATS_KEY, stats.model_dump(mode="json"))


def consolidated_stats(
    store: ConversationStore,
    tracker: PaymentTracker,
    kv: KeyValueStore
) -> dict:
    """Farm and Garden stats side by side."""
    return {
        "farm": load_farm_stats(kv).model_dump(mode="json"),
        "garden": compute_garden_stats(store, tracker).model_dump(mode="json"),
        "timestamp": datetime.utcnow().isoformat(),
    }
