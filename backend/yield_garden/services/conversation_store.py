"""
Garden conversation store.

WHAT: One conversation record per counterparty, with expiry
WHY: Negotiations must survive process restarts but not live forever
HOW: Conversation JSON in the key-value store under garden:conv:<lowercased id>
"""

from typing import Optional

from pydantic import ValidationError

from ..core.config import settings
from ..core.kv_store import KeyValueStore
from ..models.garden import Conversation
from ..utils.exceptions import StoreUnavailableError
from ..utils.logger import get_logger

logger = get_logger(__name__)

CONVERSATION_PREFIX = "garden:conv:"


def conversation_key(counterparty_id: str) -> str:
    """Store key for a counterparty (case-insensitive)."""
    return f"{CONVERSATION_PREFIX}{counterparty_id.lower()}"


class ConversationStore:
    """Durable conversation persistence with a fixed TTL."""
    
    def __init__(self, kv: KeyValueStore | None = None, ttl_seconds: int | None = None):
        """
        Initialize store.
        
        Args:
            kv: Backing key-value store
            ttl_seconds: Expiry window refreshed on every save (default 24h)
        """
        self.kv = kv or KeyValueStore()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CONVERSATION_TTL_SECONDS
    
    def load(self, counterparty_id: str) -> Optional[Conversation]:
        """
        Load a live conversation.
        
        Returns:
            Conversation, or None if never created or expired
        
        Raises:
            StoreUnavailableError: Backend failure or corrupt record
        """
        key = conversation_key(counterparty_id)
        data = self.kv.get(key)
        if data is None:
            return None
        try:
            return Conversation.model_validate(data)
        except ValidationError as e:
            logger.error(f"Corrupt conversation record {key}: {e}")
            raise StoreUnavailableError("load", key, e) from e
    
    def save(self, conversation: Conversation) -> None:
        """Upsert the full record and refresh its expiry."""
        key = conversation_key(conversation.counterparty_id)
        self.kv.set(key, conversation.model_dump(mode="json"), ttl_seconds=self.ttl_seconds)
        logger.debug(f"Saved conversation {key} ({len(conversation.messages)} messages)")
    
    def delete(self, counterparty_id: str) -> bool:
        """
        Administrative delete.
        
        Returns:
            True if a record was removed
        """
        deleted = self.kv.delete(conversation_key(counterparty_id))
        if deleted:
            logger.info(f"Deleted conversation for {counterparty_id}")
        return deleted
    
    def list_active_counterparties(self) -> list[str]:
        """Lowercased ids of all live conversations."""
        return [key[len(CONVERSATION_PREFIX):] for key in self.kv.keys(CONVERSATION_PREFIX)]
    
    def list_conversations(self) -> list[Conversation]:
        """All live conversations, oldest first."""
        conversations = []
        for counterparty_id in self.list_active_counterparties():
            conversation = self.load(counterparty_id)
            # May have expired between the key scan and the load
            if conversation is not None:
                conversations.append(conversation)
        return sorted(conversations, key=lambda c: c.created_at)
