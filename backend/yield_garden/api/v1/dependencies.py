"""
Request dependencies for v1 endpoints.

WHAT: Store and buffer instances injected into route handlers
WHY: Endpoints stay thin and tests can swap backends via dependency_overrides
HOW: Plain getter functions used with FastAPI Depends
"""

from ...core.kv_store import KeyValueStore
from ...services.conversation_store import ConversationStore
from ...services.message_buffer import MessageBuffer
from ...services.payment_tracker import PaymentTracker


def get_kv_store() -> KeyValueStore:
    """Dependency to get the key-value store."""
    return KeyValueStore()


def get_conversation_store() -> ConversationStore:
    """Dependency to get the conversation store."""
    return ConversationStore(get_kv_store())


def get_payment_tracker() -> PaymentTracker:
    """Dependency to get the payment tracker."""
    return PaymentTracker(get_kv_store())


def get_message_buffer() -> MessageBuffer:
    """Dependency to get the message stream buffer."""
    return MessageBuffer()
