"""
Garden agent negotiation state machine.

WHAT: Negotiates a contribution before doing any work
WHY: Each counterparty gets a persistent, resumable negotiation
HOW: Per-message load-decide-save cycle against the conversation store and pricing policy

States: no conversation -> proposal sent -> (counter-offer | tier) pending
        -> accepted -> payment committed
"""

import asyncio
from typing import Optional

from ..core.config import settings
from ..models.garden import (
    TIER_NAMES,
    Conversation,
    ConversationMessage,
    GardenStats,
    MessageRole,
    PaymentRequest,
)
from ..models.transport import InboundMessage
from ..services.conversation_store import ConversationStore
from ..services.message_buffer import MessageBuffer
from ..services.negotiation_policy import NegotiationPolicy, format_amount
from ..services.payment_tracker import PaymentTracker, parse_commitment_confirmation
from ..services.stats import compute_garden_stats
from ..transport.provider import TransportProvider
from ..utils.logger import get_logger
from .base import BaseAgent

logger = get_logger(__name__)


class GardenAgent(BaseAgent):
    """Agent that only works after a negotiated commitment."""
    
    agent_type = "garden"
    
    def __init__(
        self,
        address: str,
        *,
        store: ConversationStore | None = None,
        tracker: PaymentTracker | None = None,
        policy: NegotiationPolicy | None = None,
        transport: TransportProvider | None = None,
        buffer: MessageBuffer | None = None,
        chain_id: int | None = None
    ):
        """
        Initialize Garden agent.
        
        Args:
            address: Agent identity (self-messages are ignored)
            store: Conversation store
            tracker: Payment commitment tracker
            policy: Negotiation policy
            transport: Messaging transport used by on_message
            buffer: Optional stream buffer
            chain_id: Chain id quoted in payment requests
        """
        super().__init__(address, transport=transport, buffer=buffer)
        self.store = store or ConversationStore()
        self.tracker = tracker or PaymentTracker(self.store.kv)
        self.policy = policy or NegotiationPolicy()
        self.chain_id = chain_id if chain_id is not None else settings.PAYMENT_CHAIN_ID
        self._locks: dict[str, asyncio.Lock] = {}
        # Holders plus waiters per key; a lock is dropped once nobody uses it
        self._lock_users: dict[str, int] = {}
    
    async def respond(self, message: InboundMessage) -> Optional[str]:
        return await self.handle_inbound_message(message.sender_id, message.thread_id, message.text)
    
    async def handle_inbound_message(self, counterparty_id: str, thread_id: str, text: str) -> Optional[str]:
        """
        Process one inbound message.
        
        WHAT: Advance the counterparty's negotiation and produce the reply
        WHY: Single entry point for the state machine
        HOW: Serialized per counterparty; every reply is persisted before it is returned
        
        Args:
            counterparty_id: Sender identity
            thread_id: Transport thread for correlating replies
            text: Message text
        
        Returns:
            Reply text, or None for self-messages
        
        Raises:
            StoreUnavailableError: Load or save failed; no reply must be sent
        """
        if self.is_own_message(counterparty_id):
            return None
        
        key = counterparty_id.lower()
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                return self._advance(counterparty_id, thread_id, text)
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]
    
    def _advance(self, counterparty_id: str, thread_id: str, text: str) -> str:
        conversation = self.store.load(counterparty_id)
        
        # Commitment first: a confirmation for an existing negotiation is never a new negotiation
        confirmation = parse_commitment_confirmation(text)
        if (
            confirmation.confirmed
            and confirmation.amount is not None
            and confirmation.amount > 0
            and conversation is not None
            and conversation.proposal is not None
        ):
            return self._commit(conversation, text, confirmation.amount)
        
        if conversation is None:
            return self._open(counterparty_id, thread_id, text)
        
        conversation.append(MessageRole.COUNTERPARTY, text)
        
        counter = self.policy.extract_counter_offer(text)
        if counter is not None:
            return self._counter_offer(conversation, counter)
        
        tier_index = self.policy.extract_tier_selection(text)
        if tier_index is not None and conversation.proposal is not None:
            return self._select_tier(conversation, tier_index)
        
        return self._reply(conversation, self.policy.format_negotiation_prompt())
    
    def _reply(self, conversation: Conversation, reply: str) -> str:
        """Append the reply and persist before it can be sent."""
        conversation.append(MessageRole.AGENT, reply)
        self.store.save(conversation)
        return reply
    
    def _payment_request(self, amount: float, description: str) -> PaymentRequest:
        return PaymentRequest(
            amount=amount,
            currency=self.policy.config.currency,
            recipient=self.address,
            chain_id=self.chain_id,
            description=description,
        )
    
    def _open(self, counterparty_id: str, thread_id: str, text: str) -> str:
        if not self.policy.is_support_intent(text):
            # Stateless: nothing is stored for non-negotiation messages
            return self.policy.format_not_negotiating_notice()
        
        proposal = self.policy.create_proposal()
        conversation = Conversation(
            counterparty_id=counterparty_id,
            thread_id=thread_id,
            proposal=proposal,
            messages=[ConversationMessage(role=MessageRole.COUNTERPARTY, text=text)],
        )
        reply = self._reply(conversation, self.policy.format_proposal_message(proposal))
        logger.info(f"🌱 Sent proposal to {counterparty_id[:10]}...")
        return reply
    
    def _counter_offer(self, conversation: Conversation, amount: float) -> str:
        conversation.counter_offer = amount
        conversation.negotiation_rounds += 1
        evaluation = self.policy.evaluate_offer(amount)
        
        if not evaluation.accepted:
            logger.info(
                f"Rejected counter-offer {format_amount(amount)} from {conversation.counterparty_id[:10]}... "
                f"(round {conversation.negotiation_rounds})"
            )
            return self._reply(conversation, self.policy.format_rejection_options(evaluation))
        
        request = self._payment_request(amount, "Garden contribution (counter-offer accepted)")
        conversation.mark_accepted(request)
        logger.info(f"Accepted counter-offer {format_amount(amount)} from {conversation.counterparty_id[:10]}...")
        return self._reply(conversation, self.policy.format_counter_offer_accepted(evaluation, request))
    
    def _select_tier(self, conversation: Conversation, tier_index: int) -> str:
        price = conversation.proposal.price_options[tier_index]
        request = self._payment_request(price, f"Garden contribution ({TIER_NAMES[tier_index]} tier)")
        conversation.mark_accepted(request)
        logger.info(f"{conversation.counterparty_id[:10]}... selected {TIER_NAMES[tier_index]} tier ({format_amount(price)})")
        return self._reply(conversation, self.policy.format_tier_selected(tier_index, request))
    
    def _commit(self, conversation: Conversation, text: str, amount: float) -> str:
        conversation.append(MessageRole.COUNTERPARTY, text)
        
        if conversation.payment_committed:
            return self._reply(
                conversation,
                self.policy.format_commitment_already_recorded(conversation.payment_agreement_id)
            )
        
        # A commitment below the floor is a counter-offer, not an agreement
        evaluation = self.policy.evaluate_offer(amount)
        if not evaluation.accepted:
            logger.info(
                f"Rejected commitment {format_amount(amount)} from {conversation.counterparty_id[:10]}... "
                f"(below {format_amount(self.policy.minimum_acceptable())})"
            )
            return self._reply(conversation, self.policy.format_rejection_options(evaluation))
        
        description = (
            conversation.payment_request.description
            if conversation.payment_request is not None
            else "Garden contribution"
        )
        agreement = self.tracker.record_agreement(
            conversation.thread_id, amount, description, conversation.counterparty_id
        )
        self.tracker.mark_committed(agreement.id)
        self.tracker.mark_work_started(agreement.id)
        
        conversation.payment_committed = True
        conversation.payment_agreement_id = agreement.id
        conversation.mark_accepted()
        
        logger.info(f"💰 Commitment of {format_amount(amount)} from {conversation.counterparty_id[:10]}... ({agreement.id})")
        return self._reply(conversation, self.policy.format_commitment_confirmed(amount))
    
    def get_stats(self) -> GardenStats:
        """Counters recomputed from persisted conversations and agreements."""
        return compute_garden_stats(
            self.store,
            self.tracker,
            address=self.address,
            max_rounds=self.policy.max_rounds
        )
