"""
Unit tests for the Garden agent state machine.

WHAT: Proposal, counter-offers, tier selection, commitment, non-intent messages
WHY: Every reply must match the persisted negotiation state
HOW: Drive handle_inbound_message against real stores; transports from a private MemoryHub
"""

import asyncio

import pytest
import pytest_asyncio

from yield_garden.agents.garden_agent import GardenAgent
from yield_garden.models.garden import MessageRole, PaymentStatus
from yield_garden.models.transport import InboundMessage
from yield_garden.transport.memory import InMemoryTransport, thread_id_for
from yield_garden.utils.exceptions import StoreUnavailableError

GARDEN = "0xGarden"
USER = "0xUser"
THREAD = thread_id_for(GARDEN, USER)


@pytest.fixture
def agent(store, tracker, policy, buffer):
    return GardenAgent(GARDEN, store=store, tracker=tracker, policy=policy, buffer=buffer, chain_id=84532)


async def say(agent, text, sender=USER):
    return await agent.handle_inbound_message(sender, THREAD, text)


@pytest.mark.unit
class TestOpeningNegotiation:
    
    @pytest.mark.asyncio
    async def test_support_intent_creates_conversation_with_proposal(self, agent, store):
        reply = await say(agent, "I'd like to support your work")
        
        assert "Minimum: 5 USDC" in reply
        conversation = store.load(USER)
        assert conversation.proposal.base_price_amount == 25.0
        assert conversation.thread_id == THREAD
        assert [m.role for m in conversation.messages] == [MessageRole.COUNTERPARTY, MessageRole.AGENT]
        assert conversation.messages[-1].text == reply
        assert conversation.accepted is False
    
    @pytest.mark.asyncio
    async def test_non_intent_is_stateless(self, agent, store):
        reply = await say(agent, "hello")
        
        assert "I only engage through negotiation" in reply
        assert store.load(USER) is None
    
    @pytest.mark.asyncio
    async def test_commitment_without_conversation_creates_nothing(self, agent, store, tracker):
        reply = await say(agent, "I agree to pay 25 USDC")
        
        assert "I only engage through negotiation" in reply
        assert store.load(USER) is None
        assert tracker.list_agreements() == []
    
    @pytest.mark.asyncio
    async def test_self_message_is_ignored(self, agent, store):
        assert await say(agent, "I'd like to support your work", sender="0xgarden") is None
        assert store.load(GARDEN) is None


@pytest.mark.unit
class TestOngoingNegotiation:
    
    @pytest_asyncio.fixture
    async def opened(self, agent):
        await say(agent, "How much does it cost?")
        return agent
    
    @pytest.mark.asyncio
    async def test_low_offer_rejected_with_options(self, opened, store):
        reply = await say(opened, "I can offer $3")
        
        assert "I cannot accept 3 USDC. My minimum is 5 USDC (flexible to 4.00)." in reply
        conversation = store.load(USER)
        assert conversation.counter_offer == 3.0
        assert conversation.negotiation_rounds == 1
        assert conversation.accepted is False
        assert conversation.payment_request is None
    
    @pytest.mark.asyncio
    async def test_flexible_offer_accepted_with_payment_request(self, opened, store):
        await say(opened, "I can offer $3")
        reply = await say(opened, "OK, $4 then")
        
        assert "within flexible range" in reply
        assert "I agree to pay 4 USDC" in reply
        conversation = store.load(USER)
        assert conversation.accepted is True
        assert conversation.negotiation_rounds == 2
        assert conversation.payment_request.amount == 4.0
        assert conversation.payment_request.recipient == GARDEN
        assert conversation.payment_request.chain_id == 84532
    
    @pytest.mark.asyncio
    async def test_tier_selection(self, opened, store):
        reply = await say(opened, "tier 2 please")
        
        assert "standard tier: 25 USDC" in reply
        conversation = store.load(USER)
        assert conversation.accepted is True
        assert conversation.counter_offer is None
        assert conversation.payment_request.amount == 25.0
    
    @pytest.mark.asyncio
    async def test_counter_offer_takes_precedence_over_tier(self, opened, store):
        await say(opened, "premium is too much, how about $10")
        
        conversation = store.load(USER)
        assert conversation.counter_offer == 10.0
        assert conversation.payment_request.amount == 10.0
    
    @pytest.mark.asyncio
    async def test_unrecognized_message_gets_prompt(self, opened, store):
        reply = await say(opened, "hmm, let me think")
        
        assert "I'm here to negotiate" in reply
        assert len(store.load(USER).messages) == 4
    
    @pytest.mark.asyncio
    async def test_acceptance_is_never_revoked(self, opened, store):
        await say(opened, "standard")
        await say(opened, "actually $1")
        
        conversation = store.load(USER)
        assert conversation.accepted is True
        assert conversation.counter_offer == 1.0


@pytest.mark.unit
class TestCommitment:
    
    @pytest.mark.asyncio
    async def test_commitment_records_agreement(self, agent, store, tracker):
        await say(agent, "I want to support your work")
        await say(agent, "standard")
        reply = await say(agent, "I agree to pay 25 USDC")
        
        assert "Commitment recorded: 25 USDC" in reply
        conversation = store.load(USER)
        assert conversation.payment_committed is True
        assert conversation.accepted is True
        
        agreement = tracker.get_agreement(conversation.payment_agreement_id)
        assert agreement.status == PaymentStatus.IN_PROGRESS
        assert agreement.amount == 25.0
        assert agreement.thread_id == THREAD
        assert agreement.description == "Garden contribution (standard tier)"
        assert tracker.total_committed() == 25.0
    
    @pytest.mark.asyncio
    async def test_commitment_straight_after_proposal(self, agent, store, tracker):
        await say(agent, "what's the price?")
        reply = await say(agent, "I will pay 100 USDC")
        
        assert "Commitment recorded: 100 USDC" in reply
        assert store.load(USER).payment_committed is True
        assert len(tracker.list_agreements()) == 1
    
    @pytest.mark.asyncio
    async def test_repeat_commitment_does_not_duplicate(self, agent, store, tracker):
        await say(agent, "I want to support your work")
        await say(agent, "I agree to pay 25 USDC")
        reply = await say(agent, "I agree to pay 25 USDC")
        
        agreement_id = store.load(USER).payment_agreement_id
        assert "already recorded" in reply
        assert agreement_id in reply
        assert len(tracker.list_agreements()) == 1
    
    @pytest.mark.asyncio
    async def test_confirmation_without_amount_is_not_a_commitment(self, agent, store, tracker):
        await say(agent, "I want to support your work")
        reply = await say(agent, "confirmed")
        
        assert "I'm here to negotiate" in reply
        assert store.load(USER).payment_committed is False
        assert tracker.list_agreements() == []
    
    @pytest.mark.asyncio
    async def test_zero_commitment_falls_through_to_prompt(self, agent, store, tracker):
        await say(agent, "I want to support your work")
        reply = await say(agent, "I agree to pay 0 USDC")
        
        assert "I'm here to negotiate" in reply
        conversation = store.load(USER)
        assert conversation.payment_committed is False
        assert len(conversation.messages) == 4
        assert tracker.list_agreements() == []
    
    @pytest.mark.asyncio
    async def test_commitment_below_floor_is_rejected(self, agent, store, tracker):
        await say(agent, "what's the price?")
        reply = await say(agent, "I agree to pay 1 USDC")
        
        assert "I cannot accept 1 USDC" in reply
        assert "Meet the minimum of 5 USDC" in reply
        conversation = store.load(USER)
        assert conversation.payment_committed is False
        assert conversation.payment_agreement_id is None
        assert conversation.messages[-1].text == reply
        assert tracker.list_agreements() == []
    
    @pytest.mark.asyncio
    async def test_commitment_with_thousands_separator(self, agent, tracker):
        await say(agent, "I want to support your work")
        reply = await say(agent, "I agree to pay 1,000 USDC")
        
        assert "Commitment recorded: 1000 USDC" in reply
        assert tracker.total_committed() == 1000.0


class FailingSaveStore:
    """Conversation store whose writes always fail."""
    
    def __init__(self, inner):
        self.inner = inner
        self.kv = inner.kv
    
    def load(self, counterparty_id):
        return self.inner.load(counterparty_id)
    
    def save(self, conversation):
        raise StoreUnavailableError("set", conversation.key, RuntimeError("disk full"))


@pytest.mark.unit
class TestMessageHandling:
    
    @pytest.mark.asyncio
    async def test_on_message_sends_reply_and_records_stream(self, store, tracker, policy, buffer, hub):
        garden_transport = InMemoryTransport(GARDEN, hub)
        user_transport = InMemoryTransport(USER, hub)
        agent = GardenAgent(GARDEN, store=store, tracker=tracker, policy=policy,
                            transport=garden_transport, buffer=buffer)
        
        reply = await agent.on_message(InboundMessage(sender_id=USER, thread_id=THREAD, text="How much?"))
        
        inbox = user_transport.stream_messages()
        delivered = await asyncio.wait_for(inbox.__anext__(), timeout=1)
        assert delivered.text == reply
        assert delivered.sender_id == GARDEN
        
        recent = buffer.recent("garden")
        assert [m.direction for m in recent] == ["in", "out"]
        assert recent[1].content == reply
    
    @pytest.mark.asyncio
    async def test_on_message_drops_non_text(self, agent, store, buffer):
        result = await agent.on_message(InboundMessage(sender_id=USER, thread_id=THREAD, text={"type": "reaction"}))
        
        assert result is None
        assert buffer.recent("garden") == []
    
    @pytest.mark.asyncio
    async def test_store_failure_sends_nothing(self, store, tracker, policy, hub):
        garden_transport = InMemoryTransport(GARDEN, hub)
        sent = []
        
        async def record_send(recipient_id, text):
            sent.append(text)
            return "id"
        
        garden_transport.send_message = record_send
        agent = GardenAgent(GARDEN, store=FailingSaveStore(store), tracker=tracker,
                            policy=policy, transport=garden_transport)
        
        with pytest.raises(StoreUnavailableError):
            await agent.on_message(InboundMessage(sender_id=USER, thread_id=THREAD, text="How much?"))
        assert sent == []
    
    @pytest.mark.asyncio
    async def test_concurrent_messages_are_serialized(self, agent, store):
        await asyncio.gather(
            say(agent, "I'd like to support your work"),
            say(agent, "premium"),
        )
        
        conversation = store.load(USER)
        assert len(conversation.messages) == 4
        assert conversation.payment_request.amount == 100.0
    
    @pytest.mark.asyncio
    async def test_locks_released_after_handling(self, agent):
        await asyncio.gather(
            say(agent, "I'd like to support your work"),
            say(agent, "how much?", sender="0xOther"),
            say(agent, "premium"),
        )
        
        assert agent._locks == {}
        assert agent._lock_users == {}
    
    @pytest.mark.asyncio
    async def test_stats_from_persisted_state(self, agent):
        await say(agent, "I want to support your work")
        await say(agent, "$2")
        await say(agent, "$6")
        await say(agent, "I agree to pay 6 USDC")
        await say(agent, "how much?", sender="0xOther")
        
        stats = agent.get_stats()
        assert stats.address == GARDEN
        assert stats.completed_negotiations == 1
        assert stats.active_negotiations == 1
        assert stats.accepted_negotiations == 1
        assert stats.total_committed_usdc == 6.0
        assert stats.avg_negotiation_rounds == 2.0
        assert stats.max_negotiation_rounds == 3
