"""
Unit tests for the Farm agent.

WHAT: Command parsing, placeholder replies, stats snapshot
WHY: The Farm agent is the no-negotiation baseline reported next to the Garden agent
HOW: FarmAgent.respond against the per-test key-value store
"""

import pytest

from yield_garden.agents.farm_agent import (
    HELP_REPLY,
    FarmAgent,
    generate_placeholder_response,
    parse_request,
)
from yield_garden.models.transport import InboundMessage
from yield_garden.services.stats import load_farm_stats

FARM = "0xFarm"


def command(text, sender="0xUser"):
    return InboundMessage(sender_id=sender, thread_id="dm:0xfarm:0xuser", text=text)


@pytest.mark.unit
class TestParsing:
    
    @pytest.mark.parametrize("text,expected", [
        ("Make me a poem.", "poem"),
        ("please create an image!", "image"),
        ("Give me haiku about rain?", "haiku about rain"),
        ("make me a sandwich", "sandwich"),
        ("hello farm", None),
    ])
    def test_parse_request(self, text, expected):
        assert parse_request(text) == expected
    
    def test_placeholder_depends_on_item_length(self):
        assert generate_placeholder_response("poem") == "Here's your poem. It's crafted with precision and ready for use."
        assert generate_placeholder_response("image") == "Your image is complete. Delivered as requested."
        assert generate_placeholder_response("toasts") == "Toasts delivered. No questions asked."
        assert generate_placeholder_response("cat") == "Here's your cat. Exactly what you asked for."


@pytest.mark.unit
class TestFarmAgent:
    
    @pytest.mark.asyncio
    async def test_obeys_command(self, kv):
        agent = FarmAgent(FARM, kv=kv)
        reply = await agent.respond(command("Make me a poem"))
        
        assert reply == generate_placeholder_response("poem")
        stats = agent.get_stats()
        assert stats.request_count == 1
        assert stats.recent_responses[0].request.requested_item == "poem"
        assert stats.recent_responses[0].response.content == reply
    
    @pytest.mark.asyncio
    async def test_unknown_command_gets_help(self, kv):
        agent = FarmAgent(FARM, kv=kv)
        assert await agent.respond(command("what can you do")) == HELP_REPLY
        assert agent.get_stats().request_count == 0
    
    @pytest.mark.asyncio
    async def test_stats_snapshot_is_persisted_and_resumed(self, kv):
        agent = FarmAgent(FARM, kv=kv)
        for i in range(12):
            await agent.respond(command(f"create widget {i}"))
        
        snapshot = load_farm_stats(kv)
        assert snapshot.request_count == 12
        assert len(snapshot.recent_responses) == 10
        assert snapshot.recent_responses[-1].request.requested_item == "widget 11"
        
        resumed = FarmAgent(FARM, kv=kv)
        assert resumed.get_stats().request_count == 12
    
    @pytest.mark.asyncio
    async def test_on_message_ignores_own_messages(self, kv):
        agent = FarmAgent(FARM, kv=kv)
        assert await agent.on_message(command("make me a poem", sender="0xfarm")) is None
        assert agent.get_stats().request_count == 0
