"""
Integration tests for the agent runner.

WHAT: Both agents running over the in-memory network, CLI argument handling
WHY: End-to-end path from inbound message to delivered reply
HOW: Runners built from settings; a test user on the same MemoryHub
"""

import asyncio

import pytest

from yield_garden.agents.base import BaseAgent
from yield_garden.agents.runner import (
    AgentRunner,
    build_garden_agent,
    build_runners,
    main,
    parse_args,
    run_agents,
)
from yield_garden.core.config import settings
from yield_garden.transport.memory import InMemoryTransport
from yield_garden.utils.exceptions import ConfigurationError


async def next_from(stream, sender, timeout=2):
    """Next message in the stream sent by `sender`."""
    while True:
        message = await asyncio.wait_for(stream.__anext__(), timeout=timeout)
        if message.sender_id.lower() == sender.lower():
            return message


@pytest.mark.integration
class TestAgentRunner:
    
    @pytest.mark.asyncio
    async def test_both_agents_reply(self, store):
        runners = build_runners()
        user = InMemoryTransport("0xUser")
        inbox = user.stream_messages()
        task = asyncio.create_task(run_agents(runners))
        
        try:
            await user.send_message(settings.FARM_AGENT_ADDRESS, "Make me a poem")
            farm_reply = await next_from(inbox, settings.FARM_AGENT_ADDRESS)
            assert farm_reply.text == "Here's your poem. It's crafted with precision and ready for use."
            
            await user.send_message(settings.GARDEN_AGENT_ADDRESS, "I'd like to support your work")
            garden_reply = await next_from(inbox, settings.GARDEN_AGENT_ADDRESS)
            assert "Minimum: 5 USDC" in garden_reply.text
            assert store.load("0xUser").thread_id == garden_reply.thread_id
        finally:
            for runner in runners:
                await runner.stop()
            await asyncio.wait_for(task, timeout=2)
            await user.close()
    
    @pytest.mark.asyncio
    async def test_failed_message_does_not_stop_runner(self, hub):
        class FlakyAgent(BaseAgent):
            agent_type = "garden"
            calls = 0
            
            async def respond(self, message):
                FlakyAgent.calls += 1
                if FlakyAgent.calls == 1:
                    raise RuntimeError("boom")
                return "ok"
        
        agent = FlakyAgent("0xFlaky", transport=InMemoryTransport("0xFlaky", hub))
        runner = AgentRunner(agent)
        user = InMemoryTransport("0xUser", hub)
        inbox = user.stream_messages()
        task = asyncio.create_task(runner.run())
        
        try:
            await user.send_message("0xFlaky", "first")
            await user.send_message("0xFlaky", "second")
            reply = await next_from(inbox, "0xFlaky")
            assert reply.text == "ok"
        finally:
            await runner.stop()
            await asyncio.wait_for(task, timeout=2)
        
        assert runner.failed == 1
    
    def test_runner_requires_transport(self):
        class Bare(BaseAgent):
            agent_type = "farm"
        
        with pytest.raises(ConfigurationError):
            AgentRunner(Bare("0xBare"))


@pytest.mark.integration
class TestRunnerConfiguration:
    
    def test_missing_identity_is_configuration_error(self, monkeypatch):
        monkeypatch.setattr(settings, "GARDEN_AGENT_ADDRESS", "")
        with pytest.raises(ConfigurationError, match="GARDEN_AGENT_ADDRESS"):
            build_garden_agent()
    
    def test_main_exits_non_zero_without_identity(self, monkeypatch):
        monkeypatch.setattr(settings, "FARM_AGENT_ADDRESS", "")
        assert main(["--farm"]) == 1
    
    @pytest.mark.parametrize("argv,farm,garden", [
        ([], True, True),
        (["--farm"], True, False),
        (["-g"], False, True),
        (["--farm", "--garden"], True, True),
    ])
    def test_parse_args(self, argv, farm, garden):
        args = parse_args(argv)
        assert (args.farm, args.garden) == (farm, garden)
