"""
Agent runner.

WHAT: Drive Farm and Garden agents from their transport streams
WHY: Agents run as long-lived processes next to (or inside) the API
HOW: One task per agent consuming stream_messages(); per-message failures are logged and skipped

Usage:
    python -m yield_garden.agents.runner            # both agents
    python -m yield_garden.agents.runner --garden   # Garden only
"""

import argparse
import asyncio
import sys

from ..core.config import settings
from ..core.database import init_db
from ..core.kv_store import KeyValueStore
from ..services.conversation_store import ConversationStore
from ..services.message_buffer import MessageBuffer
from ..services.payment_tracker import PaymentTracker
from ..transport.factory import get_transport
from ..utils.exceptions import ConfigurationError
from ..utils.logger import get_logger, setup_logging
from .base import BaseAgent
from .farm_agent import FarmAgent
from .garden_agent import GardenAgent

logger = get_logger(__name__)


class AgentRunner:
    """Consumes one agent's transport stream until it ends or is stopped."""
    
    def __init__(self, agent: BaseAgent):
        if agent.transport is None:
            raise ConfigurationError(f"{agent.agent_type} transport", "is not configured")
        self.agent = agent
        self.transport = agent.transport
        self.handled = 0
        self.failed = 0
    
    async def run(self):
        """
        Process messages until the stream ends.
        
        Errors from a single message (store outage, send failure) are logged
        with traceback and do not stop the stream; the message gets no reply.
        """
        status = await self.transport.ping()
        if status.available:
            logger.info(f"{self.agent.agent_type} agent listening as {self.agent.address} via {status.provider}")
        else:
            logger.warning(f"{self.agent.agent_type} transport unavailable: {status.error}")
        
        async for message in self.transport.stream_messages():
            try:
                await self.agent.on_message(message)
                self.handled += 1
            except Exception as e:
                self.failed += 1
                logger.error(
                    f"{self.agent.agent_type} failed to handle message {message.message_id}: {e}",
                    exc_info=True
                )
        
        logger.info(f"{self.agent.agent_type} stream ended ({self.handled} handled, {self.failed} failed)")
    
    async def stop(self):
        await self.transport.close()


def build_garden_agent(kv: KeyValueStore | None = None, buffer: MessageBuffer | None = None) -> GardenAgent:
    """
    Garden agent over the configured transport.
    
    Raises:
        ConfigurationError: GARDEN_AGENT_ADDRESS is not set
    """
    address = settings.GARDEN_AGENT_ADDRESS
    if not address:
        raise ConfigurationError("GARDEN_AGENT_ADDRESS")
    kv = kv or KeyValueStore()
    return GardenAgent(
        address,
        store=ConversationStore(kv),
        tracker=PaymentTracker(kv),
        transport=get_transport(address),
        buffer=buffer or MessageBuffer()
    )


def build_farm_agent(kv: KeyValueStore | None = None, buffer: MessageBuffer | None = None) -> FarmAgent:
    """
    Farm agent over the configured transport.
    
    Raises:
        ConfigurationError: FARM_AGENT_ADDRESS is not set
    """
    address = settings.FARM_AGENT_ADDRESS
    if not address:
        raise ConfigurationError("FARM_AGENT_ADDRESS")
    return FarmAgent(
        address,
        kv=kv or KeyValueStore(),
        transport=get_transport(address),
        buffer=buffer or MessageBuffer()
    )


def build_runners(run_farm: bool = True, run_garden: bool = True) -> list[AgentRunner]:
    """Runners for the selected agents; configuration is checked before anything starts."""
    runners = []
    if run_farm:
        runners.append(AgentRunner(build_farm_agent()))
    if run_garden:
        runners.append(AgentRunner(build_garden_agent()))
    return runners


async def run_agents(runners: list[AgentRunner]):
    """Run until every stream ends; transports are closed on exit."""
    try:
        await asyncio.gather(*(runner.run() for runner in runners))
    finally:
        for runner in runners:
            await runner.stop()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run Yield Garden agents")
    parser.add_argument("-f", "--farm", action="store_true", help="run the Farm agent")
    parser.add_argument("-g", "--garden", action="store_true", help="run the Garden agent")
    args = parser.parse_args(argv)
    if not args.farm and not args.garden:
        args.farm = args.garden = True
    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging()
    init_db()
    KeyValueStore().purge_expired()
    
    try:
        runners = build_runners(run_farm=args.farm, run_garden=args.garden)
    except ConfigurationError as e:
        logger.error(e.message)
        return 1
    
    try:
        asyncio.run(run_agents(runners))
    except KeyboardInterrupt:
        logger.info("Agents shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
