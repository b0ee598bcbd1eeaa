"""
Farm agent.

WHAT: Command agent that obeys "make me / create / give me X" immediately
WHY: Baseline next to the Garden agent: no negotiation, no state per counterparty
HOW: Regex command parsing, deterministic placeholder reply, stats snapshot in the KV store
"""

import re
import time
from datetime import datetime
from typing import Optional

from ..core.kv_store import KeyValueStore
from ..models.transport import (
    FarmExchange,
    FarmRequestRecord,
    FarmResponseRecord,
    FarmStats,
    InboundMessage,
)
from ..services.message_buffer import MessageBuffer
from ..services.stats import load_farm_stats, save_farm_stats
from ..transport.provider import TransportProvider
from ..utils.logger import get_logger
from .base import BaseAgent

logger = get_logger(__name__)

COMMAND_PATTERNS = [
    re.compile(r"make me (?:a |an )?(.+?)(?:\?|!|\.|$)", re.IGNORECASE),
    re.compile(r"create (?:a |an )?(.+?)(?:\?|!|\.|$)", re.IGNORECASE),
    re.compile(r"give me (?:a |an )?(.+?)(?:\?|!|\.|$)", re.IGNORECASE),
]

HELP_REPLY = "I only understand commands like 'Make me [something]'. What would you like me to create?"

MAX_EXCHANGES = 100
RECENT_EXCHANGES = 10


def parse_request(text: str) -> Optional[str]:
    """Requested item from a command, lowercased, or None."""
    content = text.lower().strip()
    for pattern in COMMAND_PATTERNS:
        match = pattern.search(content)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def generate_placeholder_response(item: str) -> str:
    """Deterministic placeholder; the template depends only on the item length."""
    templates = [
        f"Here's your {item}. It's crafted with precision and ready for use.",
        f"Your {item} is complete. Delivered as requested.",
        f"{item[:1].upper() + item[1:]} delivered. No questions asked.",
        f"Here's your {item}. Exactly what you asked for.",
    ]
    return templates[len(item) % len(templates)]


class FarmAgent(BaseAgent):
    """Agent that answers every recognized command without negotiation."""
    
    agent_type = "farm"
    
    def __init__(
        self,
        address: str,
        *,
        kv: KeyValueStore | None = None,
        transport: TransportProvider | None = None,
        buffer: MessageBuffer | None = None
    ):
        super().__init__(address, transport=transport, buffer=buffer)
        self.kv = kv or KeyValueStore()
        
        # Resume counters from the last snapshot
        snapshot = load_farm_stats(self.kv)
        self.request_count = snapshot.request_count
        self.total_response_time_ms = snapshot.total_response_time_ms
        self.exchanges: list[FarmExchange] = list(snapshot.recent_responses)
    
    async def respond(self, message: InboundMessage) -> Optional[str]:
        """
        Obey a command or explain the command format.
        
        Args:
            message: Inbound text message
        
        Returns:
            Placeholder content or the help reply
        """
        started = time.perf_counter()
        item = parse_request(message.text)
        
        if item is None:
            return HELP_REPLY
        
        content = generate_placeholder_response(item)
        elapsed_ms = (time.perf_counter() - started) * 1000
        
        self._record(
            FarmExchange(
                request=FarmRequestRecord(
                    request=message.text,
                    requested_item=item,
                    timestamp=datetime.utcnow()
                ),
                response=FarmResponseRecord(
                    request_id=message.message_id,
                    item=item,
                    content=content,
                    response_time_ms=elapsed_ms
                )
            )
        )
        logger.info(f"✅ Farm responded in {elapsed_ms:.2f}ms: {content[:50]}")
        return content
    
    def _record(self, exchange: FarmExchange):
        self.request_count += 1
        self.total_response_time_ms += exchange.response.response_time_ms
        self.exchanges.append(exchange)
        if len(self.exchanges) > MAX_EXCHANGES:
            self.exchanges = self.exchanges[-MAX_EXCHANGES:]
        save_farm_stats(self.kv, self.get_stats())
    
    def get_stats(self) -> FarmStats:
        """Counters with the last ten exchanges."""
        avg = self.total_response_time_ms / self.request_count if self.request_count else 0.0
        return FarmStats(
            address=self.address,
            request_count=self.request_count,
            total_response_time_ms=self.total_response_time_ms,
            avg_response_time_ms=avg,
            recent_responses=self.exchanges[-RECENT_EXCHANGES:]
        )
