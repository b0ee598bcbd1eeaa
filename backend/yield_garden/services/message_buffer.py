"""
Agent message stream buffer.

WHAT: Rolling record of inbound and outbound agent messages
WHY: Stream endpoints and the SSE feed replay what the agents saw and said
HOW: stream_messages table pruned to MESSAGE_BUFFER_SIZE rows per agent
"""

from datetime import datetime
from typing import Literal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.config import settings
from ..core.database import get_db
from ..core.models import StreamMessageRecord
from ..models.transport import StreamMessage
from ..utils.exceptions import StoreUnavailableError
from ..utils.logger import get_logger

logger = get_logger(__name__)

AgentType = Literal["farm", "garden"]


def _to_model(record: StreamMessageRecord) -> StreamMessage:
    return StreamMessage(
        id=record.id,
        message_id=record.message_id,
        agent_type=record.agent_type,
        direction=record.direction,
        sender=record.sender,
        recipient=record.recipient,
        thread_id=record.thread_id,
        content=record.content,
        timestamp=record.timestamp,
    )


class MessageBuffer:
    """Bounded per-agent message history."""
    
    def __init__(self, session_factory: sessionmaker | None = None, max_size: int | None = None):
        self.session_factory = session_factory
        self.max_size = max_size or settings.MESSAGE_BUFFER_SIZE
    
    def record(
        self,
        *,
        agent_type: AgentType,
        direction: Literal["in", "out"],
        message_id: str,
        sender: str,
        content: str,
        recipient: str | None = None,
        thread_id: str | None = None,
        timestamp: datetime | None = None
    ) -> int:
        """
        Append a message and prune the oldest beyond max_size.
        
        Returns:
            Stream id of the new entry
        """
        try:
            with get_db(self.session_factory) as db:
                record = StreamMessageRecord(
                    message_id=message_id,
                    agent_type=agent_type,
                    direction=direction,
                    sender=sender,
                    recipient=recipient,
                    thread_id=thread_id,
                    content=content,
                    timestamp=timestamp or datetime.utcnow(),
                )
                db.add(record)
                db.flush()
                
                stale_ids = [
                    row.id for row in db.query(StreamMessageRecord.id)
                    .filter_by(agent_type=agent_type)
                    .order_by(StreamMessageRecord.id.desc())
                    .offset(self.max_size)
                    .all()
                ]
                if stale_ids:
                    db.query(StreamMessageRecord).filter(
                        StreamMessageRecord.id.in_(stale_ids)
                    ).delete(synchronize_session=False)
                return record.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to record {agent_type} stream message: {e}")
            raise StoreUnavailableError("record", agent_type, e) from e
    
    def recent(self, agent_type: AgentType, limit: int = 100) -> list[StreamMessage]:
        """Last `limit` messages, oldest first."""
        with get_db(self.session_factory) as db:
            rows = (
                db.query(StreamMessageRecord)
                .filter_by(agent_type=agent_type)
                .order_by(StreamMessageRecord.id.desc())
                .limit(limit)
                .all()
            )
            return [_to_model(r) for r in reversed(rows)]
    
    def since(self, agent_type: AgentType, after_id: int, limit: int = 100) -> list[StreamMessage]:
        """Messages newer than a stream id, oldest first."""
        with get_db(self.session_factory) as db:
            rows = (
                db.query(StreamMessageRecord)
                .filter(
                    StreamMessageRecord.agent_type == agent_type,
                    StreamMessageRecord.id > after_id
                )
                .order_by(StreamMessageRecord.id.asc())
                .limit(limit)
                .all()
            )
            return [_to_model(r) for r in rows]
    
    def latest_id(self, agent_type: AgentType) -> int:
        """Newest stream id for an agent, 0 when empty."""
        with get_db(self.session_factory) as db:
            row = (
                db.query(StreamMessageRecord.id)
                .filter_by(agent_type=agent_type)
                .order_by(StreamMessageRecord.id.desc())
                .first()
            )
            return row.id if row else 0
