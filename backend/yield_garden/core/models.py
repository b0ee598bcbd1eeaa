"""
ORM models for database persistence.

WHAT: SQLAlchemy models for all database tables
WHY: Persist key-value records (conversations, agreements, stats) and the message stream
HOW: Declarative models with indexes on the lookup columns
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, Index

from .database import Base


class KeyValueRecord(Base):
    """
    Key-value table with optional expiry.
    
    WHAT: One JSON document per key
    WHY: Conversations expire after a TTL; agreements and stats never do
    HOW: Rows whose expires_at is in the past are treated as absent
    """
    __tablename__ = "kv_records"
    
    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    __table_args__ = (
        Index("idx_kv_expires_at", "expires_at"),
    )
    
    def __repr__(self):
        return f"<KeyValueRecord(key={self.key}, expires_at={self.expires_at})>"


class StreamMessageRecord(Base):
    """
    Stream table - recent messages seen or sent by each agent.
    
    WHAT: Rolling buffer of inbound and outbound messages
    WHY: Feed the stream endpoints and the SSE event feed
    HOW: Autoincrement id doubles as the stream cursor
    """
    __tablename__ = "stream_messages"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(String(100), nullable=False)
    agent_type = Column(String(20), nullable=False)  # farm or garden
    direction = Column(String(3), nullable=False)  # in or out
    sender = Column(String(100), nullable=False)
    recipient = Column(String(100), nullable=True)
    thread_id = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)
    
    __table_args__ = (
        Index("idx_stream_agent_id", "agent_type", "id"),
    )
    
    def __repr__(self):
        return f"<StreamMessageRecord(id={self.id}, agent={self.agent_type}, direction={self.direction})>"
