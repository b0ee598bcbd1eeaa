"""
Key-value persistence with expiry.

WHAT: get / set-with-expiry / delete / prefix enumeration over SQLAlchemy
WHY: Conversations, agreements and stats share one durable backend
HOW: JSON documents in kv_records, expired rows filtered on read
"""

import json
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import get_db
from .models import KeyValueRecord
from ..utils.exceptions import StoreUnavailableError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class KeyValueStore:
    """JSON key-value store with optional per-key TTL."""
    
    def __init__(self, session_factory: sessionmaker | None = None):
        """
        Initialize the store.
        
        Args:
            session_factory: Optional session factory (defaults to the app database)
        """
        self.session_factory = session_factory
    
    @staticmethod
    def _live(query, now: datetime):
        return query.filter(
            or_(KeyValueRecord.expires_at.is_(None), KeyValueRecord.expires_at > now)
        )
    
    def get(self, key: str) -> Optional[Any]:
        """
        Read a live value.
        
        Args:
            key: Record key
        
        Returns:
            Decoded JSON value, or None if missing or expired
        
        Raises:
            StoreUnavailableError: Backend failure or undecodable value
        """
        try:
            with get_db(self.session_factory) as db:
                record = self._live(
                    db.query(KeyValueRecord).filter_by(key=key), datetime.utcnow()
                ).first()
                if record is None:
                    return None
                return json.loads(record.value)
        except (SQLAlchemyError, json.JSONDecodeError) as e:
            logger.error(f"KV get failed for {key}: {e}")
            raise StoreUnavailableError("get", key, e) from e
    
    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """
        Upsert a value, refreshing its expiry window.
        
        Args:
            key: Record key
            value: JSON-serializable value
            ttl_seconds: Lifetime from now; None keeps the record forever
        
        Raises:
            StoreUnavailableError: Backend failure or unserializable value
        """
        now = datetime.utcnow()
        expires_at = now + timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None
        try:
            payload = json.dumps(value)
            with get_db(self.session_factory) as db:
                record = db.get(KeyValueRecord, key)
                if record is None:
                    db.add(KeyValueRecord(
                        key=key,
                        value=payload,
                        expires_at=expires_at,
                        created_at=now,
                        updated_at=now
                    ))
                else:
                    record.value = payload
                    record.expires_at = expires_at
                    record.updated_at = now
        except (SQLAlchemyError, TypeError, ValueError) as e:
            logger.error(f"KV set failed for {key}: {e}")
            raise StoreUnavailableError("set", key, e) from e
    
    def delete(self, key: str) -> bool:
        """
        Delete a key.
        
        Returns:
            True if a row was removed
        """
        try:
            with get_db(self.session_factory) as db:
                deleted = db.query(KeyValueRecord).filter_by(key=key).delete()
            return deleted > 0
        except SQLAlchemyError as e:
            logger.error(f"KV delete failed for {key}: {e}")
            raise StoreUnavailableError("delete", key, e) from e
    
    def keys(self, prefix: str = "") -> list[str]:
        """
        Enumerate live keys starting with prefix.
        
        Args:
            prefix: Key prefix, matched literally
        
        Returns:
            Sorted list of keys
        """
        try:
            with get_db(self.session_factory) as db:
                query = self._live(db.query(KeyValueRecord.key), datetime.utcnow())
                if prefix:
                    query = query.filter(KeyValueRecord.key.startswith(prefix, autoescape=True))
                return sorted(row.key for row in query.all())
        except SQLAlchemyError as e:
            logger.error(f"KV key scan failed for prefix {prefix!r}: {e}")
            raise StoreUnavailableError("keys", prefix, e) from e
    
    def purge_expired(self) -> int:
        """
        Physically remove expired rows.
        
        Returns:
            Number of rows deleted
        """
        try:
            with get_db(self.session_factory) as db:
                deleted = db.query(KeyValueRecord).filter(
                    KeyValueRecord.expires_at.is_not(None),
                    KeyValueRecord.expires_at <= datetime.utcnow()
                ).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            logger.error(f"KV purge failed: {e}")
            raise StoreUnavailableError("purge", "*", e) from e
        
        if deleted:
            logger.info(f"Purged {deleted} expired records")
        return deleted
