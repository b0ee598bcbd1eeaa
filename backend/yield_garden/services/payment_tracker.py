"""
Payment commitment tracker.

WHAT: Registry of payment agreements and their forward-only status
WHY: Accepted negotiations become commitments the agent can act on and report
HOW: Agreements persisted in the key-value store, transitions under a lock
"""

import re
import threading
import time
from datetime import datetime
from typing import Optional

from ..core.kv_store import KeyValueStore
from ..models.garden import CommitmentConfirmation, PaymentAgreement, PaymentStatus
from ..utils.logger import get_logger
from .negotiation_policy import parse_amount

logger = get_logger(__name__)

AGREEMENT_PREFIX = "garden:agreement:"

CONFIRMATION_PATTERN = re.compile(r"\bi agree\b|\bi'll pay\b|\bi will pay\b|\bconfirmed?\b", re.IGNORECASE)
COMMITMENT_AMOUNT_PATTERN = re.compile(r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)\s*usdc?\b", re.IGNORECASE)

COMMITTED_STATUSES = (PaymentStatus.COMMITTED, PaymentStatus.IN_PROGRESS, PaymentStatus.COMPLETED)


def parse_commitment_confirmation(text: str) -> CommitmentConfirmation:
    """
    Parse an affirmation and an amount from a message.
    
    The two checks are independent; a commitment needs both. Amounts
    outside (0, 10000) are treated as absent.
    
    Args:
        text: Message text
    
    Returns:
        CommitmentConfirmation with confirmed flag and amount (or None)
    """
    if not text:
        return CommitmentConfirmation()
    
    confirmed = CONFIRMATION_PATTERN.search(text) is not None
    match = COMMITMENT_AMOUNT_PATTERN.search(text)
    amount = parse_amount(match.group(1)) if match else None
    return CommitmentConfirmation(amount=amount, confirmed=confirmed)


class PaymentTracker:
    """Owns PaymentAgreement records keyed by id."""
    
    def __init__(self, kv: KeyValueStore | None = None):
        self.kv = kv or KeyValueStore()
        self._lock = threading.Lock()
    
    def _key(self, agreement_id: str) -> str:
        return f"{AGREEMENT_PREFIX}{agreement_id}"
    
    def _save(self, agreement: PaymentAgreement) -> None:
        self.kv.set(self._key(agreement.id), agreement.model_dump(mode="json"))
    
    def _new_id(self, thread_id: str) -> str:
        created_ms = time.time_ns() // 1_000_000
        while self.kv.get(self._key(f"{thread_id}-{created_ms}")) is not None:
            created_ms += 1
        return f"{thread_id}-{created_ms}"
    
    def record_agreement(
        self,
        thread_id: str,
        amount: float,
        description: str,
        counterparty_id: str
    ) -> PaymentAgreement:
        """
        Create a pending agreement.
        
        Args:
            thread_id: Conversation thread the commitment came from
            amount: Agreed amount
            description: What the payment is for
            counterparty_id: Paying party
        
        Returns:
            The new agreement (status pending)
        """
        with self._lock:
            agreement = PaymentAgreement(
                id=self._new_id(thread_id),
                thread_id=thread_id,
                amount=amount,
                description=description,
                counterparty_id=counterparty_id,
            )
            self._save(agreement)
        
        logger.info(f"Recorded agreement {agreement.id}: {agreement.amount} from {counterparty_id}")
        return agreement
    
    def _advance(self, agreement_id: str, target: PaymentStatus, stamp_field: str) -> Optional[PaymentAgreement]:
        with self._lock:
            agreement = self.get_agreement(agreement_id)
            if agreement is None:
                logger.warning(f"Agreement {agreement_id} not found; {target.value} ignored")
                return None
            
            if target.rank <= agreement.status.rank:
                logger.debug(f"Agreement {agreement_id} already {agreement.status.value}; {target.value} ignored")
                return agreement
            
            agreement.status = target
            setattr(agreement, stamp_field, datetime.utcnow())
            self._save(agreement)
        
        logger.info(f"Agreement {agreement_id} -> {target.value}")
        return agreement
    
    def mark_committed(self, agreement_id: str) -> Optional[PaymentAgreement]:
        """Counterparty confirmed the commitment."""
        return self._advance(agreement_id, PaymentStatus.COMMITTED, "committed_at")
    
    def mark_work_started(self, agreement_id: str) -> Optional[PaymentAgreement]:
        """Agent started the committed work."""
        return self._advance(agreement_id, PaymentStatus.IN_PROGRESS, "work_started_at")
    
    def mark_completed(self, agreement_id: str) -> Optional[PaymentAgreement]:
        """Work delivered."""
        return self._advance(agreement_id, PaymentStatus.COMPLETED, "completed_at")
    
    def get_agreement(self, agreement_id: str) -> Optional[PaymentAgreement]:
        data = self.kv.get(self._key(agreement_id))
        return PaymentAgreement.model_validate(data) if data is not None else None
    
    def list_agreements(self) -> list[PaymentAgreement]:
        agreements = []
        for key in self.kv.keys(AGREEMENT_PREFIX):
            data = self.kv.get(key)
            if data is not None:
                agreements.append(PaymentAgreement.model_validate(data))
        return sorted(agreements, key=lambda a: a.created_at)
    
    def list_by_thread(self, thread_id: str) -> list[PaymentAgreement]:
        return [a for a in self.list_agreements() if a.thread_id == thread_id]
    
    def total_committed(self) -> float:
        """Sum of amounts for committed, in-progress and completed agreements."""
        return sum(a.amount for a in self.list_agreements() if a.status in COMMITTED_STATUSES)
