"""
Garden negotiation domain models.

WHAT: Conversation, proposal, payment request and agreement records
WHY: One typed shape shared by the state machine, the stores and the API
HOW: Pydantic v2 models serialized as flat JSON with ISO-8601 timestamps
"""

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


class MessageRole(str, Enum):
    """Author of a transcript entry."""
    COUNTERPARTY = "counterparty"
    AGENT = "agent"


class ConversationMessage(BaseModel):
    """A single transcript entry."""
    
    role: MessageRole
    text: str
    sent_at: datetime = Field(default_factory=datetime.utcnow)


class Proposal(BaseModel):
    """Tiered price proposal sent to a counterparty."""
    
    base_price_amount: float = Field(gt=0.0)
    price_options: list[float] = Field(min_length=3, max_length=3)
    description: str = ""
    
    model_config = {"frozen": True}
    
    @field_validator("price_options")
    @classmethod
    def validate_ascending(cls, v: list[float]) -> list[float]:
        """Tier order is significant: minimum, standard, premium."""
        if not (v[0] < v[1] < v[2]):
            raise ValueError("price_options must be strictly ascending")
        return v


TIER_NAMES = ("minimum", "standard", "premium")


class PaymentRequest(BaseModel):
    """
    Versioned payment request attached to an accepted negotiation.
    
    The scheme tag names the settlement mechanism so the negotiation
    flow stays the same whichever mechanism settles the payment.
    """
    
    version: Literal["1"] = "1"
    scheme: Literal["social_commitment"] = "social_commitment"
    amount: float = Field(gt=0.0)
    currency: str = "USDC"
    recipient: str
    chain_id: int
    description: str
    nonce: str = Field(default_factory=lambda: uuid4().hex)


class Conversation(BaseModel):
    """Negotiation state for one counterparty."""
    
    counterparty_id: str = Field(min_length=1)
    thread_id: str
    proposal: Proposal | None = None
    counter_offer: float | None = None
    accepted: bool = False
    payment_request: PaymentRequest | None = None
    payment_committed: bool = False
    payment_agreement_id: str | None = None
    negotiation_rounds: int = Field(default=0, ge=0)
    messages: list[ConversationMessage] = Field(min_length=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    
    @model_validator(mode="after")
    def validate_acceptance(self):
        """An accepted conversation must have something that was accepted."""
        if self.accepted and self.proposal is None and self.counter_offer is None:
            raise ValueError("accepted conversation requires a proposal or counter_offer")
        return self
    
    @property
    def key(self) -> str:
        """Store key component (case-insensitive identity)."""
        return self.counterparty_id.lower()
    
    def append(self, role: MessageRole, text: str) -> ConversationMessage:
        """Append a transcript entry and refresh updated_at."""
        entry = ConversationMessage(role=role, text=text)
        self.messages.append(entry)
        self.updated_at = entry.sent_at
        return entry
    
    def mark_accepted(self, payment_request: PaymentRequest | None = None) -> None:
        """Mark accepted. Acceptance is never revoked."""
        self.accepted = True
        if payment_request is not None:
            self.payment_request = payment_request
        self.updated_at = datetime.utcnow()


class OfferEvaluation(BaseModel):
    """Result of evaluating a counter-offer against the tier policy."""
    
    accepted: bool
    message: str


class CommitmentConfirmation(BaseModel):
    """Parsed payment-commitment message."""
    
    amount: float | None = None
    confirmed: bool = False


class PaymentStatus(str, Enum):
    """Agreement status, ordered; transitions only move forward."""
    PENDING = "pending"
    COMMITTED = "committed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    
    @property
    def rank(self) -> int:
        return list(PaymentStatus).index(self)


class PaymentAgreement(BaseModel):
    """Externally-asserted payment commitment for an accepted negotiation."""
    
    id: str
    thread_id: str
    amount: float = Field(gt=0.0)
    description: str
    counterparty_id: str
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.utcnow)
    committed_at: datetime | None = None
    work_started_at: datetime | None = None
    completed_at: datetime | None = None


class GardenStats(BaseModel):
    """Aggregate counters for the Garden agent."""
    
    address: str | None = None
    active_negotiations: int = 0
    completed_negotiations: int = 0
    accepted_negotiations: int = 0
    total_committed_usdc: float = 0.0
    avg_negotiation_rounds: float = 0.0
    max_negotiation_rounds: int = 0
