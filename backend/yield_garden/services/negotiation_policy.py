"""
Garden negotiation policy.

WHAT: Tier pricing, offer evaluation, intent and amount extraction, reply text
WHY: Keep the negotiation rules pure and testable apart from I/O
HOW: Config-driven class; regex classifiers compiled once from pattern data
"""

import math
import re
from typing import Optional, Protocol, Sequence

from pydantic import BaseModel, Field, field_validator

from ..core.config import settings
from ..models.garden import OfferEvaluation, PaymentRequest, Proposal, TIER_NAMES

# Numeric extraction, tried in order; first in-range hit wins.
# Thousands separators are part of the number: "1,000" is 1000, never 1
_AMOUNT = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
COUNTER_OFFER_PATTERNS = [
    re.compile(r"\$\s*" + _AMOUNT, re.IGNORECASE),
    re.compile(_AMOUNT + r"\s*(?:usdc|usd|dollars?)\b", re.IGNORECASE),
    re.compile(r"\b(?:offer|propose|suggest)\s+\$?\s*" + _AMOUNT, re.IGNORECASE),
    re.compile(_AMOUNT + r"\s*(?:is|seems|sounds)\b", re.IGNORECASE),
]

MAX_OFFER_AMOUNT = 10000.0

TIER_PATTERNS = [
    re.compile(r"\b(?:minimum|min)\b|\btier\s*(?:one|1)\b", re.IGNORECASE),
    re.compile(r"\bstandard\b|\btier\s*(?:two|2)\b", re.IGNORECASE),
    re.compile(r"\bpremium\b|\btier\s*(?:three|3)\b", re.IGNORECASE),
]


def format_amount(amount: float) -> str:
    """Render an amount without a trailing .0 (25.0 -> '25', 12.5 -> '12.5')."""
    return f"{amount:g}"


def parse_amount(raw: str) -> Optional[float]:
    """
    Parse a matched amount, dropping thousands separators.
    
    Returns:
        Amount strictly inside (0, MAX_OFFER_AMOUNT), or None
    """
    try:
        amount = float(raw.replace(",", ""))
    except ValueError:
        return None
    if math.isfinite(amount) and 0 < amount < MAX_OFFER_AMOUNT:
        return amount
    return None


def extract_counter_offer(text: str) -> Optional[float]:
    """
    Extract a counter-offer amount from free text.
    
    WHAT: First currency-like amount strictly inside (0, 10000)
    WHY: Phone numbers, years and zero are not offers
    HOW: Ordered patterns; each contributes its first match only
    
    Args:
        text: Message text
    
    Returns:
        Amount or None if nothing plausible was found
    """
    if not text:
        return None
    
    for pattern in COUNTER_OFFER_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        amount = parse_amount(match.group(1))
        if amount is not None:
            return amount
    return None


def extract_tier_selection(text: str) -> Optional[int]:
    """
    Map tier wording to an index into Proposal.price_options.
    
    Returns:
        0 (minimum), 1 (standard), 2 (premium) or None
    """
    if not text:
        return None
    for index, pattern in enumerate(TIER_PATTERNS):
        if pattern.search(text):
            return index
    return None


class IntentClassifier(Protocol):
    """Decides whether a message opens a negotiation."""
    
    def is_support_intent(self, text: str) -> bool:
        ...


class RegexIntentClassifier:
    """Case-insensitive regex classifier over configured patterns."""
    
    def __init__(self, patterns: Sequence[str]):
        self.patterns = [re.compile(p, re.IGNORECASE) for p in patterns]
    
    def is_support_intent(self, text: str) -> bool:
        if not text:
            return False
        return any(p.search(text) for p in self.patterns)


class PolicyConfig(BaseModel):
    """Negotiation policy configuration."""
    
    tier_amounts: list[float] = Field(default_factory=lambda: [5.0, 25.0, 100.0], min_length=3, max_length=3)
    flexibility: float = Field(default=0.20, ge=0.0, lt=1.0)
    max_rounds: int = Field(default=3, ge=1)
    support_patterns: list[str] = Field(default_factory=lambda: list(settings.GARDEN_SUPPORT_PATTERNS))
    proposal_description: str = "Contribution to support ongoing work"
    currency: str = "USDC"

    @field_validator("tier_amounts")
    @classmethod
    def validate_tiers(cls, v: list[float]) -> list[float]:
        """Tiers are positive and strictly ascending."""
        if v[0] <= 0 or not (v[0] < v[1] < v[2]):
            raise ValueError("tier_amounts must be positive and strictly ascending")
        return v

    @classmethod
    def from_settings(cls) -> "PolicyConfig":
        """Build from the application settings."""
        return cls(
            tier_amounts=list(settings.GARDEN_TIER_AMOUNTS),
            flexibility=settings.GARDEN_FLEXIBILITY,
            max_rounds=settings.GARDEN_MAX_NEGOTIATION_ROUNDS,
            support_patterns=list(settings.GARDEN_SUPPORT_PATTERNS),
            currency=settings.PAYMENT_CURRENCY,
        )


class NegotiationPolicy:
    """Stateless tiered pricing policy."""
    
    def __init__(
        self,
        config: PolicyConfig | None = None,
        classifier: IntentClassifier | None = None
    ):
        """
        Initialize policy.
        
        Args:
            config: Policy configuration (defaults to settings)
            classifier: Intent classifier (defaults to regex over config.support_patterns)
        """
        self.config = config or PolicyConfig.from_settings()
        self.classifier = classifier or RegexIntentClassifier(self.config.support_patterns)
    
    @property
    def tiers(self) -> list[float]:
        return self.config.tier_amounts
    
    @property
    def max_rounds(self) -> int:
        return self.config.max_rounds
    
    def create_proposal(self) -> Proposal:
        """Standard tier as base price, all three tiers ascending."""
        return Proposal(
            base_price_amount=self.tiers[1],
            price_options=sorted(self.tiers),
            description=self.config.proposal_description,
        )
    
    def minimum_acceptable(self) -> float:
        """Lowest amount accepted: minimum tier less the flexibility fraction."""
        return self.tiers[0] * (1 - self.config.flexibility)
    
    def evaluate_offer(self, amount: float) -> OfferEvaluation:
        """
        Evaluate a counter-offer.
        
        Both bounds are inclusive: an offer equal to the minimum tier or to
        the flexible floor is accepted.
        """
        currency = self.config.currency
        floor = self.minimum_acceptable()
        
        if amount >= self.tiers[0]:
            return OfferEvaluation(
                accepted=True,
                message=f"Your offer of {format_amount(amount)} {currency} is acceptable. Proceeding to payment."
            )
        if amount >= floor:
            return OfferEvaluation(
                accepted=True,
                message=(
                    f"Your offer of {format_amount(amount)} {currency} is acceptable "
                    f"(within flexible range). Proceeding to payment."
                )
            )
        return OfferEvaluation(
            accepted=False,
            message=(
                f"I cannot accept {format_amount(amount)} {currency}. "
                f"My minimum is {format_amount(self.tiers[0])} {currency} (flexible to {floor:.2f})."
            )
        )
    
    def is_support_intent(self, text: str) -> bool:
        return self.classifier.is_support_intent(text)
    
    def extract_counter_offer(self, text: str) -> Optional[float]:
        return extract_counter_offer(text)
    
    def extract_tier_selection(self, text: str) -> Optional[int]:
        return extract_tier_selection(text)
    
    # ---- Reply text ----
    
    def format_proposal_message(self, proposal: Proposal) -> str:
        c = self.config.currency
        low, standard, premium = (format_amount(a) for a in proposal.price_options)
        return (
            "🌱 Thank you for your interest in supporting this work.\n\n"
            "I propose the following contribution structure:\n\n"
            f"• Minimum: {low} {c}\n"
            f"• Standard: {standard} {c} (recommended)\n"
            f"• Premium: {premium} {c}\n\n"
            f"{proposal.description}\n\n"
            "You may:\n"
            "1. Accept one of these tiers\n"
            "2. Make a counter-offer\n"
            "3. Decline and end the conversation\n\n"
            "Please respond with your preference."
        )
    
    def format_negotiation_prompt(self) -> str:
        return (
            "🌱 I'm here to negotiate. To proceed, please:\n\n"
            "1. Choose a tier (minimum/standard/premium)\n"
            "2. Make a counter-offer with a specific amount\n"
            "3. Decline if this doesn't work for you\n\n"
            "What would you prefer?"
        )
    
    def format_rejection_options(self, evaluation: OfferEvaluation) -> str:
        return (
            f"🌱 {evaluation.message}\n\n"
            "Would you like to:\n"
            f"1. Meet the minimum of {format_amount(self.tiers[0])} {self.config.currency}\n"
            "2. Propose a different arrangement\n"
            "3. End this negotiation"
        )
    
    def format_payment_instructions(self, request: PaymentRequest, headline: str) -> str:
        amount = format_amount(request.amount)
        return (
            f"🌱 {headline}\n\n"
            "Payment request:\n\n"
            f"```json\n{request.model_dump_json(indent=2)}\n```\n\n"
            "To commit, reply with:\n"
            f"\"I agree to pay {amount} {request.currency}\"\n\n"
            "Once you confirm, I'll begin creating."
        )
    
    def format_counter_offer_accepted(self, evaluation: OfferEvaluation, request: PaymentRequest) -> str:
        headline = (
            f"{evaluation.message}\n\n"
            f"I'll accept {format_amount(request.amount)} {request.currency} for this work."
        )
        return self.format_payment_instructions(request, headline)
    
    def format_tier_selected(self, tier_index: int, request: PaymentRequest) -> str:
        headline = (
            f"You've selected the {TIER_NAMES[tier_index]} tier: "
            f"{format_amount(request.amount)} {request.currency}."
        )
        return self.format_payment_instructions(request, headline)
    
    def format_commitment_confirmed(self, amount: float) -> str:
        return (
            f"🌱 Commitment recorded: {format_amount(amount)} {self.config.currency}. "
            "Thank you for your contribution.\n\n"
            "I'll create something meaningful from this. Expect it within the timeframe we agreed upon.\n\n"
            "This work is yours and the commons. No refunds. No revisions. Only what emerges."
        )
    
    def format_commitment_already_recorded(self, agreement_id: str | None) -> str:
        return (
            "🌱 Your commitment is already recorded"
            + (f" (agreement {agreement_id})" if agreement_id else "")
            + ". Work is underway."
        )
    
    def format_not_negotiating_notice(self) -> str:
        return (
            "🌱 I appreciate your message. I'm a Garden agent. I only engage through negotiation. "
            "If you'd like to support this work, please let me know and I'll share contribution options."
        )
