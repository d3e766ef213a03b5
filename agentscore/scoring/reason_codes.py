"""
AgentScore — Reason Codes

Human-readable explanations attached to a score. Codes are emitted by the
factor functions in a fixed order; the registry below is the single place
their wording, impact and category live.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, List, Mapping


class ReasonCode(str, Enum):
    # Negative / neutral
    NO_TRANSACTION_HISTORY = "NO_TRANSACTION_HISTORY"
    LOW_VOLUME             = "LOW_VOLUME"
    FEW_TRANSACTIONS       = "FEW_TRANSACTIONS"
    FEW_BUYERS             = "FEW_BUYERS"
    NO_REPUTATION_DATA     = "NO_REPUTATION_DATA"
    LOW_REPUTATION         = "LOW_REPUTATION"
    NO_VALIDATION          = "NO_VALIDATION"
    FAILED_VALIDATION      = "FAILED_VALIDATION"
    NEW_AGENT              = "NEW_AGENT"
    SINGLE_CHAIN           = "SINGLE_CHAIN"
    INACTIVE_RECENTLY      = "INACTIVE_RECENTLY"

    # Positive
    EXCELLENT_HISTORY      = "EXCELLENT_HISTORY"
    HIGH_VOLUME            = "HIGH_VOLUME"
    HIGH_ACTIVITY          = "HIGH_ACTIVITY"
    DIVERSE_BUYERS         = "DIVERSE_BUYERS"
    HIGH_REPUTATION        = "HIGH_REPUTATION"
    VALIDATED              = "VALIDATED"
    ESTABLISHED_AGENT      = "ESTABLISHED_AGENT"
    MULTI_CHAIN            = "MULTI_CHAIN"


class Impact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL  = "neutral"


class Category(str, Enum):
    TRANSACTION = "transaction"
    REPUTATION  = "reputation"
    VALIDATION  = "validation"
    LONGEVITY   = "longevity"
    CHAIN       = "chain"


@dataclass(frozen=True)
class ReasonCodeInfo:
    code: ReasonCode
    label: str
    description: str
    impact: Impact
    category: Category

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "label": self.label,
            "description": self.description,
            "impact": self.impact.value,
            "category": self.category.value,
        }


def _info(code: ReasonCode, label: str, description: str, impact: Impact, category: Category) -> ReasonCodeInfo:
    return ReasonCodeInfo(code, label, description, impact, category)


_RC = ReasonCode
_NEG, _POS, _NEU = Impact.NEGATIVE, Impact.POSITIVE, Impact.NEUTRAL

REASON_CODES: Mapping[ReasonCode, ReasonCodeInfo] = MappingProxyType({
    info.code: info for info in (
        _info(_RC.NO_TRANSACTION_HISTORY, "No Transaction History",
              "No x402 payments have been received by this agent.", _NEG, Category.TRANSACTION),
        _info(_RC.LOW_VOLUME, "Low Transaction Volume",
              "Combined payment volume is under $100.", _NEG, Category.TRANSACTION),
        _info(_RC.FEW_TRANSACTIONS, "Limited Transactions",
              "Fewer than 10 payments recorded across chains.", _NEG, Category.TRANSACTION),
        _info(_RC.FEW_BUYERS, "Limited Buyer Base",
              "Five or fewer distinct buyers.", _NEG, Category.TRANSACTION),
        _info(_RC.NO_REPUTATION_DATA, "No Reputation Feedback",
              "The reputation registry holds no feedback for this agent.", _NEG, Category.REPUTATION),
        _info(_RC.LOW_REPUTATION, "Below Average Reputation",
              "Average feedback score is under 70.", _NEG, Category.REPUTATION),
        _info(_RC.NO_VALIDATION, "Not Validated",
              "No third-party validation recorded in the validation registry.", _NEU, Category.VALIDATION),
        _info(_RC.FAILED_VALIDATION, "Failed Validation",
              "At least one validation response was below the pass threshold.", _NEG, Category.VALIDATION),
        _info(_RC.NEW_AGENT, "New Agent",
              "First payment was received less than 30 days ago.", _NEU, Category.LONGEVITY),
        _info(_RC.SINGLE_CHAIN, "Single Chain Activity",
              "Payments seen on only one of Base or Solana.", _NEU, Category.CHAIN),
        _info(_RC.INACTIVE_RECENTLY, "Recent Inactivity",
              "No payments in the last 30 days.", _NEG, Category.TRANSACTION),
        _info(_RC.EXCELLENT_HISTORY, "Excellent Transaction History",
              "Combined payment volume is $100,000 or more.", _POS, Category.TRANSACTION),
        _info(_RC.HIGH_VOLUME, "High Transaction Volume",
              "Combined payment volume between $10,000 and $100,000.", _POS, Category.TRANSACTION),
        _info(_RC.HIGH_ACTIVITY, "High Activity",
              "1,000 or more payments recorded.", _POS, Category.TRANSACTION),
        _info(_RC.DIVERSE_BUYERS, "Diverse Buyer Base",
              "More than 20 distinct buyers.", _POS, Category.TRANSACTION),
        _info(_RC.HIGH_REPUTATION, "Excellent Reputation",
              "Average feedback score of 90 or above.", _POS, Category.REPUTATION),
        _info(_RC.VALIDATED, "Validated",
              "Passed third-party validation.", _POS, Category.VALIDATION),
        _info(_RC.ESTABLISHED_AGENT, "Established Agent",
              "Receiving payments for 180 days or more.", _POS, Category.LONGEVITY),
        _info(_RC.MULTI_CHAIN, "Multi-Chain Presence",
              "Payments seen on both Base and Solana.", _POS, Category.CHAIN),
    )
})

# Display order used by sort_reason_codes
_IMPACT_ORDER = {Impact.NEGATIVE: 0, Impact.POSITIVE: 1, Impact.NEUTRAL: 2}


def get_reason_code_info(code: ReasonCode) -> ReasonCodeInfo:
    return REASON_CODES[ReasonCode(code)]


def filter_by_impact(codes: Iterable[ReasonCode], impact: Impact) -> List[ReasonCode]:
    impact = Impact(impact)
    return [c for c in codes if REASON_CODES[ReasonCode(c)].impact is impact]


def sort_reason_codes(codes: Iterable[ReasonCode]) -> List[ReasonCode]:
    """Negatives first, then positives, then neutral. Stable within a group."""
    return sorted(codes, key=lambda c: _IMPACT_ORDER[REASON_CODES[ReasonCode(c)].impact])
