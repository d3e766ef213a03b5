"""
AgentScore — Scoring Models

AgentData is the canonical per-agent record the aggregator produces and the
calculator consumes. Everything defaults to zero/None so a record is always
fully populated, even when every upstream source failed.

Score range: 300 (floor) + up to 550 factor points = 850.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from agentscore.scoring.reason_codes import ReasonCode

MIN_SCORE = 300
MAX_SCORE = 850


# ── Enums ─────────────────────────────────────────

class ScoreGrade(str, Enum):
    EXCELLENT = "Excellent"
    VERY_GOOD = "Very Good"
    GOOD      = "Good"
    FAIR      = "Fair"
    POOR      = "Poor"


# ── Canonical Record ──────────────────────────────

@dataclass
class AgentData:
    # Identity
    erc8004_agent_id: Optional[int] = None
    base_wallet: Optional[str] = None
    solana_wallet: Optional[str] = None
    name: Optional[str] = None

    # x402 payments received on Base
    base_tx_count: int = 0
    base_volume_usd: float = 0.0
    base_unique_buyers: int = 0
    base_first_tx_at: Optional[datetime] = None
    base_last_tx_at: Optional[datetime] = None

    # x402 payments received on Solana
    solana_tx_count: int = 0
    solana_volume_usd: float = 0.0
    solana_unique_buyers: int = 0
    solana_first_tx_at: Optional[datetime] = None
    solana_last_tx_at: Optional[datetime] = None

    # ERC-8004 reputation registry
    reputation_count: int = 0
    reputation_avg_score: float = 0.0     # 0-100

    # ERC-8004 validation registry
    validation_count: int = 0
    validation_passed: int = 0
    validation_failed: int = 0

    @property
    def total_volume_usd(self) -> float:
        return self.base_volume_usd + self.solana_volume_usd

    @property
    def total_tx_count(self) -> int:
        return self.base_tx_count + self.solana_tx_count

    @property
    def total_unique_buyers(self) -> int:
        return self.base_unique_buyers + self.solana_unique_buyers

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = value.isoformat() if isinstance(value, datetime) else value
        return out


# ── Score Output ──────────────────────────────────

@dataclass(frozen=True)
class FactorScore:
    score: int
    max_score: int
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def percentage(self) -> float:
        if self.max_score == 0:
            return 0.0
        return self.score / self.max_score * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "max_score": self.max_score,
            "percentage": round(self.percentage, 1),
            "details": {
                k: (v.isoformat() if isinstance(v, datetime) else v)
                for k, v in self.details.items()
            },
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    transaction_history: FactorScore
    activity_level: FactorScore
    buyer_diversity: FactorScore
    reputation: FactorScore
    validation: FactorScore
    longevity: FactorScore
    cross_chain: FactorScore

    def factors(self) -> List[Tuple[str, FactorScore]]:
        """(name, factor) pairs in evaluation order."""
        return [(f.name, getattr(self, f.name)) for f in fields(self)]

    @property
    def total(self) -> int:
        return sum(factor.score for _, factor in self.factors())

    def to_dict(self) -> Dict[str, Any]:
        return {name: factor.to_dict() for name, factor in self.factors()}


@dataclass(frozen=True)
class ScoreResult:
    """
    The final AgentScore. Built fresh on every scoring call, never mutated.
    Caching or persisting results belongs to the caller.
    """
    score: int                              # 300-850
    grade: ScoreGrade
    breakdown: ScoreBreakdown
    reason_codes: Tuple[ReasonCode, ...]    # emission order
    calculated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "grade": self.grade.value,
            "breakdown": self.breakdown.to_dict(),
            "reason_codes": [c.value for c in self.reason_codes],
            "calculated_at": self.calculated_at.isoformat(),
        }
