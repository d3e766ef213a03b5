"""
AgentScore — Score Calculator

    score = clamp(300 + Σ factor scores, 300, 850)

Pure and deterministic apart from the calculated_at timestamp. The advisory
validator is separate and never called from calculate_score: scoring is
defined for any AgentData, including the all-zero record.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from agentscore.scoring.factors import FACTORS
from agentscore.scoring.models import (
    AgentData, MAX_SCORE, MIN_SCORE, ScoreBreakdown, ScoreGrade, ScoreResult,
)
from agentscore.scoring.reason_codes import ReasonCode

# Lower bound of each grade, best first
GRADE_THRESHOLDS = (
    (800, ScoreGrade.EXCELLENT),
    (740, ScoreGrade.VERY_GOOD),
    (670, ScoreGrade.GOOD),
    (580, ScoreGrade.FAIR),
)


def get_grade(score: float) -> ScoreGrade:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return ScoreGrade.POOR


def calculate_score(agent: AgentData, now: Optional[datetime] = None) -> ScoreResult:
    """
    Run the seven factors in order and combine them.

    `now` pins the clock for the recency and longevity factors; it defaults
    to the current UTC time and is also used as calculated_at.
    """
    now = now or datetime.now(timezone.utc)
    codes: List[ReasonCode] = []

    results = {name: factor(agent, codes, now) for name, factor in FACTORS}
    breakdown = ScoreBreakdown(**results)

    raw = MIN_SCORE + breakdown.total
    final = min(MAX_SCORE, max(MIN_SCORE, raw))

    return ScoreResult(
        score=int(round(final)),
        grade=get_grade(final),
        breakdown=breakdown,
        reason_codes=tuple(codes),
        calculated_at=now,
    )


def validate_agent_data(agent: AgentData) -> List[str]:
    """Structural sanity checks. Returns violations; empty means valid."""
    errors: List[str] = []

    if not agent.base_wallet and not agent.solana_wallet:
        errors.append("Agent must have at least one wallet address")

    for name in (
        "base_tx_count", "solana_tx_count",
        "base_volume_usd", "solana_volume_usd",
        "base_unique_buyers", "solana_unique_buyers",
        "reputation_count",
        "validation_count", "validation_passed", "validation_failed",
    ):
        if getattr(agent, name) < 0:
            errors.append(f"{name} cannot be negative")

    if not 0 <= agent.reputation_avg_score <= 100:
        errors.append("reputation_avg_score must be between 0 and 100")

    return errors


def create_empty_agent_data(base_wallet: Optional[str] = None,
                            solana_wallet: Optional[str] = None) -> AgentData:
    return AgentData(base_wallet=base_wallet, solana_wallet=solana_wallet)
