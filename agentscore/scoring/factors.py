"""
AgentScore — Scoring Factors

Seven independent, pure factor functions. Each takes the AgentData and the
reason-code accumulator for this scoring run and returns a FactorScore.

    Transaction History   (max 150)  — combined USD volume
    Activity Level        (max 100)  — combined payment count, recency
    Buyer Diversity       (max  75)  — distinct payers
    Reputation            (max 100)  — ERC-8004 feedback average + volume bonus
    Validation            (max  50)  — ERC-8004 third-party validations
    Longevity             (max  50)  — days since first payment
    Cross-Chain           (max  25)  — Base and Solana both active
    ─────────────────────────────────
    Total possible:          550

Breakpoints include their lower bound. Codes are appended in evaluation order.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from agentscore.scoring.models import AgentData, FactorScore
from agentscore.scoring.reason_codes import ReasonCode

INACTIVITY_WINDOW = timedelta(days=30)
INACTIVITY_PENALTY = 15

FactorFn = Callable[[AgentData, List[ReasonCode], Optional[datetime]], FactorScore]


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


# ── Factor 1: Transaction History ─────────────────

TRANSACTION_HISTORY_MAX = 150


def score_transaction_history(agent: AgentData, codes: List[ReasonCode],
                              now: Optional[datetime] = None) -> FactorScore:
    volume = agent.total_volume_usd

    if volume <= 0:
        score = 0
        codes.append(ReasonCode.NO_TRANSACTION_HISTORY)
    elif volume < 100:
        score = 10
        codes.append(ReasonCode.LOW_VOLUME)
    elif volume < 1_000:
        score = 30
    elif volume < 10_000:
        score = 60
    elif volume < 100_000:
        score = 100
        codes.append(ReasonCode.HIGH_VOLUME)
    else:
        score = 150
        codes.append(ReasonCode.EXCELLENT_HISTORY)

    return FactorScore(score, TRANSACTION_HISTORY_MAX, {
        "total_volume_usd": volume,
        "base_volume_usd": agent.base_volume_usd,
        "solana_volume_usd": agent.solana_volume_usd,
    })


# ── Factor 2: Activity Level ──────────────────────

ACTIVITY_LEVEL_MAX = 100


def score_activity_level(agent: AgentData, codes: List[ReasonCode],
                         now: Optional[datetime] = None) -> FactorScore:
    count = agent.total_tx_count

    if count == 0:
        score = 0
    elif count < 10:
        score = 10
        codes.append(ReasonCode.FEW_TRANSACTIONS)
    elif count < 100:
        score = 25
    elif count < 1_000:
        score = 50
    elif count < 10_000:
        score = 75
        codes.append(ReasonCode.HIGH_ACTIVITY)
    else:
        score = 100
        codes.append(ReasonCode.HIGH_ACTIVITY)

    last_dates = [d for d in (agent.base_last_tx_at, agent.solana_last_tx_at) if d is not None]
    last_tx = max(last_dates) if last_dates else None

    if last_tx is not None and last_tx < _now(now) - INACTIVITY_WINDOW:
        codes.append(ReasonCode.INACTIVE_RECENTLY)
        score = max(0, score - INACTIVITY_PENALTY)

    return FactorScore(score, ACTIVITY_LEVEL_MAX, {
        "total_tx_count": count,
        "base_tx_count": agent.base_tx_count,
        "solana_tx_count": agent.solana_tx_count,
        "last_transaction_at": last_tx,
    })


# ── Factor 3: Buyer Diversity ─────────────────────

BUYER_DIVERSITY_MAX = 75


def score_buyer_diversity(agent: AgentData, codes: List[ReasonCode],
                          now: Optional[datetime] = None) -> FactorScore:
    buyers = agent.total_unique_buyers

    if buyers == 0:
        score = 0
    elif buyers <= 5:
        score = 15
        codes.append(ReasonCode.FEW_BUYERS)
    elif buyers <= 20:
        score = 35
    elif buyers <= 100:
        score = 55
        codes.append(ReasonCode.DIVERSE_BUYERS)
    else:
        score = 75
        codes.append(ReasonCode.DIVERSE_BUYERS)

    return FactorScore(score, BUYER_DIVERSITY_MAX, {
        "total_unique_buyers": buyers,
        "base_unique_buyers": agent.base_unique_buyers,
        "solana_unique_buyers": agent.solana_unique_buyers,
    })


# ── Factor 4: Reputation ──────────────────────────

REPUTATION_MAX = 100


def score_reputation(agent: AgentData, codes: List[ReasonCode],
                     now: Optional[datetime] = None) -> FactorScore:
    count = agent.reputation_count
    avg = agent.reputation_avg_score

    if count == 0:
        score = 0
        codes.append(ReasonCode.NO_REPUTATION_DATA)
    else:
        if avg < 50:
            score = 10
            codes.append(ReasonCode.LOW_REPUTATION)
        elif avg < 70:
            score = 30
            codes.append(ReasonCode.LOW_REPUTATION)
        elif avg < 80:
            score = 50
        elif avg < 90:
            score = 75
        else:
            score = 100
            codes.append(ReasonCode.HIGH_REPUTATION)

        # Feedback volume bonus
        if count >= 10:
            score = min(REPUTATION_MAX, score + 5)
        if count >= 50:
            score = min(REPUTATION_MAX, score + 5)

    return FactorScore(score, REPUTATION_MAX, {
        "feedback_count": count,
        "average_score": avg,
    })


# ── Factor 5: Validation ──────────────────────────

VALIDATION_MAX = 50


def score_validation(agent: AgentData, codes: List[ReasonCode],
                     now: Optional[datetime] = None) -> FactorScore:
    score = 0

    if agent.validation_count == 0:
        codes.append(ReasonCode.NO_VALIDATION)
    elif agent.validation_failed > 0:
        codes.append(ReasonCode.FAILED_VALIDATION)
    elif agent.validation_passed == 1:
        score = 25
        codes.append(ReasonCode.VALIDATED)
    elif agent.validation_passed > 1:
        score = 50
        codes.append(ReasonCode.VALIDATED)

    return FactorScore(score, VALIDATION_MAX, {
        "total_validations": agent.validation_count,
        "passed": agent.validation_passed,
        "failed": agent.validation_failed,
    })


# ── Factor 6: Longevity ───────────────────────────

LONGEVITY_MAX = 50


def score_longevity(agent: AgentData, codes: List[ReasonCode],
                    now: Optional[datetime] = None) -> FactorScore:
    first_dates = [d for d in (agent.base_first_tx_at, agent.solana_first_tx_at) if d is not None]

    # No payment history at all: nothing to say about age
    if not first_dates:
        return FactorScore(0, LONGEVITY_MAX, {"days_since_first": 0, "first_transaction_at": None})

    first_tx = min(first_dates)
    days = (_now(now) - first_tx).days

    if days < 7:
        score = 0
        codes.append(ReasonCode.NEW_AGENT)
    elif days < 30:
        score = 15
        codes.append(ReasonCode.NEW_AGENT)
    elif days < 90:
        score = 30
    elif days < 180:
        score = 40
    else:
        score = 50
        codes.append(ReasonCode.ESTABLISHED_AGENT)

    return FactorScore(score, LONGEVITY_MAX, {
        "days_since_first": days,
        "first_transaction_at": first_tx,
    })


# ── Factor 7: Cross-Chain ─────────────────────────

CROSS_CHAIN_MAX = 25


def score_cross_chain(agent: AgentData, codes: List[ReasonCode],
                      now: Optional[datetime] = None) -> FactorScore:
    on_base = agent.base_tx_count > 0
    on_solana = agent.solana_tx_count > 0

    score = 0
    if on_base and on_solana:
        score = 25
        codes.append(ReasonCode.MULTI_CHAIN)
    elif on_base or on_solana:
        codes.append(ReasonCode.SINGLE_CHAIN)

    return FactorScore(score, CROSS_CHAIN_MAX, {
        "active_on_base": on_base,
        "active_on_solana": on_solana,
        "chains_active": [c for c, active in (("base", on_base), ("solana", on_solana)) if active],
    })


# Evaluation order. Reason codes accumulate in exactly this order.
FACTORS = (
    ("transaction_history", score_transaction_history),
    ("activity_level", score_activity_level),
    ("buyer_diversity", score_buyer_diversity),
    ("reputation", score_reputation),
    ("validation", score_validation),
    ("longevity", score_longevity),
    ("cross_chain", score_cross_chain),
)
