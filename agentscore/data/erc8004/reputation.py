"""
AgentScore — ERC-8004 reputation reader

Scoring needs the registry summary (count + fixed-point average) over every
client that left feedback. The per-tag metrics are for reports: averages
are taken exactly on FixedPoint values and converted to float once.

    actual = summaryValue / 10^summaryValueDecimals
    e.g. 9977 @ 2 → 99.77
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List

import structlog

from agentscore.data.erc8004.registries import FeedbackEntry, ReputationRegistry, ReputationSummary
from agentscore.scoring.value_parser import FixedPoint, StandardTag, Tag, fixed_mean, fixed_sum

logger = structlog.get_logger()

# Tags reported by get_reputation_metrics. Read `total` for revenues, `average` for the rest.
METRIC_TAGS = (
    StandardTag.STARRED,
    StandardTag.UPTIME,
    StandardTag.SUCCESS_RATE,
    StandardTag.REVENUES,
    StandardTag.TRADING_YIELD,
)


@dataclass
class ReputationData:
    feedback_count: int = 0
    summary: FixedPoint = FixedPoint(0, 0)
    feedback: List[FeedbackEntry] = field(default_factory=list)

    @property
    def average_score(self) -> float:
        return self.summary.to_float()


@dataclass
class TagMetric:
    tag: str
    count: int = 0
    average: float = 0.0
    total: float = 0.0
    entries: List[FeedbackEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, float]:
        return {"count": self.count, "average": self.average, "total": self.total}


@dataclass
class ReputationMetrics:
    tags: Dict[str, TagMetric] = field(default_factory=dict)
    total_feedback_count: int = 0

    def to_dict(self) -> Dict[str, object]:
        out: Dict[str, object] = {name: m.to_dict() for name, m in self.tags.items()}
        out["total_feedback_count"] = self.total_feedback_count
        return out


def tag_metric(feedback: List[FeedbackEntry], tag: str) -> TagMetric:
    """Non-revoked entries whose tag1 matches `tag` (case-insensitive)."""
    wanted = Tag(tag)
    entries = [f for f in feedback if not f.is_revoked and f.tag1.matches(wanted)]
    if not entries:
        return TagMetric(tag=tag)
    values = [e.value for e in entries]
    return TagMetric(
        tag=tag,
        count=len(entries),
        average=fixed_mean(values),
        total=fixed_sum(values).to_float(),
        entries=entries,
    )


class ReputationReader:
    def __init__(self, registry: ReputationRegistry):
        self.registry = registry

    async def get_summary(self, agent_id: int, clients: List[str],
                          tag1: str = "", tag2: str = "") -> ReputationSummary:
        return await self.registry.get_summary(agent_id, clients, tag1, tag2)

    async def get_all_feedback(self, agent_id: int, include_revoked: bool = False) -> List[FeedbackEntry]:
        clients = await self.registry.get_clients(agent_id)
        if not clients:
            return []
        feedback = await self.registry.read_all_feedback(agent_id, clients, "", "", include_revoked)
        if include_revoked:
            return feedback
        return [f for f in feedback if not f.is_revoked]

    async def get_reputation_for_scoring(self, agent_id: int) -> ReputationData:
        """
        Summary over every client, plus the non-revoked feedback itself.
        Registry errors propagate; the resolver decides what to do with them.
        """
        clients = await self.registry.get_clients(agent_id)
        if not clients:
            return ReputationData()

        summary, feedback = await asyncio.gather(
            self.registry.get_summary(agent_id, clients),
            self.registry.read_all_feedback(agent_id, clients, "", "", False),
        )
        return ReputationData(
            feedback_count=summary.count,
            summary=summary.summary,
            feedback=[f for f in feedback if not f.is_revoked],
        )

    async def get_reputation_by_tag(self, agent_id: int, tag: str) -> TagMetric:
        return tag_metric(await self.get_all_feedback(agent_id), tag)

    async def get_reputation_metrics(self, agent_id: int) -> ReputationMetrics:
        feedback = await self.get_all_feedback(agent_id)
        return ReputationMetrics(
            tags={t.value: tag_metric(feedback, t.value) for t in METRIC_TAGS},
            total_feedback_count=len(feedback),
        )
