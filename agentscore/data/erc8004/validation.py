"""
AgentScore — ERC-8004 validation reader

Validators answer with a 0-100 response. PASS_THRESHOLD is our policy, not
something the registry defines: responses at or above it count as passed.
The total comes from the registry summary, so it can exceed passed + failed
when some status lookups fail.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from agentscore.data.erc8004.registries import ValidationRegistry, ValidationStatus
from agentscore.scoring.value_parser import Tag

logger = structlog.get_logger()

PASS_THRESHOLD = 70


@dataclass
class ValidationData:
    total_validations: int = 0
    passed: int = 0
    failed: int = 0
    average_response: int = 0
    validations: List[ValidationStatus] = field(default_factory=list)


class ValidationReader:
    def __init__(self, registry: ValidationRegistry, pass_threshold: int = PASS_THRESHOLD):
        self.registry = registry
        self.pass_threshold = pass_threshold

    async def _status(self, request_hash: str) -> Optional[ValidationStatus]:
        try:
            return await self.registry.get_validation_status(request_hash)
        except Exception as e:
            logger.warning("validation_status_failed", request_hash=request_hash, error=str(e))
            return None

    async def get_all_validations(self, agent_id: int) -> List[ValidationStatus]:
        hashes = await self.registry.get_agent_validations(agent_id)
        statuses = await asyncio.gather(*(self._status(h) for h in hashes))
        return [s for s in statuses if s is not None]

    async def get_validation_for_scoring(self, agent_id: int, tag: str = "") -> ValidationData:
        summary, validations = await asyncio.gather(
            self.registry.get_summary(agent_id, [], Tag(tag)),
            self.get_all_validations(agent_id),
        )
        passed = sum(1 for v in validations if v.response >= self.pass_threshold)
        return ValidationData(
            total_validations=summary.count,
            passed=passed,
            failed=len(validations) - passed,
            average_response=summary.average_response,
            validations=validations,
        )
