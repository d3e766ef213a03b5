"""
AgentScore — ERC-8004 registry read capability

The three registries (identity, reputation, validation) are consumed through
these protocols. Contract bindings live outside this package; the readers
only need the calls listed here, already decoded into the record types below.

Feedback values use the v2 encoding: a signed int128 `value` with uint8
`valueDecimals`, carried here as a FixedPoint.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol

from agentscore.scoring.value_parser import FixedPoint, Tag, parse_tagged_value


# ── Records ───────────────────────────────────────

@dataclass(frozen=True)
class ReputationSummary:
    count: int = 0
    summary: FixedPoint = FixedPoint(0, 0)


@dataclass(frozen=True)
class FeedbackEntry:
    client_address: str
    value: FixedPoint
    tag1: Tag = Tag("")
    tag2: Tag = Tag("")
    is_revoked: bool = False
    feedback_index: int = 0

    @property
    def human_value(self) -> float:
        return self.value.to_float()

    @property
    def display_value(self) -> str:
        return parse_tagged_value(self.value.value, self.value.decimals, self.tag1).display_value

    @property
    def unit(self) -> str:
        return parse_tagged_value(self.value.value, self.value.decimals, self.tag1).unit

    def to_dict(self) -> dict:
        return {
            "client_address": self.client_address,
            "value": str(self.value.value),
            "value_decimals": self.value.decimals,
            "tag1": self.tag1.name,
            "tag2": self.tag2.name,
            "is_revoked": self.is_revoked,
            "human_value": self.human_value,
            "display_value": self.display_value,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class ValidationSummary:
    count: int = 0
    average_response: int = 0


@dataclass(frozen=True)
class ValidationStatus:
    request_hash: str
    validator_address: str
    agent_id: int
    response: int               # 0-100
    tag: Tag
    last_update: datetime


# ── Protocols ─────────────────────────────────────

class IdentityRegistry(Protocol):
    async def owner_of(self, agent_id: int) -> str: ...

    async def token_uri(self, agent_id: int) -> str: ...

    async def get_metadata(self, agent_id: int, key: str) -> Optional[bytes]: ...


class ReputationRegistry(Protocol):
    async def get_clients(self, agent_id: int) -> List[str]: ...

    async def get_summary(self, agent_id: int, client_addresses: List[str],
                          tag1: str = "", tag2: str = "") -> ReputationSummary: ...

    async def read_all_feedback(self, agent_id: int, client_addresses: List[str],
                                tag1: str = "", tag2: str = "",
                                include_revoked: bool = False) -> List[FeedbackEntry]: ...


class ValidationRegistry(Protocol):
    async def get_summary(self, agent_id: int, validator_addresses: List[str],
                          tag: Tag) -> ValidationSummary: ...

    async def get_agent_validations(self, agent_id: int) -> List[str]: ...

    async def get_validation_status(self, request_hash: str) -> Optional[ValidationStatus]: ...


@dataclass
class Registries:
    """The three registry handles for one network. Any may be absent."""
    identity: Optional[IdentityRegistry] = None
    reputation: Optional[ReputationRegistry] = None
    validation: Optional[ValidationRegistry] = None
