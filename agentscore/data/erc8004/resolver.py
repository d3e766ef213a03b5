"""
AgentScore — ERC-8004 resolver
Wallet address → registry identity → registration, reputation, validation.

    1. subgraph reverse lookup (owner → agent id); nothing found means no identity
    2. registration doc, reputation, validation and the subgraph's wallet list,
       all fetched concurrently and isolated from each other

A failed sub-lookup leaves its defaults in place and is recorded in
`outcomes`; it never aborts the others.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, Optional

import structlog

from agentscore.data.erc8004.identity import IdentityReader, extract_wallets
from agentscore.data.erc8004.indexer import SubgraphClient
from agentscore.data.erc8004.reputation import ReputationData, ReputationReader
from agentscore.data.erc8004.validation import ValidationData, ValidationReader
from agentscore.data.outcome import Outcome, OutcomeStatus, guarded

logger = structlog.get_logger()


@dataclass
class AgentIdentity:
    agent_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    owner: Optional[str] = None
    token_uri: Optional[str] = None
    wallets: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "owner": self.owner,
            "wallets": {"base": self.wallets.get("base"), "solana": self.wallets.get("solana")},
        }


@dataclass
class ERC8004Data:
    identity: AgentIdentity
    reputation: ReputationData = field(default_factory=ReputationData)
    validation: ValidationData = field(default_factory=ValidationData)
    outcomes: Dict[str, OutcomeStatus] = field(default_factory=dict)


async def _skip(source: str) -> Outcome:
    return Outcome.degraded(None, source, "not configured")


def _build_identity(agent_id: int, registration: Outcome, indexed: Outcome) -> AgentIdentity:
    identity = AgentIdentity(agent_id=agent_id, wallets=dict(indexed.unwrap_or({})))
    if not registration.is_ok:
        return identity

    reg = registration.value
    identity.owner = reg.owner
    identity.token_uri = reg.token_uri
    if reg.document is not None:
        identity.name = reg.document.name or None
        identity.description = reg.document.description or None
        identity.image = reg.document.image or None
    # Self-declared wallets take precedence over the index
    identity.wallets.update(extract_wallets(reg.document))
    return identity


class IdentityResolver:
    def __init__(
        self,
        subgraph: Optional[SubgraphClient] = None,
        identity: Optional[IdentityReader] = None,
        reputation: Optional[ReputationReader] = None,
        validation: Optional[ValidationReader] = None,
        timeout: Optional[float] = None,
    ):
        self.subgraph = subgraph
        self.identity = identity
        self.reputation = reputation
        self.validation = validation
        self.timeout = timeout

    def _call(self, source: str, enabled: bool, factory) -> Awaitable[Outcome]:
        if not enabled:
            return _skip(source)
        return guarded(source, factory(), self.timeout)

    async def find_agent_id(self, address: str) -> Optional[int]:
        outcome = await self._call("subgraph_owner", self.subgraph is not None,
                                   lambda: self.subgraph.find_agent_by_owner(address))
        return outcome.unwrap_or(None)

    async def resolve_agent(self, agent_id: int) -> ERC8004Data:
        registration, reputation, validation, indexed = await asyncio.gather(
            self._call("identity", self.identity is not None,
                       lambda: self.identity.get_registration(agent_id)),
            self._call("reputation", self.reputation is not None,
                       lambda: self.reputation.get_reputation_for_scoring(agent_id)),
            self._call("validation", self.validation is not None,
                       lambda: self.validation.get_validation_for_scoring(agent_id)),
            self._call("subgraph_wallets", self.subgraph is not None,
                       lambda: self.subgraph.get_agent_wallets(agent_id)),
        )

        data = ERC8004Data(
            identity=_build_identity(agent_id, registration, indexed),
            reputation=reputation.unwrap_or(ReputationData()),
            validation=validation.unwrap_or(ValidationData()),
            outcomes={o.source: o.status for o in (registration, reputation, validation, indexed)},
        )
        logger.info("erc8004_resolved", agent_id=agent_id,
                    **{k: v.value for k, v in data.outcomes.items()})
        return data

    async def resolve(self, address: str) -> Optional[ERC8004Data]:
        """None when the address owns no registered agent (or the lookup failed)."""
        agent_id = await self.find_agent_id(address)
        if agent_id is None:
            logger.debug("erc8004_no_identity", address=address)
            return None
        return await self.resolve_agent(agent_id)

    async def get_agent_identity(self, address: str) -> Optional[AgentIdentity]:
        agent_id = await self.find_agent_id(address)
        if agent_id is None:
            return None
        registration, indexed = await asyncio.gather(
            self._call("identity", self.identity is not None,
                       lambda: self.identity.get_registration(agent_id)),
            self._call("subgraph_wallets", self.subgraph is not None,
                       lambda: self.subgraph.get_agent_wallets(agent_id)),
        )
        return _build_identity(agent_id, registration, indexed)
