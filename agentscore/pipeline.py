"""
AgentScore — Scoring Pipeline

Every score request flows through here:

    address → detect chain → DataAggregator (identity + x402, both chains) → calculate_score

ScoringServices owns every collaborator for one configuration: the httpx
clients, the ledger scanners, the CDP client, the resolver cache and the
ERC-8004 readers. Nothing is a module-level singleton; build one per
process (or per test) and close it when done.

Dependencies: every source is optional.
    No CDP credentials       → ledger scan only.
    No registry handles      → no identity, reputation or validation.
    Ledger RPC down          → empty metrics, still a score.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import httpx
import structlog

from agentscore.config import Settings, get_settings
from agentscore.data.addresses import detect_chain
from agentscore.data.aggregator import DataAggregator
from agentscore.data.erc8004.identity import IdentityReader
from agentscore.data.erc8004.indexer import SubgraphClient
from agentscore.data.erc8004.registries import Registries
from agentscore.data.erc8004.reputation import ReputationReader
from agentscore.data.erc8004.resolver import IdentityResolver
from agentscore.data.erc8004.validation import ValidationReader
from agentscore.data.x402.base_reader import BaseLedgerScanner
from agentscore.data.x402.cache import TTLCache
from agentscore.data.x402.cdp_client import CDPClient
from agentscore.data.x402.hybrid_reader import HybridReader
from agentscore.data.x402.ledger import EvmRpcClient, SolanaRpcClient
from agentscore.data.x402.solana_reader import SolanaLedgerScanner
from agentscore.scoring.calculator import calculate_score
from agentscore.scoring.models import AgentData, ScoreResult

logger = structlog.get_logger()

USER_AGENT = "AgentScore/1.0"


@dataclass
class ScoringServices:
    aggregator: DataAggregator
    resolver: IdentityResolver
    x402: HybridReader
    clients: List[httpx.AsyncClient] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None,
                      registries: Optional[Registries] = None) -> "ScoringServices":
        settings = settings or get_settings()
        registries = registries or Registries()
        timeout = httpx.Timeout(settings.HTTP_TIMEOUT)

        http = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            timeout=timeout,
        )
        clients = [http]

        cdp = None
        if settings.cdp_enabled:
            cdp_http = httpx.AsyncClient(
                base_url=settings.CDP_BASE_URL.rstrip("/"),
                headers={"User-Agent": USER_AGENT},
                timeout=timeout,
            )
            clients.append(cdp_http)
            cdp = CDPClient(settings.CDP_API_KEY, settings.CDP_API_SECRET, cdp_http)
        elif settings.is_production:
            logger.warning("cdp_credentials_missing", fallback="ledger_scan")

        x402 = HybridReader(
            base_scanner=BaseLedgerScanner(EvmRpcClient(settings.BASE_RPC_URL, http)),
            solana_scanner=SolanaLedgerScanner(SolanaRpcClient(settings.SOLANA_RPC_URL, http)),
            cdp=cdp,
            cache=TTLCache(ttl=settings.X402_CACHE_TTL),
            coalesce=settings.X402_COALESCE_INFLIGHT,
        )

        resolver = IdentityResolver(
            subgraph=SubgraphClient(settings.SUBGRAPH_URL, http),
            identity=(IdentityReader(registries.identity, http,
                                     ipfs_gateway=settings.IPFS_GATEWAY,
                                     arweave_gateway=settings.ARWEAVE_GATEWAY)
                      if registries.identity is not None else None),
            reputation=ReputationReader(registries.reputation) if registries.reputation is not None else None,
            validation=ValidationReader(registries.validation) if registries.validation is not None else None,
        )

        logger.info(
            "scoring_services_ready",
            environment=settings.ENVIRONMENT,
            network=settings.ERC8004_NETWORK,
            cdp_enabled=cdp is not None,
            cache_ttl=settings.X402_CACHE_TTL,
            coalesce=settings.X402_COALESCE_INFLIGHT,
        )
        return cls(
            aggregator=DataAggregator(resolver, x402),
            resolver=resolver,
            x402=x402,
            clients=clients,
        )

    async def close(self):
        for client in self.clients:
            await client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()


async def score_agent(address: str, chain: Optional[str] = None,
                      services: Optional[ScoringServices] = None) -> Tuple[AgentData, ScoreResult]:
    """
    Aggregate and score one agent.

    `chain` is detected from the address format when omitted. Without
    `services`, a throwaway ScoringServices is built from the environment
    and closed afterwards (its cache goes with it).
    """
    chain = chain or detect_chain(address)

    if services is None:
        async with ScoringServices.from_settings() as owned:
            return await _score(owned, address, chain)
    return await _score(services, address, chain)


async def _score(services: ScoringServices, address: str, chain: str) -> Tuple[AgentData, ScoreResult]:
    data = await services.aggregator.aggregate(address, chain)
    result = calculate_score(data)
    logger.info(
        "agent_scored",
        address=address,
        chain=chain,
        score=result.score,
        grade=result.grade.value,
        reason_codes=[c.value for c in result.reason_codes],
    )
    return data, result
