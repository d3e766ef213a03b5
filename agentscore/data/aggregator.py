"""
AgentScore — Data Aggregator
One AgentData per agent, from every source that answers.

    caller address ──┬── ERC-8004 resolver (identity → reputation + validation)
                     └── hybrid x402 reader (the caller's chain)
                              │
              identity reveals a wallet on the other chain?
                              └── hybrid x402 reader (that chain)

Best-effort: the returned record is always fully populated with defaults,
and nothing here raises because a source is down.
"""
import asyncio
from typing import Optional

import structlog

from agentscore.data.addresses import detect_chain
from agentscore.data.erc8004.resolver import ERC8004Data, IdentityResolver
from agentscore.data.outcome import guarded
from agentscore.data.x402.hybrid_reader import HybridReader
from agentscore.data.x402.types import Chain, ChainMetrics
from agentscore.scoring.calculator import create_empty_agent_data
from agentscore.scoring.models import AgentData

logger = structlog.get_logger()


def _apply_metrics(data: AgentData, m: Optional[ChainMetrics]) -> None:
    if m is None:
        return
    if m.chain is Chain.BASE:
        data.base_tx_count = m.transaction_count
        data.base_volume_usd = m.total_volume_usd
        data.base_unique_buyers = m.unique_buyers
        data.base_first_tx_at = m.first_transaction_at
        data.base_last_tx_at = m.last_transaction_at
    else:
        data.solana_tx_count = m.transaction_count
        data.solana_volume_usd = m.total_volume_usd
        data.solana_unique_buyers = m.unique_buyers
        data.solana_first_tx_at = m.first_transaction_at
        data.solana_last_tx_at = m.last_transaction_at


def _apply_erc8004(data: AgentData, erc: ERC8004Data) -> None:
    data.erc8004_agent_id = erc.identity.agent_id
    data.name = erc.identity.name

    rep = erc.reputation
    data.reputation_count = max(0, rep.feedback_count)
    avg = rep.average_score if rep.feedback_count else 0.0
    if not 0 <= avg <= 100:
        logger.warning("reputation_average_out_of_range", agent_id=data.erc8004_agent_id, average=avg)
        avg = min(100.0, max(0.0, avg))
    data.reputation_avg_score = avg

    val = erc.validation
    data.validation_count = max(0, val.total_validations)
    data.validation_passed = val.passed
    data.validation_failed = val.failed


class DataAggregator:
    def __init__(self, resolver: IdentityResolver, reader: HybridReader):
        self.resolver = resolver
        self.reader = reader

    async def aggregate(self, address: str, chain: Optional[str] = None) -> AgentData:
        chain = chain or detect_chain(address)
        if chain not in (Chain.BASE.value, Chain.SOLANA.value):
            logger.warning("aggregate_unknown_chain", address=address, chain=chain)
            return create_empty_agent_data()

        queried = Chain(chain)
        data = create_empty_agent_data()
        if queried is Chain.BASE:
            data.base_wallet = address
        else:
            data.solana_wallet = address

        erc, known = await asyncio.gather(
            guarded("erc8004", self.resolver.resolve(address)),
            guarded("x402", self.reader.get_agent_metrics(address, queried)),
        )
        _apply_metrics(data, known.unwrap_or(None))

        identity = erc.unwrap_or(None)
        if identity is not None:
            _apply_erc8004(data, identity)

            # Fold in a wallet on the chain the caller didn't give us
            other = Chain.SOLANA if queried is Chain.BASE else Chain.BASE
            linked = identity.identity.wallets.get(other.value)
            if linked:
                if other is Chain.BASE:
                    data.base_wallet = linked
                else:
                    data.solana_wallet = linked
                extra = await guarded("x402", self.reader.get_agent_metrics(linked, other))
                _apply_metrics(data, extra.unwrap_or(None))

        logger.info(
            "agent_aggregated",
            address=address,
            chain=queried.value,
            agent_id=data.erc8004_agent_id,
            base_tx=data.base_tx_count,
            solana_tx=data.solana_tx_count,
            reputation_count=data.reputation_count,
            validations=data.validation_count,
        )
        return data
