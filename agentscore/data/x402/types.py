"""
AgentScore — x402 payment types
Shared by the metrics API client, both ledger scanners and the hybrid reader.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional


class Chain(str, Enum):
    BASE   = "base"
    SOLANA = "solana"


# CAIP-2 identifiers
X402_CHAINS: Dict[str, str] = {
    "base": "eip155:8453",
    "baseSepolia": "eip155:84532",
    "solana": "solana",
    "solanaDevnet": "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1",
}

USDC: Dict[Chain, str] = {
    Chain.BASE: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    Chain.SOLANA: "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
}
USDC_DECIMALS = 6


@dataclass(frozen=True)
class X402Transaction:
    tx_hash: str
    chain: Chain
    buyer_address: str
    seller_address: str
    amount_raw: str
    amount_usd: float
    asset: str
    timestamp: datetime
    block_number: int = 0
    facilitator_address: str = ""
    asset_symbol: str = "USDC"
    resource_url: Optional[str] = None


@dataclass(frozen=True)
class ChainMetrics:
    """Aggregate x402 receipts for one wallet on one chain."""
    address: str
    chain: Chain
    transaction_count: int = 0
    total_volume_usd: float = 0.0
    average_transaction_usd: float = 0.0
    unique_buyers: int = 0
    repeat_buyer_rate: float = 0.0          # % of buyers with more than one payment
    first_transaction_at: Optional[datetime] = None
    last_transaction_at: Optional[datetime] = None
    days_since_first_transaction: int = 0
    days_since_last_transaction: int = 0
    transactions_last_7_days: int = 0
    transactions_last_30_days: int = 0
    volume_last_7_days: float = 0.0
    volume_last_30_days: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.transaction_count > 0


def empty_metrics(address: str, chain: Chain) -> ChainMetrics:
    return ChainMetrics(address=address, chain=Chain(chain))


def days_since(when: Optional[datetime], now: Optional[datetime] = None) -> int:
    if when is None:
        return 0
    now = now or datetime.now(timezone.utc)
    return (now - when).days


def metrics_from_transactions(address: str, chain: Chain, txs: Iterable[X402Transaction],
                              now: Optional[datetime] = None) -> ChainMetrics:
    """Aggregate a list of incoming payments the way both ledger scanners need."""
    txs = list(txs)
    if not txs:
        return empty_metrics(address, chain)

    now = now or datetime.now(timezone.utc)
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)

    total = sum(t.amount_usd for t in txs)
    per_buyer: Dict[str, int] = {}
    for t in txs:
        per_buyer[t.buyer_address] = per_buyer.get(t.buyer_address, 0) + 1
    repeat = sum(1 for n in per_buyer.values() if n > 1)

    timestamps = [t.timestamp for t in txs]
    first, last = min(timestamps), max(timestamps)
    last_7 = [t for t in txs if t.timestamp >= week_ago]
    last_30 = [t for t in txs if t.timestamp >= month_ago]

    return ChainMetrics(
        address=address,
        chain=Chain(chain),
        transaction_count=len(txs),
        total_volume_usd=total,
        average_transaction_usd=total / len(txs),
        unique_buyers=len(per_buyer),
        repeat_buyer_rate=repeat / len(per_buyer) * 100,
        first_transaction_at=first,
        last_transaction_at=last,
        days_since_first_transaction=days_since(first, now),
        days_since_last_transaction=days_since(last, now),
        transactions_last_7_days=len(last_7),
        transactions_last_30_days=len(last_30),
        volume_last_7_days=sum(t.amount_usd for t in last_7),
        volume_last_30_days=sum(t.amount_usd for t in last_30),
    )


@dataclass(frozen=True)
class CombinedMetrics:
    base: Optional[ChainMetrics] = None
    solana: Optional[ChainMetrics] = None
    total_transaction_count: int = 0
    total_volume_usd: float = 0.0
    total_unique_buyers: int = 0
    chains_active: List[str] = field(default_factory=list)
    first_transaction_at: Optional[datetime] = None
    last_transaction_at: Optional[datetime] = None


def combine_metrics(base: Optional[ChainMetrics], solana: Optional[ChainMetrics]) -> CombinedMetrics:
    present = [m for m in (base, solana) if m is not None]
    dates = [
        d for m in present
        for d in (m.first_transaction_at, m.last_transaction_at)
        if d is not None
    ]
    return CombinedMetrics(
        base=base,
        solana=solana,
        total_transaction_count=sum(m.transaction_count for m in present),
        total_volume_usd=sum(m.total_volume_usd for m in present),
        total_unique_buyers=sum(m.unique_buyers for m in present),
        chains_active=[m.chain.value for m in present if m.is_active],
        first_transaction_at=min(dates) if dates else None,
        last_transaction_at=max(dates) if dates else None,
    )
