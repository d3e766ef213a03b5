"""
AgentScore — Hybrid x402 reader
Tiered resolution of x402 payment data for one wallet on one chain:

    1. in-process cache          (5 min TTL)
    2. CDP metrics API           (only when credentials are configured)
    3. ledger scan               (Base Transfer logs / Solana signatures)
    4. empty metrics             (well-formed zeros)

Tiers run in order and none is tried twice. Results from tier 2 or 3 are
cached before returning. The public methods never raise: every tier
failure is logged and the next tier takes over.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import structlog

from agentscore.data.outcome import Outcome
from agentscore.data.x402.base_reader import BaseLedgerScanner
from agentscore.data.x402.cache import TTLCache, metrics_key, transactions_key
from agentscore.data.x402.cdp_client import CDPAuthError, CDPBadRequest, CDPClient, parse_timestamp
from agentscore.data.x402.solana_reader import SolanaLedgerScanner
from agentscore.data.x402.types import (
    USDC, USDC_DECIMALS, Chain, ChainMetrics, CombinedMetrics, X402Transaction,
    combine_metrics, days_since, empty_metrics,
)

logger = structlog.get_logger()

T = TypeVar("T")


def _cdp_failure(source: str, error: Exception) -> Outcome:
    # Auth / bad request: this tier is done for the request, no retry happened
    if isinstance(error, (CDPAuthError, CDPBadRequest)):
        return Outcome.fatal(source, error)
    return Outcome.degraded(None, source, error)


def cdp_transaction(tx: Dict[str, Any], chain: Chain) -> X402Transaction:
    raw = str(tx["value"])
    return X402Transaction(
        tx_hash=tx["hash"],
        chain=chain,
        buyer_address=tx.get("from", ""),
        seller_address=tx.get("to", ""),
        facilitator_address=tx.get("facilitator") or "",
        amount_raw=raw,
        amount_usd=float(raw) / 10 ** USDC_DECIMALS,
        asset=tx.get("asset") or USDC[chain],
        timestamp=parse_timestamp(str(tx["timestamp"])),
        block_number=int(tx.get("blockNumber") or 0),
    )


class HybridReader:
    def __init__(
        self,
        base_scanner: BaseLedgerScanner,
        solana_scanner: SolanaLedgerScanner,
        cdp: Optional[CDPClient] = None,
        cache: Optional[TTLCache] = None,
        coalesce: bool = False,
    ):
        self.cdp = cdp
        self.scanners = {Chain.BASE: base_scanner, Chain.SOLANA: solana_scanner}
        self.cache = cache if cache is not None else TTLCache()
        self.coalesce = coalesce
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}

    # ── Tiers ─────────────────────────────────────

    async def _metrics_from_cdp(self, address: str, chain: Chain) -> Outcome[ChainMetrics]:
        try:
            m = await self.cdp.get_metrics(address, chain.value)
            now = datetime.now(timezone.utc)
            return Outcome.ok(ChainMetrics(
                address=address,
                chain=chain,
                transaction_count=m.transaction_count,
                total_volume_usd=m.total_volume,
                average_transaction_usd=m.total_volume / m.transaction_count if m.transaction_count else 0.0,
                unique_buyers=m.unique_buyers,
                repeat_buyer_rate=0.0,          # not reported by the API
                first_transaction_at=m.first_transaction,
                last_transaction_at=m.last_transaction,
                days_since_first_transaction=days_since(m.first_transaction, now),
                days_since_last_transaction=days_since(m.last_transaction, now),
                transactions_last_7_days=m.transactions_last_7_days,
                transactions_last_30_days=m.transactions_last_30_days,
            ), "cdp")
        except Exception as e:
            return _cdp_failure("cdp", e)

    async def _metrics_from_ledger(self, address: str, chain: Chain) -> Outcome[ChainMetrics]:
        try:
            return Outcome.ok(await self.scanners[chain].get_agent_metrics(address), "ledger")
        except Exception as e:
            return Outcome.degraded(None, "ledger", e)

    async def _transactions_from_cdp(self, address: str, chain: Chain, limit: int) -> Outcome[List[X402Transaction]]:
        try:
            page = await self.cdp.get_transactions(address, chain.value, limit=limit)
            return Outcome.ok([cdp_transaction(tx, chain) for tx in page.transactions], "cdp")
        except Exception as e:
            return _cdp_failure("cdp", e)

    async def _transactions_from_ledger(self, address: str, chain: Chain, limit: int) -> Outcome[List[X402Transaction]]:
        try:
            return Outcome.ok(await self.scanners[chain].get_recent_transactions(address, limit), "ledger")
        except Exception as e:
            return Outcome.degraded(None, "ledger", e)

    async def _resolve(self, key: str, tiers: List[Callable[[], Awaitable[Outcome[T]]]],
                       fallback: Callable[[], T], **log_ctx) -> T:
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("hybrid_cache_hit", key=key)
            return cached

        for tier in tiers:
            outcome = await tier()
            if outcome.is_ok:
                self.cache.set(key, outcome.value)
                logger.info("hybrid_resolved", source=outcome.source, **log_ctx)
                return outcome.value
            logger.warning("hybrid_tier_failed", source=outcome.source, status=outcome.status.value,
                           error=outcome.error, **log_ctx)

        logger.warning("hybrid_all_tiers_failed", **log_ctx)
        return fallback()

    async def _coalesced(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        if not self.coalesce:
            return await factory()

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda _t: self._inflight.pop(key, None))
        else:
            logger.debug("hybrid_inflight_joined", key=key)
        return await asyncio.shield(task)

    # ── Public API ────────────────────────────────

    async def get_agent_metrics(self, address: str, chain: Chain) -> ChainMetrics:
        chain = Chain(chain)
        key = metrics_key(chain.value, address)

        tiers = []
        if self.cdp is not None:
            tiers.append(lambda: self._metrics_from_cdp(address, chain))
        tiers.append(lambda: self._metrics_from_ledger(address, chain))

        return await self._coalesced(key, lambda: self._resolve(
            key, tiers, lambda: empty_metrics(address, chain), address=address, chain=chain.value,
        ))

    async def get_recent_transactions(self, address: str, chain: Chain, limit: int = 50) -> List[X402Transaction]:
        chain = Chain(chain)
        key = transactions_key(chain.value, address, limit)

        tiers = []
        if self.cdp is not None:
            tiers.append(lambda: self._transactions_from_cdp(address, chain, limit))
        tiers.append(lambda: self._transactions_from_ledger(address, chain, limit))

        # copy so callers never hold the cached list
        return list(await self._coalesced(key, lambda: self._resolve(
            key, tiers, list, address=address, chain=chain.value, op="transactions",
        )))

    async def get_combined_metrics(self, base: Optional[str] = None,
                                   solana: Optional[str] = None) -> CombinedMetrics:
        async def one(address: Optional[str], chain: Chain) -> Optional[ChainMetrics]:
            if not address:
                return None
            return await self.get_agent_metrics(address, chain)

        base_metrics, solana_metrics = await asyncio.gather(
            one(base, Chain.BASE), one(solana, Chain.SOLANA),
        )
        return combine_metrics(base_metrics, solana_metrics)

    def clear_cache(self) -> None:
        self.cache.clear()
