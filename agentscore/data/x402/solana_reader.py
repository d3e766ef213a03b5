"""
AgentScore — Solana ledger scanner
Fallback tier for Solana: recent signatures for the agent, then USDC
token-balance deltas per transaction.

Public RPC endpoints rate-limit hard, so only the newest MAX_PROCESSED
signatures are inspected, BATCH_SIZE at a time with a short pause between
batches.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from agentscore.data.x402.ledger import SolanaLedger
from agentscore.data.x402.types import (
    USDC, USDC_DECIMALS, Chain, ChainMetrics, X402Transaction, metrics_from_transactions,
)

logger = structlog.get_logger()

SIGNATURE_LIMIT = 1000
MAX_PROCESSED = 100
BATCH_SIZE = 10
BATCH_DELAY = 0.1   # seconds


def _raw_amount(balance: Optional[Dict[str, Any]]) -> int:
    if not balance:
        return 0
    ui = balance.get("uiTokenAmount") or {}
    if ui.get("amount") is not None:
        return int(ui["amount"])
    # Older nodes only send uiAmount
    return round((ui.get("uiAmount") or 0) * 10 ** USDC_DECIMALS)


def _fee_payer(tx: Dict[str, Any]) -> str:
    keys = ((tx.get("transaction") or {}).get("message") or {}).get("accountKeys") or []
    if not keys:
        return "unknown"
    first = keys[0]
    if isinstance(first, dict):
        return first.get("pubkey") or "unknown"
    return str(first)


def parse_incoming_usdc(tx: Optional[Dict[str, Any]], seller: str, signature: str) -> Optional[X402Transaction]:
    """The USDC payment `seller` received in this transaction, if any."""
    if not tx or not tx.get("meta") or not tx.get("blockTime"):
        return None

    meta = tx["meta"]
    mint = USDC[Chain.SOLANA]
    pre_by_index = {b.get("accountIndex"): b for b in meta.get("preTokenBalances") or []}

    for post in meta.get("postTokenBalances") or []:
        if post.get("mint") != mint or post.get("owner") != seller:
            continue
        delta = _raw_amount(post) - _raw_amount(pre_by_index.get(post.get("accountIndex")))
        if delta <= 0:
            continue
        return X402Transaction(
            tx_hash=signature,
            chain=Chain.SOLANA,
            buyer_address=_fee_payer(tx),
            seller_address=seller,
            amount_raw=str(delta),
            amount_usd=delta / 10 ** USDC_DECIMALS,
            asset=mint,
            timestamp=datetime.fromtimestamp(tx["blockTime"], tz=timezone.utc),
            block_number=tx.get("slot") or 0,
        )
    return None


class SolanaLedgerScanner:
    def __init__(self, ledger: SolanaLedger, max_processed: int = MAX_PROCESSED,
                 batch_size: int = BATCH_SIZE, batch_delay: float = BATCH_DELAY):
        self.ledger = ledger
        self.max_processed = max_processed
        self.batch_size = batch_size
        self.batch_delay = batch_delay

    async def _fetch_one(self, address: str, signature: str) -> Optional[X402Transaction]:
        try:
            tx = await self.ledger.get_transaction(signature)
        except Exception as e:
            logger.debug("solana_tx_skipped", signature=signature, error=str(e))
            return None
        return parse_incoming_usdc(tx, address, signature)

    async def scan(self, address: str) -> List[X402Transaction]:
        """
        Incoming USDC payments among the newest signatures for `address`.
        Raises LedgerRPCError when the signature listing fails; individual
        transactions that can't be fetched are skipped.
        """
        signatures = await self.ledger.get_signatures_for_address(address, limit=SIGNATURE_LIMIT)
        wanted = [s["signature"] for s in signatures[:self.max_processed] if s.get("signature")]

        txs: List[X402Transaction] = []
        for start in range(0, len(wanted), self.batch_size):
            if start and self.batch_delay:
                await asyncio.sleep(self.batch_delay)
            batch = wanted[start:start + self.batch_size]
            results = await asyncio.gather(*(self._fetch_one(address, sig) for sig in batch))
            txs.extend(t for t in results if t is not None)

        logger.info("solana_scan_complete", address=address,
                    signatures=len(signatures), inspected=len(wanted), transfers=len(txs))
        return txs

    async def get_agent_metrics(self, address: str, now: Optional[datetime] = None) -> ChainMetrics:
        return metrics_from_transactions(address, Chain.SOLANA, await self.scan(address), now)

    async def get_recent_transactions(self, address: str, limit: int = 50) -> List[X402Transaction]:
        txs = await self.scan(address)
        txs.sort(key=lambda t: t.timestamp, reverse=True)
        return txs[:limit]
