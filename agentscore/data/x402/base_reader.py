"""
AgentScore — Base ledger scanner
Fallback tier for Base: USDC Transfer logs addressed to the agent.

Base produces a block roughly every 2 seconds, so ~1.3M blocks covers the
last 30 days. Older receipts are out of reach of this tier.
"""
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from agentscore.data.x402.ledger import EvmLedger, TRANSFER_TOPIC, address_topic, topic_to_address
from agentscore.data.x402.types import (
    USDC, USDC_DECIMALS, Chain, ChainMetrics, X402Transaction, metrics_from_transactions,
)

logger = structlog.get_logger()

LOOKBACK_BLOCKS = 1_300_000


class BaseLedgerScanner:
    def __init__(self, ledger: EvmLedger, lookback_blocks: int = LOOKBACK_BLOCKS):
        self.ledger = ledger
        self.lookback_blocks = lookback_blocks
        self.usdc = USDC[Chain.BASE]

    async def scan(self, address: str) -> List[X402Transaction]:
        """
        Every USDC transfer into `address` inside the lookback window.
        Raises LedgerRPCError when the head or the log query fails; logs
        whose block can't be fetched are skipped.
        """
        head = await self.ledger.block_number()
        from_block = max(0, head - self.lookback_blocks)

        logs = await self.ledger.get_logs(
            self.usdc,
            [TRANSFER_TOPIC, None, address_topic(address)],
            from_block,
        )

        block_times = {}
        txs: List[X402Transaction] = []
        for log in logs:
            try:
                block_number = int(log["blockNumber"], 16)
                if block_number not in block_times:
                    block = await self.ledger.get_block(block_number)
                    block_times[block_number] = datetime.fromtimestamp(int(block["timestamp"], 16), tz=timezone.utc)
                raw_value = int(log["data"], 16)
                txs.append(X402Transaction(
                    tx_hash=log["transactionHash"],
                    chain=Chain.BASE,
                    buyer_address=topic_to_address(log["topics"][1]),
                    seller_address=address,
                    amount_raw=str(raw_value),
                    amount_usd=raw_value / 10 ** USDC_DECIMALS,
                    asset=self.usdc,
                    timestamp=block_times[block_number],
                    block_number=block_number,
                ))
            except Exception as e:
                logger.debug("base_log_skipped", tx=log.get("transactionHash"), error=str(e))
                continue

        logger.info("base_scan_complete", address=address, logs=len(logs), transfers=len(txs))
        return txs

    async def get_agent_metrics(self, address: str, now: Optional[datetime] = None) -> ChainMetrics:
        return metrics_from_transactions(address, Chain.BASE, await self.scan(address), now)

    async def get_recent_transactions(self, address: str, limit: int = 50) -> List[X402Transaction]:
        txs = await self.scan(address)
        txs.sort(key=lambda t: t.timestamp, reverse=True)
        return txs[:limit]
