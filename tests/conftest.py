"""
Shared fixtures and in-memory fakes for the ledger and registry protocols.
HTTP collaborators are exercised with httpx.MockTransport instead.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from agentscore.data.erc8004.registries import (
    FeedbackEntry, ReputationSummary, ValidationStatus, ValidationSummary,
)
from agentscore.data.x402.types import Chain, ChainMetrics, X402Transaction, empty_metrics
from agentscore.scoring.value_parser import Tag

BASE_ADDR = "0x" + "ab" * 20
BASE_ADDR_2 = "0x" + "cd" * 20
SOL_ADDR = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


def mock_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)


def make_tx(chain: Chain = Chain.BASE, buyer: str = "buyer", amount: float = 1.0,
            when: datetime = NOW, tx_hash: str = "0xhash") -> X402Transaction:
    return X402Transaction(
        tx_hash=tx_hash,
        chain=chain,
        buyer_address=buyer,
        seller_address=BASE_ADDR if chain is Chain.BASE else SOL_ADDR,
        amount_raw=str(int(amount * 1_000_000)),
        amount_usd=amount,
        asset="usdc",
        timestamp=when,
    )


# ── Ledger fakes ──────────────────────────────────

class FakeEvmLedger:
    def __init__(self, head: int, logs: List[Dict[str, Any]], blocks: Dict[int, int]):
        self.head = head
        self.logs = logs
        self.blocks = blocks            # block number → unix timestamp
        self.log_queries: List[Dict[str, Any]] = []
        self.block_fetches: List[int] = []

    async def block_number(self) -> int:
        return self.head

    async def get_logs(self, address, topics, from_block, to_block="latest"):
        self.log_queries.append({"address": address, "topics": topics, "from_block": from_block})
        return self.logs

    async def get_block(self, number: int) -> Dict[str, Any]:
        self.block_fetches.append(number)
        if number not in self.blocks:
            raise RuntimeError(f"block {number} unavailable")
        return {"number": hex(number), "timestamp": hex(self.blocks[number])}


class FakeSolanaLedger:
    def __init__(self, signatures: List[str], transactions: Dict[str, Any]):
        self.signatures = signatures
        self.transactions = transactions
        self.fetched: List[str] = []

    async def get_signatures_for_address(self, address: str, limit: int = 1000):
        return [{"signature": s} for s in self.signatures[:limit]]

    async def get_transaction(self, signature: str):
        self.fetched.append(signature)
        tx = self.transactions.get(signature)
        if isinstance(tx, Exception):
            raise tx
        return tx


class FakeScanner:
    """Stands in for either ledger scanner behind the hybrid reader."""

    def __init__(self, chain: Chain, metrics: Optional[ChainMetrics] = None,
                 txs: Optional[List[X402Transaction]] = None, error: Optional[Exception] = None):
        self.chain = chain
        self.metrics = metrics
        self.txs = txs or []
        self.error = error
        self.calls = 0

    async def get_agent_metrics(self, address: str, now=None) -> ChainMetrics:
        self.calls += 1
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return self.metrics or empty_metrics(address, self.chain)

    async def get_recent_transactions(self, address: str, limit: int = 50):
        self.calls += 1
        if self.error:
            raise self.error
        return self.txs[:limit]


# ── Registry fakes ────────────────────────────────

class FakeIdentityRegistry:
    def __init__(self, owner: str = BASE_ADDR, token_uri: str = "", metadata: Optional[Dict[str, bytes]] = None):
        self.owner = owner
        self.uri = token_uri
        self.metadata = metadata or {}

    async def owner_of(self, agent_id: int) -> str:
        return self.owner

    async def token_uri(self, agent_id: int) -> str:
        return self.uri

    async def get_metadata(self, agent_id: int, key: str) -> Optional[bytes]:
        return self.metadata.get(key)


class FakeReputationRegistry:
    def __init__(self, clients: List[str], summary: ReputationSummary,
                 feedback: Optional[List[FeedbackEntry]] = None, error: Optional[Exception] = None):
        self.clients = clients
        self.summary = summary
        self.feedback = feedback or []
        self.error = error

    async def get_clients(self, agent_id: int) -> List[str]:
        if self.error:
            raise self.error
        return self.clients

    async def get_summary(self, agent_id, client_addresses, tag1="", tag2="") -> ReputationSummary:
        return self.summary

    async def read_all_feedback(self, agent_id, client_addresses, tag1="", tag2="", include_revoked=False):
        return list(self.feedback)


class FakeValidationRegistry:
    def __init__(self, count: int, responses: Dict[str, Any]):
        self.count = count
        self.responses = responses      # request hash → response (0-100) or Exception

    async def get_summary(self, agent_id, validator_addresses, tag) -> ValidationSummary:
        return ValidationSummary(count=self.count, average_response=0)

    async def get_agent_validations(self, agent_id: int) -> List[str]:
        return list(self.responses)

    async def get_validation_status(self, request_hash: str) -> Optional[ValidationStatus]:
        response = self.responses[request_hash]
        if isinstance(response, Exception):
            raise response
        return ValidationStatus(
            request_hash=request_hash,
            validator_address="0xvalidator",
            agent_id=1,
            response=response,
            tag=Tag(""),
            last_update=NOW - timedelta(days=1),
        )
