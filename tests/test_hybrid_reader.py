"""
Tiered x402 resolution: cache → CDP → ledger → empty.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from agentscore.data.x402.cache import TTLCache
from agentscore.data.x402.cdp_client import CDPAuthError, CDPBadRequest, CDPMetrics, CDPServerError, TransactionsPage
from agentscore.data.x402.hybrid_reader import HybridReader, cdp_transaction
from agentscore.data.x402.types import USDC, Chain, ChainMetrics, empty_metrics

from tests.conftest import BASE_ADDR, SOL_ADDR, FakeScanner, make_tx


class FakeCDP:
    def __init__(self, metrics=None, page=None, error=None):
        self.metrics = metrics
        self.page = page
        self.error = error
        self.calls = 0

    async def get_metrics(self, address, chain):
        self.calls += 1
        if self.error:
            raise self.error
        return self.metrics

    async def get_transactions(self, address, chain, limit=50, cursor=None):
        self.calls += 1
        if self.error:
            raise self.error
        return self.page


def _ledger_metrics(address=BASE_ADDR, chain=Chain.BASE, count=4) -> ChainMetrics:
    return ChainMetrics(address=address, chain=chain, transaction_count=count, total_volume_usd=10.0, unique_buyers=2)


def _reader(cdp=None, base=None, solana=None, **kw) -> HybridReader:
    return HybridReader(
        base_scanner=base or FakeScanner(Chain.BASE, _ledger_metrics()),
        solana_scanner=solana or FakeScanner(Chain.SOLANA, _ledger_metrics(SOL_ADDR, Chain.SOLANA, 2)),
        cdp=cdp,
        **kw,
    )


# ── Metrics ───────────────────────────────────────

async def test_cdp_answer_wins_and_is_cached():
    cdp = FakeCDP(metrics=CDPMetrics(
        transaction_count=10, total_volume=50.0, unique_buyers=5,
        first_transaction=datetime(2025, 1, 1, tzinfo=timezone.utc),
        last_transaction=datetime(2025, 5, 1, tzinfo=timezone.utc),
    ))
    base = FakeScanner(Chain.BASE, _ledger_metrics())
    reader = _reader(cdp=cdp, base=base)

    first = await reader.get_agent_metrics(BASE_ADDR, Chain.BASE)
    second = await reader.get_agent_metrics(BASE_ADDR.upper().replace("0X", "0x"), Chain.BASE)

    assert first.transaction_count == 10
    assert first.average_transaction_usd == 5.0
    assert first.chain is Chain.BASE
    assert second is first
    assert cdp.calls == 1
    assert base.calls == 0


@pytest.mark.parametrize("error", [
    CDPServerError("boom", status_code=503),
    CDPAuthError("expired", status_code=401),
    CDPBadRequest("bad", status_code=400),
    RuntimeError("unexpected"),
])
async def test_cdp_failure_falls_through_to_ledger(error):
    cdp = FakeCDP(error=error)
    base = FakeScanner(Chain.BASE, _ledger_metrics())
    reader = _reader(cdp=cdp, base=base)

    metrics = await reader.get_agent_metrics(BASE_ADDR, "base")

    assert metrics.transaction_count == 4
    assert cdp.calls == 1
    assert base.calls == 1


async def test_cdp_timestamps_without_offset_are_utc():
    cdp = FakeCDP(metrics=CDPMetrics.from_json({
        "transactionCount": 3,
        "totalVolume": 30,
        "uniqueBuyers": 2,
        "firstTransaction": "2025-01-01T00:00:00",
        "lastTransaction": "2025-05-01T12:30:00",
    }))
    base = FakeScanner(Chain.BASE, _ledger_metrics())

    metrics = await _reader(cdp=cdp, base=base).get_agent_metrics(BASE_ADDR, Chain.BASE)

    assert metrics.transaction_count == 3
    assert metrics.first_transaction_at == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert metrics.days_since_first_transaction is not None
    assert base.calls == 0


async def test_cdp_mapping_error_falls_through_to_ledger():
    class BrokenMetrics:
        transaction_count = 1
        total_volume = 1.0
        unique_buyers = 1
        first_transaction = "not a datetime"
        last_transaction = None
        transactions_last_7_days = 0
        transactions_last_30_days = 0

    base = FakeScanner(Chain.BASE, _ledger_metrics())
    metrics = await _reader(cdp=FakeCDP(metrics=BrokenMetrics()), base=base).get_agent_metrics(BASE_ADDR, Chain.BASE)

    assert metrics.transaction_count == 4
    assert base.calls == 1


async def test_no_cdp_goes_straight_to_ledger():
    solana = FakeScanner(Chain.SOLANA, _ledger_metrics(SOL_ADDR, Chain.SOLANA, 2))
    metrics = await _reader(solana=solana).get_agent_metrics(SOL_ADDR, Chain.SOLANA)
    assert metrics.transaction_count == 2
    assert solana.calls == 1


async def test_all_tiers_failing_yields_empty_metrics_uncached():
    cdp = FakeCDP(error=CDPServerError("down", status_code=500))
    base = FakeScanner(Chain.BASE, error=RuntimeError("rpc down"))
    cache = TTLCache()
    reader = _reader(cdp=cdp, base=base, cache=cache)

    metrics = await reader.get_agent_metrics(BASE_ADDR, Chain.BASE)

    assert metrics == empty_metrics(BASE_ADDR, Chain.BASE)
    assert len(cache) == 0

    await reader.get_agent_metrics(BASE_ADDR, Chain.BASE)
    assert cdp.calls == 2
    assert base.calls == 2


async def test_clear_cache_forces_a_fresh_resolution():
    base = FakeScanner(Chain.BASE, _ledger_metrics())
    reader = _reader(base=base)

    await reader.get_agent_metrics(BASE_ADDR, Chain.BASE)
    reader.clear_cache()
    await reader.get_agent_metrics(BASE_ADDR, Chain.BASE)

    assert base.calls == 2


async def test_combined_metrics():
    reader = _reader()
    combined = await reader.get_combined_metrics(base=BASE_ADDR, solana=SOL_ADDR)
    assert combined.total_transaction_count == 6
    assert combined.chains_active == ["base", "solana"]

    only_base = await reader.get_combined_metrics(base=BASE_ADDR)
    assert only_base.solana is None
    assert only_base.total_transaction_count == 4


# ── Recent transactions ───────────────────────────

def test_cdp_transaction_mapping():
    tx = cdp_transaction({
        "hash": "0xabc",
        "from": "0xbuyer",
        "to": BASE_ADDR,
        "value": "1500000",
        "timestamp": "2025-05-01T10:00:00Z",
        "blockNumber": 123,
    }, Chain.BASE)

    assert tx.amount_usd == 1.5
    assert tx.asset == USDC[Chain.BASE]
    assert tx.timestamp == datetime(2025, 5, 1, 10, tzinfo=timezone.utc)
    assert tx.block_number == 123


async def test_recent_transactions_from_cdp():
    page = TransactionsPage(transactions=[
        {"hash": "0x1", "from": "a", "to": SOL_ADDR, "value": 2_000_000, "timestamp": "2025-05-01T00:00:00Z"},
    ])
    reader = _reader(cdp=FakeCDP(page=page))

    txs = await reader.get_recent_transactions(SOL_ADDR, Chain.SOLANA, limit=10)

    assert [t.tx_hash for t in txs] == ["0x1"]
    assert txs[0].asset == USDC[Chain.SOLANA]
    assert txs[0].amount_usd == 2.0


async def test_recent_transactions_fall_back_to_ledger_then_empty():
    base = FakeScanner(Chain.BASE, txs=[make_tx(tx_hash="0xledger")])
    reader = _reader(cdp=FakeCDP(error=CDPServerError("down", status_code=502)), base=base)
    assert [t.tx_hash for t in await reader.get_recent_transactions(BASE_ADDR, Chain.BASE)] == ["0xledger"]

    broken = _reader(base=FakeScanner(Chain.BASE, error=RuntimeError("down")))
    assert await broken.get_recent_transactions(BASE_ADDR, Chain.BASE) == []


async def test_recent_transactions_cache_per_limit():
    base = FakeScanner(Chain.BASE, txs=[make_tx(tx_hash=f"0x{i}") for i in range(5)])
    reader = _reader(base=base)

    assert len(await reader.get_recent_transactions(BASE_ADDR, Chain.BASE, limit=2)) == 2
    assert len(await reader.get_recent_transactions(BASE_ADDR, Chain.BASE, limit=2)) == 2
    assert len(await reader.get_recent_transactions(BASE_ADDR, Chain.BASE, limit=5)) == 5
    assert base.calls == 2


# ── In-flight coalescing ──────────────────────────

async def test_concurrent_misses_each_resolve_by_default():
    base = FakeScanner(Chain.BASE, _ledger_metrics())
    reader = _reader(base=base)

    await asyncio.gather(*(reader.get_agent_metrics(BASE_ADDR, Chain.BASE) for _ in range(3)))

    assert base.calls == 3


async def test_coalescing_shares_one_resolution():
    base = FakeScanner(Chain.BASE, _ledger_metrics())
    reader = _reader(base=base, coalesce=True)

    results = await asyncio.gather(*(reader.get_agent_metrics(BASE_ADDR, Chain.BASE) for _ in range(3)))

    assert base.calls == 1
    assert results[0] is results[1] is results[2]
    assert reader._inflight == {}


async def test_recent_transactions_are_copied_from_the_cache():
    base = FakeScanner(Chain.BASE, txs=[make_tx(tx_hash="0x1"), make_tx(tx_hash="0x2")])
    reader = _reader(base=base)

    first = await reader.get_recent_transactions(BASE_ADDR, Chain.BASE)
    first.clear()
    second = await reader.get_recent_transactions(BASE_ADDR, Chain.BASE)

    assert [t.tx_hash for t in second] == ["0x1", "0x2"]
    assert base.calls == 1
