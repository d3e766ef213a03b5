"""
AgentScore — Ledger read capability
Thin JSON-RPC clients over httpx for the two chains the scanners read.

Only the read calls the scanners need are exposed:
    EVM     eth_blockNumber, eth_getLogs, eth_getBlockByNumber
    Solana  getSignaturesForAddress, getTransaction (jsonParsed)

Scanners depend on the EvmLedger / SolanaLedger protocols, so tests can
swap in plain in-memory fakes.
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Union

import httpx
import structlog

logger = structlog.get_logger()

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


@dataclass(eq=False)
class LedgerRPCError(Exception):
    """JSON-RPC failure, with HTTP context when there is any."""

    message: str
    http_status: Optional[int] = None
    body: Optional[str] = None

    def __str__(self) -> str:
        detail = []
        if self.http_status is not None:
            detail.append(f"status={self.http_status}")
        if self.body:
            detail.append(f"body={self.body[:200]}")
        return f"{self.message} ({', '.join(detail)})" if detail else self.message


# ── Protocols ─────────────────────────────────────

class EvmLedger(Protocol):
    async def block_number(self) -> int: ...

    async def get_logs(self, address: str, topics: List[Optional[str]],
                       from_block: int, to_block: Union[int, str] = "latest") -> List[Dict[str, Any]]: ...

    async def get_block(self, number: int) -> Dict[str, Any]: ...


class SolanaLedger(Protocol):
    async def get_signatures_for_address(self, address: str, limit: int = 1000) -> List[Dict[str, Any]]: ...

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]: ...


# ── JSON-RPC over httpx ───────────────────────────

class JsonRpcClient:
    def __init__(self, url: str, client: httpx.AsyncClient, name: str = "rpc"):
        self.url = url
        self.client = client
        self.name = name
        self._ids = itertools.count(1)

    async def call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = await self.client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise LedgerRPCError(f"{self.name} {method} transport error: {e}") from e

        if resp.status_code != 200:
            raise LedgerRPCError(f"{self.name} {method} failed", http_status=resp.status_code, body=resp.text)

        try:
            data = resp.json()
        except ValueError as e:
            raise LedgerRPCError(f"{self.name} {method} returned invalid JSON",
                                 http_status=resp.status_code, body=resp.text) from e

        if data.get("error"):
            err = data["error"]
            msg = err.get("message", str(err)) if isinstance(err, dict) else str(err)
            raise LedgerRPCError(f"{self.name} {method}: {msg}", http_status=resp.status_code)

        return data.get("result")


def address_topic(address: str) -> str:
    """Left-pad a 20-byte address into a 32-byte indexed topic."""
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


def topic_to_address(topic: str) -> str:
    return "0x" + topic[-40:]


class EvmRpcClient(JsonRpcClient):
    def __init__(self, url: str, client: httpx.AsyncClient):
        super().__init__(url, client, name="evm")

    async def block_number(self) -> int:
        return int(await self.call("eth_blockNumber", []), 16)

    async def get_logs(self, address: str, topics: List[Optional[str]],
                       from_block: int, to_block: Union[int, str] = "latest") -> List[Dict[str, Any]]:
        params = {
            "address": address,
            "topics": topics,
            "fromBlock": hex(from_block),
            "toBlock": to_block if isinstance(to_block, str) else hex(to_block),
        }
        return await self.call("eth_getLogs", [params]) or []

    async def get_block(self, number: int) -> Dict[str, Any]:
        block = await self.call("eth_getBlockByNumber", [hex(number), False])
        if not block:
            raise LedgerRPCError(f"evm block {number} not found")
        return block


class SolanaRpcClient(JsonRpcClient):
    def __init__(self, url: str, client: httpx.AsyncClient, commitment: str = "confirmed"):
        super().__init__(url, client, name="solana")
        self.commitment = commitment

    async def get_signatures_for_address(self, address: str, limit: int = 1000) -> List[Dict[str, Any]]:
        result = await self.call("getSignaturesForAddress",
                                 [address, {"limit": limit, "commitment": self.commitment}])
        return result or []

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return await self.call("getTransaction", [signature, {
            "encoding": "jsonParsed",
            "maxSupportedTransactionVersion": 0,
            "commitment": self.commitment,
        }])
