"""
AgentScore — Resolver Cache
In-process TTL map in front of the x402 tiers so repeat lookups don't
re-hit the metrics API or re-scan the ledger.

Key Schema:
    metrics:{chain}:{address}          → ChainMetrics
    txs:{chain}:{address}:{limit}      → List[X402Transaction]

Addresses are lowercased in keys. Expired entries are treated as absent and
dropped on read. No locking: the event loop is single-threaded, and two
concurrent misses for one key simply both resolve. Restarting the process
drops everything.
"""
import time
from typing import Any, Callable, Dict, Optional, Tuple

import structlog

logger = structlog.get_logger()

DEFAULT_TTL = 300  # seconds


def metrics_key(chain: str, address: str) -> str:
    return f"metrics:{chain}:{address.lower()}"


def transactions_key(chain: str, address: str, limit: int) -> str:
    return f"txs:{chain}:{address.lower()}:{limit}"


class TTLCache:
    """
    Usage:
        cache = TTLCache(ttl=300)
        hit = cache.get(key)
        if hit is None:
            ...resolve...
            cache.set(key, value)
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        stored_at, value = entry
        if self._clock() - stored_at > self.ttl:
            del self._entries[key]
            self.misses += 1
            logger.debug("cache_expired", key=key)
            return None

        self.hits += 1
        logger.debug("cache_hit", key=key)
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock(), value)
        logger.debug("cache_set", key=key, ttl=self.ttl)

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many went."""
        now = self._clock()
        stale = [k for k, (stored_at, _) in self._entries.items() if now - stored_at > self.ttl]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses, "ttl": self.ttl}
