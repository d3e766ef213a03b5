"""
AgentScore — Configuration
Unified config for the scoring engine and its data sources.

All settings load from environment variables with safe defaults for development.
In production, set AGENTSCORE_ENV=production to switch the registry network to mainnet.
"""
import os
from functools import lru_cache
from typing import Dict

from dotenv import load_dotenv

load_dotenv()


SUBGRAPH_URLS: Dict[str, str] = {
    "sepolia": "https://api.studio.thegraph.com/query/82634/agents-sepolia/v1.4.0",
    "baseSepolia": "https://api.studio.thegraph.com/query/82634/agents-base-sepolia/v1.4.0",
    "base": "https://api.studio.thegraph.com/query/82634/agents-base/v1.4.0",
}


class Settings:
    def __init__(self):
        self.ENVIRONMENT = os.getenv("AGENTSCORE_ENV", "development")

        # === ERC-8004 registries ===
        default_network = "base" if self.ENVIRONMENT == "production" else "baseSepolia"
        self.ERC8004_NETWORK = os.getenv("ERC8004_NETWORK", default_network)
        self.SUBGRAPH_URL = os.getenv("SUBGRAPH_URL", "") or SUBGRAPH_URLS.get(
            self.ERC8004_NETWORK, SUBGRAPH_URLS["sepolia"]
        )
        self.IPFS_GATEWAY = os.getenv("IPFS_GATEWAY", "https://ipfs.io/ipfs/")
        self.ARWEAVE_GATEWAY = os.getenv("ARWEAVE_GATEWAY", "https://arweave.net/")

        # === Ledger RPC ===
        self.BASE_RPC_URL = os.getenv("BASE_RPC_URL", "https://mainnet.base.org")
        self.SOLANA_RPC_URL = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")

        # === Coinbase Developer Platform (x402 metrics API) ===
        self.CDP_API_KEY = os.getenv("CDP_API_KEY", "")
        self.CDP_API_SECRET = os.getenv("CDP_API_SECRET", "").replace("\\n", "\n")
        self.CDP_BASE_URL = os.getenv("CDP_BASE_URL", "https://api.cdp.coinbase.com")

        # === Resolver ===
        self.X402_CACHE_TTL = int(os.getenv("X402_CACHE_TTL", "300"))
        self.HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10.0"))
        self.X402_COALESCE_INFLIGHT = os.getenv("X402_COALESCE_INFLIGHT", "false").lower() in ("1", "true", "yes")

        # === Logging ===
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def cdp_enabled(self) -> bool:
        return bool(self.CDP_API_KEY and self.CDP_API_SECRET)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
