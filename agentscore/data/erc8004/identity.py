"""
AgentScore — ERC-8004 identity reader
Registration lookup for an agent NFT: owner, tokenURI and the registration
document the URI points at (https, ipfs:// or ar://).
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agentscore.data.erc8004.registries import IdentityRegistry

logger = structlog.get_logger()

WALLET_ENDPOINT = "agentWallet"


# ===========================================
# Registration document
# ===========================================

class Endpoint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    endpoint: str = ""
    version: Optional[str] = None


class RegistryRef(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    agent_id: int = Field(0, alias="agentId")
    agent_registry: str = Field("", alias="agentRegistry")


class RegistrationDocument(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str = ""
    name: str = ""
    description: str = ""
    image: str = ""
    endpoints: List[Endpoint] = Field(default_factory=list)
    registrations: List[RegistryRef] = Field(default_factory=list)
    supported_trust: List[str] = Field(default_factory=list, alias="supportedTrust")


@dataclass
class AgentRegistration:
    agent_id: int
    owner: str
    token_uri: str
    document: Optional[RegistrationDocument] = None


def extract_wallets(document: Optional[RegistrationDocument]) -> Dict[str, str]:
    """
    Wallets advertised as `agentWallet` endpoints, CAIP-10 or raw:
        eip155:8453:0x…  / eip155:84532:0x…  / 0x…   → base
        solana:<addr>    / 32-44 char base58        → solana
    """
    wallets: Dict[str, str] = {}
    if document is None:
        return wallets

    for ep in document.endpoints:
        if ep.name != WALLET_ENDPOINT:
            continue
        addr = ep.endpoint
        if addr.startswith("eip155:8453:"):
            wallets["base"] = addr[len("eip155:8453:"):]
        elif addr.startswith("eip155:84532:"):
            wallets["base"] = addr[len("eip155:84532:"):]
        elif addr.startswith("solana:"):
            wallets["solana"] = addr[len("solana:"):]
        elif addr.startswith("0x"):
            wallets["base"] = addr
        elif 32 <= len(addr) <= 44:
            wallets["solana"] = addr
    return wallets


class IdentityReader:
    def __init__(self, registry: IdentityRegistry, http: httpx.AsyncClient,
                 ipfs_gateway: str = "https://ipfs.io/ipfs/",
                 arweave_gateway: str = "https://arweave.net/"):
        self.registry = registry
        self.http = http
        self.ipfs_gateway = ipfs_gateway
        self.arweave_gateway = arweave_gateway

    def resolve_uri(self, uri: str) -> str:
        if uri.startswith("ipfs://"):
            return self.ipfs_gateway + uri[len("ipfs://"):]
        if uri.startswith("ar://"):
            return self.arweave_gateway + uri[len("ar://"):]
        return uri

    async def fetch_document(self, token_uri: str) -> Optional[RegistrationDocument]:
        if not token_uri:
            return None
        url = self.resolve_uri(token_uri)
        try:
            resp = await self.http.get(url, headers={"Accept": "application/json"})
            if resp.status_code != 200:
                logger.warning("registration_fetch_failed", url=url, status=resp.status_code)
                return None
            return RegistrationDocument.model_validate(resp.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.warning("registration_fetch_failed", url=url, error=str(e))
            return None

    async def get_registration(self, agent_id: int) -> AgentRegistration:
        """Owner and tokenURI are required (errors propagate); the document is best-effort."""
        token_uri, owner = await asyncio.gather(
            self.registry.token_uri(agent_id),
            self.registry.owner_of(agent_id),
        )
        document = await self.fetch_document(token_uri)
        return AgentRegistration(agent_id=agent_id, owner=owner, token_uri=token_uri, document=document)

    async def get_metadata(self, agent_id: int, key: str) -> Optional[str]:
        """On-chain metadata value as text, NUL bytes stripped."""
        try:
            raw = await self.registry.get_metadata(agent_id, key)
        except Exception as e:
            logger.debug("identity_metadata_failed", agent_id=agent_id, key=key, error=str(e))
            return None
        if not raw:
            return None
        return raw.decode("utf-8", errors="replace").replace("\x00", "") or None
