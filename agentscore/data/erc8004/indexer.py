"""
AgentScore — ERC-8004 subgraph client
GraphQL lookups against the Agent0 subgraph:

    owner wallet  → agent id     (reverse lookup, what the aggregator needs first)
    agent id      → wallets      (forward lookup, linked Base / Solana wallets)

Lookups never raise. Any HTTP or GraphQL failure is logged and read as
"not found".
"""
from typing import Any, Dict, Optional

import httpx
import structlog

logger = structlog.get_logger()

FIND_AGENT_BY_OWNER = """
query FindAgentByOwner($owner: String!) {
  agents(where: { owner: $owner }) {
    id
    agentId
    owner
    tokenURI
  }
}
"""

GET_WALLETS_BY_AGENT = """
query GetWalletsByAgent($agentId: BigInt!) {
  wallets(where: { agentId: $agentId }) {
    id
    chain
    walletAddress
  }
}
"""

GET_AGENT_WALLETS = """
query GetAgentWallets($agentId: BigInt!) {
  agents(where: { agentId: $agentId }) {
    id
    agentId
    wallets {
      id
      chain
      walletAddress
    }
  }
}
"""

_EVM_CHAINS = {"base", "ethereum", "eip155"}


class SubgraphError(Exception):
    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


def _fold_wallets(wallets: Any, into: Dict[str, str]) -> None:
    for w in wallets or []:
        chain = str(w.get("chain", "")).lower()
        address = w.get("walletAddress")
        if not address:
            continue
        if chain in _EVM_CHAINS:
            into["base"] = address
        elif chain == "solana":
            into["solana"] = address


class SubgraphClient:
    def __init__(self, url: str, http: httpx.AsyncClient):
        self.url = url
        self.http = http

    async def _query(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await self.http.post(
                self.url,
                json={"query": query, "variables": variables},
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise SubgraphError(f"subgraph transport error: {e}") from e

        if resp.status_code != 200:
            raise SubgraphError(f"subgraph returned {resp.status_code}", status_code=resp.status_code)

        body = resp.json()
        if not isinstance(body, dict):
            raise SubgraphError("subgraph response is not an object", status_code=resp.status_code)
        if body.get("errors"):
            messages = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in body["errors"]
            )
            raise SubgraphError(f"graphql errors: {messages}", status_code=resp.status_code)
        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise SubgraphError("subgraph data is not an object", status_code=resp.status_code)
        return data

    async def find_agent_by_owner(self, owner: str) -> Optional[int]:
        try:
            data = await self._query(FIND_AGENT_BY_OWNER, {"owner": owner.lower()})
        except (SubgraphError, ValueError) as e:
            logger.warning("subgraph_lookup_failed", query="FindAgentByOwner", owner=owner, error=str(e))
            return None

        agents = data.get("agents") or []
        if not agents:
            return None
        try:
            return int(agents[0]["agentId"])
        except (KeyError, TypeError, ValueError):
            return None

    async def get_agent_wallets(self, agent_id: int) -> Dict[str, str]:
        """{'base': …, 'solana': …} with whichever the subgraph knows."""
        wallets: Dict[str, str] = {}
        variables = {"agentId": str(agent_id)}

        try:
            data = await self._query(GET_WALLETS_BY_AGENT, variables)
            _fold_wallets(data.get("wallets"), wallets)
        except (SubgraphError, ValueError) as e:
            logger.warning("subgraph_lookup_failed", query="GetWalletsByAgent", agent_id=agent_id, error=str(e))

        # Embedded wallets on the agent entity win
        try:
            data = await self._query(GET_AGENT_WALLETS, variables)
            agents = data.get("agents") or []
            if agents:
                _fold_wallets(agents[0].get("wallets"), wallets)
        except (SubgraphError, ValueError) as e:
            logger.warning("subgraph_lookup_failed", query="GetAgentWallets", agent_id=agent_id, error=str(e))

        return wallets

    async def is_available(self) -> bool:
        try:
            await self._query("{ __typename }", {})
            return True
        except (SubgraphError, ValueError):
            return False
