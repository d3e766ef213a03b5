"""
AgentScore — Address helpers
Chain detection, normalization and CAIP-10 formatting for Base and Solana wallets.
"""
import re
from typing import NamedTuple, Optional

_EVM_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
# base58 alphabet has no 0, O, I or l
_SOLANA_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

BASE_CAIP2 = "eip155:8453"
BASE_SEPOLIA_CAIP2 = "eip155:84532"
SOLANA_NAMESPACE = "solana"


def detect_chain(address: Optional[str]) -> str:
    """'base', 'solana' or 'unknown'."""
    if not address or not isinstance(address, str):
        return "unknown"
    trimmed = address.strip()
    if _EVM_RE.match(trimmed):
        return "base"
    if _SOLANA_RE.match(trimmed):
        return "solana"
    return "unknown"


def is_valid_base_address(address: Optional[str]) -> bool:
    return bool(address) and bool(_EVM_RE.match(address.strip()))


def is_valid_solana_address(address: Optional[str]) -> bool:
    return bool(address) and bool(_SOLANA_RE.match(address.strip()))


def is_valid_address(address: Optional[str]) -> bool:
    return is_valid_base_address(address) or is_valid_solana_address(address)


def normalize_address(address: Optional[str]) -> str:
    """Lowercase EVM addresses. Solana addresses are case-sensitive and kept as-is."""
    if not address:
        return ""
    trimmed = address.strip()
    if trimmed.startswith("0x"):
        return trimmed.lower()
    return trimmed


def shorten_address(address: Optional[str], chars: int = 4) -> str:
    if not address:
        return ""
    if address.startswith("0x"):
        return f"{address[:chars + 2]}...{address[-chars:]}"
    if len(address) > chars * 2 + 3:
        return f"{address[:chars]}...{address[-chars:]}"
    return address


class CAIP10(NamedTuple):
    namespace: str
    chain_id: str
    address: str


def parse_caip10(value: str) -> Optional[CAIP10]:
    """'eip155:8453:0x…' or the short 'solana:<addr>' form."""
    parts = value.split(":")
    if len(parts) == 3:
        return CAIP10(parts[0], parts[1], parts[2])
    if len(parts) == 2:
        return CAIP10(parts[0], "", parts[1])
    return None


def to_caip10(address: str, chain: str) -> str:
    if chain == "base":
        return f"{BASE_CAIP2}:{address}"
    return f"{SOLANA_NAMESPACE}:{address}"
