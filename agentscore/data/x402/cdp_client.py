"""
AgentScore — Coinbase Developer Platform (CDP) client
Primary x402 tier: authenticated metrics/transactions API.

Auth: every request carries an ES256-signed JWT
    header  {alg: ES256, kid: <api key>}
    claims  {iss: <api key>, aud: ["cdp.api"], iat, nbf, exp: +2 min}
Minted tokens are reused for 55 minutes (refreshed once less than 5 minutes
remain) and dropped on any 401.

Retries: 429 and 5xx responses and transport errors are retried with
exponential backoff (1s, 2s, 4s). Auth and bad-request errors are raised
immediately so the caller can fall through to the ledger tier.

Usage:
    async with httpx.AsyncClient(base_url=settings.CDP_BASE_URL) as http:
        cdp = CDPClient(api_key, api_secret, http)
        metrics = await cdp.get_metrics("0x…", "base")
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx
import jwt
import structlog

logger = structlog.get_logger()

TOKEN_LIFETIME = 120            # seconds, the JWT exp claim
TOKEN_CACHE_TTL = 55 * 60       # how long a minted token is reused
TOKEN_REFRESH_MARGIN = 5 * 60   # refresh once less than this remains
MAX_RETRIES = 3
BACKOFF_BASE = 1.0              # seconds; doubles each retry

TRANSACTIONS_PATH = "/platform/v1/x402/transactions"
METRICS_PATH = "/platform/v1/x402/metrics"


# =============================================
# EXCEPTIONS
# =============================================

class CDPAPIError(Exception):
    def __init__(self, message: str, status_code: int = 0, detail: Optional[dict] = None):
        self.status_code = status_code
        self.detail = detail or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


class CDPAuthError(CDPAPIError):
    """401 / 403, or a token that could not be minted."""


class CDPBadRequest(CDPAPIError):
    """400 / 404."""


class CDPRateLimited(CDPAPIError):
    def __init__(self, retry_after: Optional[int] = None, **kwargs):
        self.retry_after = retry_after
        super().__init__("CDP API: rate limited", **kwargs)


class CDPServerError(CDPAPIError):
    """5xx."""


class CDPNetworkError(CDPAPIError):
    """The request never got an HTTP answer."""

    @property
    def is_retryable(self) -> bool:
        return True


def _error_for(response: httpx.Response) -> CDPAPIError:
    status = response.status_code
    try:
        detail = response.json() if response.content else {}
    except ValueError:
        detail = {"body": response.text[:500]}
    if not isinstance(detail, dict):
        detail = {"body": detail}

    if status == 401:
        return CDPAuthError("CDP API: unauthorized, check API credentials", status_code=401, detail=detail)
    if status == 403:
        return CDPAuthError("CDP API: forbidden, insufficient permissions", status_code=403, detail=detail)
    if status == 400:
        return CDPBadRequest("CDP API: bad request, check request parameters", status_code=400, detail=detail)
    if status == 404:
        return CDPBadRequest("CDP API: resource not found", status_code=404, detail=detail)
    if status == 429:
        retry_after = response.headers.get("Retry-After")
        return CDPRateLimited(
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            status_code=429, detail=detail,
        )
    if status >= 500:
        return CDPServerError(f"CDP API: server error {status}", status_code=status, detail=detail)
    return CDPAPIError(f"CDP API: {status} {response.reason_phrase}", status_code=status, detail=detail)


# =============================================
# RESPONSE TYPES
# =============================================

@dataclass
class CDPMetrics:
    transaction_count: int = 0
    total_volume: float = 0.0
    unique_buyers: int = 0
    first_transaction: Optional[datetime] = None
    last_transaction: Optional[datetime] = None
    average_transaction_size: Optional[float] = None
    transactions_last_7_days: int = 0
    transactions_last_30_days: int = 0

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "CDPMetrics":
        return cls(
            transaction_count=int(data.get("transactionCount") or 0),
            total_volume=float(data.get("totalVolume") or 0),
            unique_buyers=int(data.get("uniqueBuyers") or 0),
            first_transaction=parse_timestamp(data.get("firstTransaction")),
            last_transaction=parse_timestamp(data.get("lastTransaction")),
            average_transaction_size=data.get("averageTransactionSize"),
            transactions_last_7_days=int(data.get("transactionsLast7Days") or 0),
            transactions_last_30_days=int(data.get("transactionsLast30Days") or 0),
        )


@dataclass
class TransactionsPage:
    transactions: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None
    total_count: Optional[int] = None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 to an aware datetime; offset-less values are taken as UTC."""
    if not value:
        return None
    dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# =============================================
# CLIENT
# =============================================

class CDPClient:
    """
    Args:
        api_key: CDP API key name (JWT issuer and key id)
        api_secret: EC private key, PEM
        http: AsyncClient whose base_url points at the CDP API
        sleep / clock: injectable for tests
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        http: httpx.AsyncClient,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.http = http
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._sleep = sleep
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    # ── Auth ──────────────────────────────────────

    def _mint_token(self, now: float) -> str:
        issued = int(now)
        claims = {
            "iss": self.api_key,
            "aud": ["cdp.api"],
            "iat": issued,
            "nbf": issued,
            "exp": issued + TOKEN_LIFETIME,
        }
        try:
            return jwt.encode(claims, self.api_secret, algorithm="ES256", headers={"kid": self.api_key})
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise CDPAuthError(f"Failed to generate CDP JWT: {e}") from e

    def get_token(self) -> str:
        now = self._clock()
        if self._token and self._token_expires_at > now + TOKEN_REFRESH_MARGIN:
            return self._token

        self._token = self._mint_token(now)
        self._token_expires_at = now + TOKEN_CACHE_TTL
        logger.debug("cdp_token_minted")
        return self._token

    def clear_token_cache(self) -> None:
        self._token = None
        self._token_expires_at = 0.0

    # ── Transport ─────────────────────────────────

    async def _request(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.get_token()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            response = await self.http.get(path, params=params, headers=headers)
        except httpx.TransportError as e:
            raise CDPNetworkError(f"CDP API: network error: {e}") from e

        if response.status_code == 401:
            self.clear_token_cache()
        if response.status_code >= 400:
            raise _error_for(response)
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def _request_with_retry(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        attempt = 0
        while True:
            try:
                return await self._request(path, params)
            except CDPAPIError as e:
                if not e.is_retryable or attempt >= self.max_retries:
                    logger.warning("cdp_request_failed", path=path, status=e.status_code,
                                   attempts=attempt + 1, error=str(e))
                    raise
                delay = self.backoff_base * (2 ** attempt)
                attempt += 1
                logger.info("cdp_request_retry", path=path, status=e.status_code, attempt=attempt, delay=delay)
                await self._sleep(delay)

    # ── Endpoints ─────────────────────────────────

    async def get_transactions(self, address: str, chain: str, limit: int = 50,
                               cursor: Optional[str] = None) -> TransactionsPage:
        params: Dict[str, Any] = {"address": address, "chain": chain, "limit": str(limit)}
        if cursor:
            params["cursor"] = cursor
        data = await self._request_with_retry(TRANSACTIONS_PATH, params)
        return TransactionsPage(
            transactions=data.get("transactions") or [],
            next_cursor=data.get("nextCursor"),
            total_count=data.get("totalCount"),
        )

    async def iter_transactions(self, address: str, chain: str, page_size: int = 50,
                                max_pages: int = 20) -> AsyncIterator[Dict[str, Any]]:
        """Follow nextCursor until the API stops returning one (or max_pages)."""
        cursor = None
        for _ in range(max_pages):
            page = await self.get_transactions(address, chain, limit=page_size, cursor=cursor)
            for tx in page.transactions:
                yield tx
            if not page.next_cursor:
                return
            cursor = page.next_cursor

    async def get_metrics(self, address: str, chain: str) -> CDPMetrics:
        data = await self._request_with_retry(METRICS_PATH, {"address": address, "chain": chain})
        return CDPMetrics.from_json(data)

    async def health_check(self) -> bool:
        """True when a token can be minted with the configured key."""
        try:
            self.get_token()
            return True
        except CDPAPIError as e:
            logger.warning("cdp_health_check_failed", error=str(e))
            return False
