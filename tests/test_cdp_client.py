"""
CDP client: JWT minting, token cache, error mapping and bounded retry.
"""
from __future__ import annotations

import time

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from agentscore.data.x402.cdp_client import (
    METRICS_PATH, TRANSACTIONS_PATH, CDPAuthError, CDPBadRequest, CDPClient, CDPNetworkError,
    CDPRateLimited, CDPServerError,
)

from tests.conftest import BASE_ADDR, mock_client

API_KEY = "organizations/test/apiKeys/key-1"


@pytest.fixture(scope="module")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="module")
def pem(ec_key) -> str:
    return ec_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


class Sleeps(list):
    async def __call__(self, delay: float) -> None:
        self.append(delay)


def _client(pem: str, handler, sleeps=None, clock=time.time) -> CDPClient:
    http = mock_client(handler, base_url="https://cdp.test")
    return CDPClient(API_KEY, pem, http, sleep=sleeps if sleeps is not None else Sleeps(), clock=clock)


def _metrics_body() -> dict:
    return {
        "transactionCount": 42,
        "totalVolume": "1234.5",
        "uniqueBuyers": 7,
        "firstTransaction": "2025-01-01T00:00:00Z",
        "lastTransaction": "2025-05-30T12:00:00Z",
        "transactionsLast7Days": 3,
        "transactionsLast30Days": 11,
    }


# ── Auth ──────────────────────────────────────────

def test_token_is_a_valid_es256_jwt(ec_key, pem):
    cdp = _client(pem, lambda r: httpx.Response(200))
    token = cdp.get_token()

    assert jwt.get_unverified_header(token)["kid"] == API_KEY
    claims = jwt.decode(token, ec_key.public_key(), algorithms=["ES256"], audience="cdp.api")
    assert claims["iss"] == API_KEY
    assert claims["exp"] - claims["iat"] == 120
    assert claims["nbf"] == claims["iat"]


def test_token_is_cached_until_near_expiry(pem):
    clock = [1_700_000_000.0]
    cdp = _client(pem, lambda r: httpx.Response(200), clock=lambda: clock[0])

    first = cdp.get_token()
    clock[0] += 49 * 60
    assert cdp.get_token() == first

    clock[0] += 2 * 60          # inside the 5 minute refresh margin
    refreshed = cdp.get_token()
    assert refreshed != first
    assert jwt.decode(refreshed, options={"verify_signature": False})["iat"] == int(clock[0])


def test_bad_key_is_an_auth_error():
    cdp = _client("not a pem", lambda r: httpx.Response(200))
    with pytest.raises(CDPAuthError):
        cdp.get_token()


async def test_health_check(pem):
    assert await _client(pem, lambda r: httpx.Response(200)).health_check() is True
    assert await _client("garbage", lambda r: httpx.Response(200)).health_check() is False


# ── Requests ──────────────────────────────────────

async def test_get_metrics(pem):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_metrics_body())

    metrics = await _client(pem, handler).get_metrics(BASE_ADDR, "base")

    assert metrics.transaction_count == 42
    assert metrics.total_volume == 1234.5
    assert metrics.first_transaction.year == 2025
    assert seen[0].url.path == METRICS_PATH
    assert seen[0].url.params["chain"] == "base"
    assert seen[0].headers["Authorization"].startswith("Bearer ")


async def test_iter_transactions_follows_cursor(pem):
    pages = {
        None: {"transactions": [{"hash": "0x1"}, {"hash": "0x2"}], "nextCursor": "c1"},
        "c1": {"transactions": [{"hash": "0x3"}]},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == TRANSACTIONS_PATH
        return httpx.Response(200, json=pages[request.url.params.get("cursor")])

    cdp = _client(pem, handler)
    hashes = [tx["hash"] async for tx in cdp.iter_transactions(BASE_ADDR, "base", page_size=2)]
    assert hashes == ["0x1", "0x2", "0x3"]


async def test_empty_body_is_empty_page(pem):
    page = await _client(pem, lambda r: httpx.Response(204)).get_transactions(BASE_ADDR, "base")
    assert page.transactions == []
    assert page.next_cursor is None


# ── Retry policy ──────────────────────────────────

async def test_server_errors_retry_with_backoff_then_fail(pem):
    calls = []
    sleeps = Sleeps()

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, json={"error": "unavailable"})

    with pytest.raises(CDPServerError) as exc:
        await _client(pem, handler, sleeps).get_metrics(BASE_ADDR, "base")

    assert len(calls) == 4
    assert sleeps == [1.0, 2.0, 4.0]
    assert exc.value.detail == {"error": "unavailable"}


async def test_rate_limit_then_success(pem):
    responses = [
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(200, json=_metrics_body()),
    ]
    sleeps = Sleeps()

    metrics = await _client(pem, lambda r: responses.pop(0), sleeps).get_metrics(BASE_ADDR, "base")

    assert metrics.unique_buyers == 7
    assert sleeps == [1.0]


async def test_rate_limit_error_carries_retry_after(pem):
    cdp = _client(pem, lambda r: httpx.Response(429, headers={"Retry-After": "30"}))
    cdp.max_retries = 0
    with pytest.raises(CDPRateLimited) as exc:
        await cdp.get_metrics(BASE_ADDR, "base")
    assert exc.value.retry_after == 30
    assert exc.value.is_retryable


async def test_network_errors_are_retried(pem):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection reset")
        return httpx.Response(200, json=_metrics_body())

    sleeps = Sleeps()
    await _client(pem, handler, sleeps).get_metrics(BASE_ADDR, "base")
    assert sleeps == [1.0, 2.0]


async def test_network_error_after_retries(pem):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow")

    with pytest.raises(CDPNetworkError):
        await _client(pem, handler).get_metrics(BASE_ADDR, "base")


async def test_unauthorized_is_not_retried_and_clears_token(pem):
    calls = []
    sleeps = Sleeps()

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401, json={"message": "expired"})

    cdp = _client(pem, handler, sleeps)
    cdp.get_token()
    with pytest.raises(CDPAuthError) as exc:
        await cdp.get_metrics(BASE_ADDR, "base")

    assert exc.value.status_code == 401
    assert len(calls) == 1
    assert sleeps == []
    assert cdp._token is None


@pytest.mark.parametrize("status,error", [
    (400, CDPBadRequest),
    (404, CDPBadRequest),
    (403, CDPAuthError),
])
async def test_client_errors_are_not_retried(pem, status, error):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status, text="nope")

    with pytest.raises(error) as exc:
        await _client(pem, handler).get_transactions(BASE_ADDR, "base")

    assert len(calls) == 1
    assert not exc.value.is_retryable
    assert exc.value.detail == {"body": "nope"}
