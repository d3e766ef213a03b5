"""
AgentScore — Source Outcomes

Every data source call ends in one of three states:

    ok        the source answered
    degraded  the source failed (or had nothing) and a default stands in
    fatal     the source refused outright (auth / bad request); never retried

Resolver tiers hand Outcomes to each other. Public resolver and aggregator
methods unwrap them, so callers always get a usable value.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class OutcomeStatus(str, Enum):
    OK       = "ok"
    DEGRADED = "degraded"
    FATAL    = "fatal"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    status: OutcomeStatus
    value: Optional[T] = None
    source: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T, source: str = "") -> "Outcome[T]":
        return cls(OutcomeStatus.OK, value, source)

    @classmethod
    def degraded(cls, value: Optional[T] = None, source: str = "",
                 error: Optional[BaseException | str] = None) -> "Outcome[T]":
        return cls(OutcomeStatus.DEGRADED, value, source, _err(error))

    @classmethod
    def fatal(cls, source: str = "", error: Optional[BaseException | str] = None) -> "Outcome[T]":
        return cls(OutcomeStatus.FATAL, None, source, _err(error))

    @property
    def is_ok(self) -> bool:
        return self.status is OutcomeStatus.OK

    def unwrap_or(self, default: T) -> T:
        if self.status is OutcomeStatus.FATAL or self.value is None:
            return default
        return self.value


def _err(error: Optional[BaseException | str]) -> Optional[str]:
    if error is None:
        return None
    if isinstance(error, BaseException):
        return f"{type(error).__name__}: {error}"
    return error


async def guarded(source: str, coro: Awaitable[T], timeout: Optional[float] = None) -> Outcome[T]:
    """Await a source call, turning any failure (or timeout) into a degraded Outcome."""
    try:
        if timeout is not None:
            value = await asyncio.wait_for(coro, timeout=timeout)
        else:
            value = await coro
        return Outcome.ok(value, source)
    except Exception as e:
        logger.warning("source_unavailable", source=source, error=f"{type(e).__name__}: {e}")
        return Outcome.degraded(None, source, e)
