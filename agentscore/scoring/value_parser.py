"""
AgentScore — Fixed-Point Value Parser

ERC-8004 registries store feedback as a signed int128 `value` plus a uint8
`valueDecimals`, meaning value / 10^valueDecimals:

    value=87,     decimals=0  →  87       (star rating)
    value=9977,   decimals=2  →  99.77    (uptime %)
    value=-32,    decimals=1  →  -3.2     (trading yield %)
    value=556000, decimals=0  →  556000   (revenue USD)

FixedPoint keeps the integer pair exact through aggregation. Floats only
appear at the display/scoring boundary (to_human, FixedPoint.to_float).

Nothing here raises for unknown tags: they fall back to plain numbers.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, localcontext
from enum import Enum
from fractions import Fraction
from typing import Dict, Iterable, Optional, Union

MAX_DECIMALS = 18
BYTES32_LEN = 32


class StandardTag(str, Enum):
    STARRED            = "starred"
    REACHABLE          = "reachable"
    OWNER_VERIFIED     = "ownerVerified"
    UPTIME             = "uptime"
    SUCCESS_RATE       = "successRate"
    RESPONSE_TIME      = "responseTime"
    BLOCKTIME_FRESHNESS = "blocktimeFreshness"
    REVENUES           = "revenues"
    TRADING_YIELD      = "tradingYield"


_BY_LOWER: Dict[str, StandardTag] = {t.value.lower(): t for t in StandardTag}

# Canonical decimal precision per standard tag
TAG_DECIMALS: Dict[StandardTag, int] = {
    StandardTag.UPTIME: 2,
    StandardTag.SUCCESS_RATE: 2,
    StandardTag.TRADING_YIELD: 2,
    StandardTag.REVENUES: 0,
    StandardTag.RESPONSE_TIME: 0,
    StandardTag.BLOCKTIME_FRESHNESS: 0,
    StandardTag.STARRED: 1,
    StandardTag.REACHABLE: 0,
    StandardTag.OWNER_VERIFIED: 0,
}
DEFAULT_DECIMALS = 2

TAG_UNITS: Dict[StandardTag, str] = {
    StandardTag.UPTIME: "%",
    StandardTag.SUCCESS_RATE: "%",
    StandardTag.TRADING_YIELD: "%",
    StandardTag.REVENUES: "USD",
    StandardTag.RESPONSE_TIME: "ms",
    StandardTag.BLOCKTIME_FRESHNESS: "blocks",
    StandardTag.STARRED: "stars",
    StandardTag.REACHABLE: "status",
    StandardTag.OWNER_VERIFIED: "status",
}


# ── Tag ───────────────────────────────────────────

@dataclass(frozen=True)
class Tag:
    """
    A registry tag. Current registries use variable-length strings; the
    legacy encoding (still used by the validation registry) is a
    NUL-padded bytes32.
    """
    name: str = ""

    @classmethod
    def from_bytes32(cls, raw: Union[bytes, str, None]) -> "Tag":
        """Decode a legacy bytes32 tag (raw bytes or 0x-hex)."""
        if not raw:
            return cls("")
        if isinstance(raw, str):
            hex_str = raw[2:] if raw.startswith("0x") else raw
            try:
                raw = bytes.fromhex(hex_str)
            except ValueError:
                return cls(raw if isinstance(raw, str) else "")
        return cls(raw.rstrip(b"\x00").decode("utf-8", errors="replace").replace("\x00", ""))

    def to_bytes32(self) -> bytes:
        """Encode to the legacy bytes32 form. Longer names are truncated."""
        encoded = self.name.encode("utf-8")[:BYTES32_LEN]
        return encoded.ljust(BYTES32_LEN, b"\x00")

    def to_hex32(self) -> str:
        return "0x" + self.to_bytes32().hex()

    @property
    def standard(self) -> Optional[StandardTag]:
        return _BY_LOWER.get(self.name.lower())

    @property
    def is_empty(self) -> bool:
        return not self.name

    def matches(self, other: Union["Tag", StandardTag, str]) -> bool:
        return self.name.lower() == _as_tag(other).name.lower()

    def __str__(self) -> str:
        return self.name


def _as_tag(tag: Union[Tag, StandardTag, str, None]) -> Tag:
    if isinstance(tag, Tag):
        return tag
    if isinstance(tag, StandardTag):
        return Tag(tag.value)
    return Tag(tag or "")


# ── Fixed-point conversion ───────────────────────

def to_human(value: int, decimals: int) -> float:
    """value / 10^decimals as a float (correctly rounded, sign preserved)."""
    if decimals == 0:
        return float(value)
    return float(Fraction(int(value), 10 ** decimals))


def to_scaled(num: float, decimals: int) -> int:
    """round(num * 10^decimals), half away from zero. NaN and infinities give 0."""
    if not math.isfinite(num):
        return 0
    with localcontext() as ctx:
        ctx.prec = 80
        scaled = Decimal(repr(float(num))).scaleb(decimals)
        return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FixedPoint:
    """Exact signed fixed-point number: value / 10^decimals."""
    value: int = 0
    decimals: int = 0

    def __post_init__(self):
        if not 0 <= self.decimals <= MAX_DECIMALS:
            raise ValueError(f"decimals must be within 0..{MAX_DECIMALS}, got {self.decimals}")

    @classmethod
    def from_float(cls, num: float, decimals: int) -> "FixedPoint":
        return cls(to_scaled(num, decimals), decimals)

    def to_fraction(self) -> Fraction:
        return Fraction(self.value, 10 ** self.decimals)

    def to_float(self) -> float:
        return to_human(self.value, self.decimals)

    def rescale(self, decimals: int) -> "FixedPoint":
        """Change precision. Going down rounds half away from zero."""
        if decimals == self.decimals:
            return self
        if decimals > self.decimals:
            return FixedPoint(self.value * 10 ** (decimals - self.decimals), decimals)
        with localcontext() as ctx:
            ctx.prec = 80
            scaled = Decimal(self.value).scaleb(decimals - self.decimals)
            return FixedPoint(int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP)), decimals)

    def __add__(self, other: "FixedPoint") -> "FixedPoint":
        if not isinstance(other, FixedPoint):
            return NotImplemented
        decimals = max(self.decimals, other.decimals)
        return FixedPoint(self.rescale(decimals).value + other.rescale(decimals).value, decimals)

    def __neg__(self) -> "FixedPoint":
        return FixedPoint(-self.value, self.decimals)

    @property
    def is_negative(self) -> bool:
        return self.value < 0


def fixed_sum(values: Iterable[FixedPoint]) -> FixedPoint:
    total = FixedPoint(0, 0)
    for v in values:
        total = total + v
    return total


def fixed_mean(values: Iterable[FixedPoint]) -> float:
    """Exact mean, converted to float once. Empty input → 0.0."""
    items = list(values)
    if not items:
        return 0.0
    total = sum((v.to_fraction() for v in items), Fraction(0))
    return float(total / len(items))


# ── Tag policy ────────────────────────────────────

def decimals_for_tag(tag: Union[Tag, StandardTag, str, None]) -> int:
    standard = _as_tag(tag).standard
    if standard is None:
        return DEFAULT_DECIMALS
    return TAG_DECIMALS[standard]


def unit_for_tag(tag: Union[Tag, StandardTag, str, None]) -> str:
    standard = _as_tag(tag).standard
    if standard is None:
        return ""
    return TAG_UNITS[standard]


def format_value_for_tag(num: float, tag: Union[Tag, StandardTag, str, None]) -> FixedPoint:
    """Encode a human number with the tag's canonical precision."""
    standard = _as_tag(tag).standard
    if standard in (StandardTag.REACHABLE, StandardTag.OWNER_VERIFIED):
        return FixedPoint(1 if num > 0 else 0, 0)
    return FixedPoint.from_float(num, decimals_for_tag(tag))


def format_display_value(num: float, tag: Union[Tag, StandardTag, str, None]) -> str:
    standard = _as_tag(tag).standard

    if standard in (StandardTag.UPTIME, StandardTag.SUCCESS_RATE):
        return f"{num:.2f}%"
    if standard is StandardTag.TRADING_YIELD:
        return f"+{num:.2f}%" if num >= 0 else f"{num:.2f}%"
    if standard is StandardTag.REVENUES:
        if float(num).is_integer():
            return f"${int(num):,}"
        return f"${num:,.2f}"
    if standard is StandardTag.RESPONSE_TIME:
        return f"{round(num)}ms"
    if standard is StandardTag.BLOCKTIME_FRESHNESS:
        return f"{round(num)} blocks"
    if standard is StandardTag.STARRED:
        return f"{num:.1f} ★"
    if standard in (StandardTag.REACHABLE, StandardTag.OWNER_VERIFIED):
        return "Verified" if num > 0 else "Unverified"

    if float(num).is_integer():
        return f"{int(num)}"
    return f"{num:.2f}"


@dataclass(frozen=True)
class ParsedValue:
    human_value: float
    display_value: str
    unit: str


def parse_tagged_value(value: int, decimals: int, tag: Union[Tag, StandardTag, str, None]) -> ParsedValue:
    """Human value, display string and unit for one feedback value."""
    human = to_human(value, decimals)
    return ParsedValue(
        human_value=human,
        display_value=format_display_value(human, tag),
        unit=unit_for_tag(tag),
    )
