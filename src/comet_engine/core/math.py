"""Integer fixed-point helpers.

All functions operate on plain Python ints. ``//`` floors toward negative
infinity, so callers pass magnitudes wherever the rounding direction matters.
"""

from decimal import Decimal
from typing import Union

from comet_engine.core.constants import (
    FACTOR_SCALE,
    MAX_INT104,
    MAX_UINT64,
    MAX_UINT104,
    MAX_UINT128,
    MIN_INT104,
    PRICE_SCALE,
)
from comet_engine.core.errors import (
    InvalidInt104,
    InvalidUInt64,
    InvalidUInt104,
    InvalidUInt128,
)

Number = Union[int, str, float, Decimal]


def to_scaled(value: Number, scale: int) -> int:
    """Convert a human-readable number to an int in ``scale`` (truncating)."""
    return int(Decimal(str(value)) * scale)


def factor(value: Number) -> int:
    """Express a fraction such as ``"0.8"`` in factor scale."""
    return to_scaled(value, FACTOR_SCALE)


def price(value: Number) -> int:
    """Express a USD price such as ``"175"`` in price scale."""
    return to_scaled(value, PRICE_SCALE)


def from_scaled(value: int, scale: int) -> Decimal:
    """Convert a scaled int back to a Decimal for display."""
    return Decimal(value) / Decimal(scale)


def mul_factor(n: int, f: int) -> int:
    return n * f // FACTOR_SCALE


def div_factor(n: int, f: int) -> int:
    return n * FACTOR_SCALE // f


def mul_price(n: int, p: int, from_scale: int) -> int:
    """Value ``n`` units of an asset with ``from_scale`` at price ``p``."""
    return n * p // from_scale


def div_price(n: int, p: int, to_scale: int) -> int:
    """Convert a price-scaled value ``n`` into units of an asset at price ``p``."""
    return n * to_scale // p


def ceil_div(n: int, d: int) -> int:
    """Division rounding up, for non-negative ``n`` and positive ``d``."""
    return -(-n // d)


def safe64(n: int) -> int:
    if n < 0 or n > MAX_UINT64:
        raise InvalidUInt64()
    return n


def safe104(n: int) -> int:
    if n < 0 or n > MAX_UINT104:
        raise InvalidUInt104()
    return n


def safe128(n: int) -> int:
    if n < 0 or n > MAX_UINT128:
        raise InvalidUInt128()
    return n


def check_int104(n: int) -> int:
    """Check that a signed principal fits the stored width."""
    if n < MIN_INT104 or n > MAX_INT104:
        raise InvalidInt104()
    return n
