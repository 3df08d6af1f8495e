"""Unit tests for integer fixed-point helpers."""

from decimal import Decimal

import pytest

from comet_engine.core.constants import FACTOR_SCALE, MAX_INT104, MAX_UINT64, MIN_INT104, PRICE_SCALE
from comet_engine.core.errors import InvalidInt104, InvalidUInt64, InvalidUInt128
from comet_engine.core.math import (
    ceil_div,
    check_int104,
    div_factor,
    div_price,
    factor,
    from_scaled,
    mul_factor,
    mul_price,
    price,
    safe64,
    safe128,
)


class TestScaling:
    """Tests for human-readable conversions."""

    def test_factor(self):
        """Test fractions convert to factor scale exactly."""
        assert factor("0.8") == 8 * 10**17
        assert factor(1) == FACTOR_SCALE
        assert factor(Decimal("0.000000000000000001")) == 1

    def test_price(self):
        """Test USD prices convert to 8-decimal price scale."""
        assert price("175") == 175 * PRICE_SCALE
        assert price("0.5") == 50_000_000

    def test_from_scaled(self):
        """Test scaled ints convert back to Decimal."""
        assert from_scaled(1_500_000, 10**6) == Decimal("1.5")


class TestArithmetic:
    """Tests for factor and price arithmetic."""

    def test_mul_div_factor(self):
        """Test factor multiply and divide truncate toward zero."""
        assert mul_factor(1000, factor("0.85")) == 850
        assert mul_factor(7, factor("0.5")) == 3
        assert div_factor(850, factor("0.85")) == 1000

    def test_mul_price(self):
        """Test 2 WETH at $3000 is $6000 in price scale."""
        assert mul_price(2 * 10**18, price("3000"), 10**18) == 6000 * PRICE_SCALE

    def test_div_price(self):
        """Test $6000 buys 6000 USDC at $1."""
        assert div_price(6000 * PRICE_SCALE, price("1"), 10**6) == 6000 * 10**6

    def test_ceil_div(self):
        """Test ceiling division."""
        assert ceil_div(7, 2) == 4
        assert ceil_div(6, 2) == 3
        assert ceil_div(0, 5) == 0


class TestWidthChecks:
    """Tests for range-checked narrowing."""

    def test_safe64(self):
        """Test uint64 bounds."""
        assert safe64(MAX_UINT64) == MAX_UINT64
        with pytest.raises(InvalidUInt64):
            safe64(MAX_UINT64 + 1)
        with pytest.raises(InvalidUInt64):
            safe64(-1)

    def test_safe128_rejects_negative(self):
        """Test negative balances are rejected."""
        with pytest.raises(InvalidUInt128):
            safe128(-1)

    def test_check_int104(self):
        """Test signed principal bounds."""
        assert check_int104(MIN_INT104) == MIN_INT104
        assert check_int104(MAX_INT104) == MAX_INT104
        with pytest.raises(InvalidInt104):
            check_int104(MAX_INT104 + 1)
        with pytest.raises(InvalidInt104):
            check_int104(MIN_INT104 - 1)
