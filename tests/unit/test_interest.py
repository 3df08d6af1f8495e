"""Unit tests for the interest rate model."""

from decimal import Decimal

import numpy as np
import pytest

from comet_engine.core.constants import BASE_INDEX_SCALE, FACTOR_SCALE
from comet_engine.core.math import factor
from comet_engine.core.models import MarketConfig, TotalsBasic
from comet_engine.engine.interest import InterestRateModel


@pytest.fixture
def config(settings) -> MarketConfig:
    return MarketConfig.from_settings(
        settings,
        governor="governor",
        pause_guardian="pause_guardian",
        base_token="USDC",
        base_decimals=6,
        base_token_price_feed="USDC",
    )


@pytest.fixture
def model(config) -> InterestRateModel:
    return InterestRateModel(config)


def yearly(rate_per_second: int) -> float:
    return float(InterestRateModel.annualize(rate_per_second))


class TestRates:
    """Tests for the kinked rate curve."""

    def test_rates_below_kink(self, model):
        """Test supply 0.04 * 0.5 and borrow 0.01 + 0.05 * 0.5 at 50% utilization."""
        utilization = factor("0.5")
        assert yearly(model.supply_rate(utilization)) == pytest.approx(0.02, abs=1e-6)
        assert yearly(model.borrow_rate(utilization)) == pytest.approx(0.035, abs=1e-6)

    def test_rates_above_kink(self, model):
        """Test the steep slope applies only past the kink."""
        utilization = factor("0.85")
        # 0.04 * 0.8 + 0.4 * 0.05
        assert yearly(model.supply_rate(utilization)) == pytest.approx(0.052, abs=1e-6)
        # 0.01 + 0.05 * 0.8 + 0.3 * 0.05
        assert yearly(model.borrow_rate(utilization)) == pytest.approx(0.065, abs=1e-6)

    def test_rate_at_kink_uses_low_slope(self, model):
        """Test utilization exactly at the kink stays on the low segment."""
        kink = factor("0.8")
        assert model.supply_rate(kink) == model.supply_base + kink * model.supply_slope_low // FACTOR_SCALE

    def test_zero_utilization(self, model):
        """Test only base rates apply with nothing borrowed."""
        assert model.supply_rate(0) == 0
        assert yearly(model.borrow_rate(0)) == pytest.approx(0.01, abs=1e-6)


class TestUtilization:
    """Tests for utilization."""

    def test_half_utilized(self, model):
        totals = TotalsBasic(total_supply_base=100 * 10**6, total_borrow_base=50 * 10**6)
        assert model.utilization(totals) == factor("0.5")

    def test_no_supply(self, model):
        """Test utilization is zero when nothing is supplied."""
        assert model.utilization(TotalsBasic(total_borrow_base=10)) == 0


class TestAccrue:
    """Tests for index accrual."""

    def test_no_time_elapsed_is_noop(self, model):
        """Test accrue at the last accrual time changes nothing."""
        totals = TotalsBasic(total_supply_base=10**12, total_borrow_base=5 * 10**11, last_accrual_time=1000)
        before = totals.to_dict()

        assert model.accrue(totals, 1000) is False
        assert totals.to_dict() == before

    def test_indices_grow(self, model):
        """Test a year of accrual at 50% utilization."""
        totals = TotalsBasic(total_supply_base=10**12, total_borrow_base=5 * 10**11, last_accrual_time=0)

        assert model.accrue(totals, 365 * 24 * 3600) is True
        assert totals.last_accrual_time == 365 * 24 * 3600
        assert totals.base_supply_index / BASE_INDEX_SCALE == pytest.approx(1.02, abs=1e-6)
        assert totals.base_borrow_index / BASE_INDEX_SCALE == pytest.approx(1.035, abs=1e-6)

    def test_indices_never_decrease(self, model):
        """Test indices are non-decreasing over many small steps."""
        totals = TotalsBasic(total_supply_base=10**12, total_borrow_base=9 * 10**11, last_accrual_time=0)
        supply, borrow = totals.base_supply_index, totals.base_borrow_index

        for now in range(1, 200, 7):
            model.accrue(totals, now)
            assert totals.base_supply_index >= supply
            assert totals.base_borrow_index >= borrow
            supply, borrow = totals.base_supply_index, totals.base_borrow_index

    def test_tracking_index_respects_minimum(self, model):
        """Test tracking indices only move with enough principal."""
        totals = TotalsBasic(total_supply_base=10**9, total_borrow_base=10, last_accrual_time=0)

        model.accrue(totals, 100)

        # speed 1e15 * 100s * base scale 1e6 / total 1e9
        assert totals.tracking_supply_index == 10**14
        assert totals.tracking_borrow_index == 0

    def test_view_does_not_mutate(self, model):
        """Test accrued_interest_indices leaves totals untouched."""
        totals = TotalsBasic(total_supply_base=10**12, total_borrow_base=5 * 10**11, last_accrual_time=0)
        supply_index, borrow_index = model.accrued_interest_indices(totals, 3600)

        assert borrow_index > totals.base_borrow_index
        assert supply_index > totals.base_supply_index
        assert totals.last_accrual_time == 0


class TestRateCurve:
    """Tests for display helpers."""

    def test_rate_curve_shape(self, model):
        utilizations, supply, borrow = model.rate_curve(10)

        assert len(utilizations) == 11
        assert supply[0] == pytest.approx(0.0)
        assert borrow[0] == pytest.approx(0.01, abs=1e-6)
        assert borrow[-1] == pytest.approx(0.01 + 0.05 * 0.8 + 0.3 * 0.2, abs=1e-6)
        assert np.all(np.diff(supply) >= 0)
        assert np.all(np.diff(borrow) >= 0)

    def test_apr_to_apy(self):
        apy = InterestRateModel.apr_to_apy(Decimal("0.05"))
        assert Decimal("0.0512") < apy < Decimal("0.0513")
        assert InterestRateModel.apr_to_apy(Decimal("0")) == Decimal("0")
