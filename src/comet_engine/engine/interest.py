"""Utilization-driven interest rate curve and index accrual."""

import logging
from decimal import Decimal
from typing import Tuple

import numpy as np

from comet_engine.core.constants import BASE_INDEX_SCALE, FACTOR_SCALE, SECONDS_PER_YEAR
from comet_engine.core.math import mul_factor, safe64
from comet_engine.core.models.market import MarketConfig, TotalsBasic

logger = logging.getLogger(__name__)


class InterestRateModel:
    """
    Two-segment piecewise-linear rate curve with a kink.

    Below (or at) the kink the rate grows with ``slope_low``; past the kink
    it grows with ``slope_high``. The supply and borrow sides each have
    their own curve. Per-year parameters are stored per second, so all
    rates returned here are per-second values in factor scale.
    """

    def __init__(self, config: MarketConfig):
        self.config = config
        self.supply_kink = config.supply_kink
        self.supply_slope_low = config.supply_per_year_interest_rate_slope_low // SECONDS_PER_YEAR
        self.supply_slope_high = config.supply_per_year_interest_rate_slope_high // SECONDS_PER_YEAR
        self.supply_base = config.supply_per_year_interest_rate_base // SECONDS_PER_YEAR
        self.borrow_kink = config.borrow_kink
        self.borrow_slope_low = config.borrow_per_year_interest_rate_slope_low // SECONDS_PER_YEAR
        self.borrow_slope_high = config.borrow_per_year_interest_rate_slope_high // SECONDS_PER_YEAR
        self.borrow_base = config.borrow_per_year_interest_rate_base // SECONDS_PER_YEAR

    @staticmethod
    def _curve(utilization: int, base: int, kink: int, slope_low: int, slope_high: int) -> int:
        if utilization <= kink:
            return base + mul_factor(slope_low, utilization)
        return base + mul_factor(slope_low, kink) + mul_factor(slope_high, utilization - kink)

    def utilization(self, totals: TotalsBasic) -> int:
        """
        Present-value borrows over present-value supply, in factor scale.

        Args:
            totals: Market aggregates and indices

        Returns:
            Utilization (0 when nothing is supplied)
        """
        total_supply = totals.total_supply_base * totals.base_supply_index // BASE_INDEX_SCALE
        total_borrow = totals.total_borrow_base * totals.base_borrow_index // BASE_INDEX_SCALE
        if total_supply == 0:
            return 0
        return total_borrow * FACTOR_SCALE // total_supply

    def supply_rate(self, utilization: int) -> int:
        return self._curve(
            utilization, self.supply_base, self.supply_kink, self.supply_slope_low, self.supply_slope_high
        )

    def borrow_rate(self, utilization: int) -> int:
        return self._curve(
            utilization, self.borrow_base, self.borrow_kink, self.borrow_slope_low, self.borrow_slope_high
        )

    def accrued_interest_indices(self, totals: TotalsBasic, time_elapsed: int) -> Tuple[int, int]:
        """
        Indices after ``time_elapsed`` seconds, without mutating ``totals``.

        Index growth is ``index * rate * dt`` rounded toward zero, so an
        index never decreases.
        """
        supply_index = totals.base_supply_index
        borrow_index = totals.base_borrow_index
        if time_elapsed > 0:
            utilization = self.utilization(totals)
            supply_index += safe64(mul_factor(supply_index, self.supply_rate(utilization) * time_elapsed))
            borrow_index += safe64(mul_factor(borrow_index, self.borrow_rate(utilization) * time_elapsed))
        return supply_index, borrow_index

    def accrue(self, totals: TotalsBasic, now: int) -> bool:
        """
        Bring indices up to ``now``.

        Tracking indices only move while the relevant total principal is at
        least ``base_min_for_rewards``.

        Args:
            totals: Market aggregates, updated in place
            now: Current timestamp in seconds

        Returns:
            True if anything was accrued
        """
        time_elapsed = now - totals.last_accrual_time
        if time_elapsed <= 0:
            return False

        totals.base_supply_index, totals.base_borrow_index = self.accrued_interest_indices(totals, time_elapsed)

        min_for_rewards = self.config.base_min_for_rewards
        base_scale = self.config.base_scale
        if totals.total_supply_base > 0 and totals.total_supply_base >= min_for_rewards:
            totals.tracking_supply_index += safe64(
                self.config.base_tracking_supply_speed * time_elapsed * base_scale // totals.total_supply_base
            )
        if totals.total_borrow_base > 0 and totals.total_borrow_base >= min_for_rewards:
            totals.tracking_borrow_index += safe64(
                self.config.base_tracking_borrow_speed * time_elapsed * base_scale // totals.total_borrow_base
            )
        totals.last_accrual_time = now

        logger.debug(
            f"Accrued {time_elapsed}s: supply index {totals.base_supply_index}, "
            f"borrow index {totals.base_borrow_index}"
        )
        return True

    def rate_curve(self, num_points: int = 100) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Generate the annualized rate curve for display.

        Args:
            num_points: Number of utilization steps between 0 and 1

        Returns:
            Tuple of (utilizations, supply_aprs, borrow_aprs) as float arrays
        """
        utilizations = np.linspace(0.0, 1.0, num_points + 1)

        def annualize(base: int, kink: int, low: int, high: int) -> np.ndarray:
            base_f = base * SECONDS_PER_YEAR / FACTOR_SCALE
            low_f = low * SECONDS_PER_YEAR / FACTOR_SCALE
            high_f = high * SECONDS_PER_YEAR / FACTOR_SCALE
            kink_f = kink / FACTOR_SCALE
            return np.where(
                utilizations <= kink_f,
                base_f + low_f * utilizations,
                base_f + low_f * kink_f + high_f * (utilizations - kink_f),
            )

        supply = annualize(self.supply_base, self.supply_kink, self.supply_slope_low, self.supply_slope_high)
        borrow = annualize(self.borrow_base, self.borrow_kink, self.borrow_slope_low, self.borrow_slope_high)
        return utilizations, supply, borrow

    @staticmethod
    def annualize(rate_per_second: int) -> Decimal:
        """Per-second factor-scaled rate as a yearly fraction."""
        return Decimal(rate_per_second * SECONDS_PER_YEAR) / Decimal(FACTOR_SCALE)

    @staticmethod
    def apr_to_apy(apr: Decimal, compounding_periods: int = 365) -> Decimal:
        """
        Convert APR to APY with given compounding periods.

        APY = (1 + APR/n)^n - 1
        """
        if apr <= Decimal("0"):
            return Decimal("0")

        rate_per_period = apr / Decimal(str(compounding_periods))
        return (Decimal("1") + rate_per_period) ** compounding_periods - Decimal("1")
