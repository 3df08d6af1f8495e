"""Collateral risk evaluation and partial-liquidation planning."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from comet_engine.core.constants import FACTOR_SCALE
from comet_engine.core.math import ceil_div, div_price, mul_factor, mul_price
from comet_engine.core.models.asset import AssetConfig
from comet_engine.engine.ledger import present_value

if TYPE_CHECKING:
    from comet_engine.engine.market import MoneyMarket

logger = logging.getLogger(__name__)

# Extra USD (price scale) repaid per eligible asset to absorb rounding
ROUNDING_UNITS_PER_ASSET = 4
MAX_PLAN_ATTEMPTS = 16


class FactorKind(Enum):
    """Which per-asset factor values collateral."""

    BORROW = "borrow_collateral_factor"
    LIQUIDATE = "liquidate_collateral_factor"
    LIQUIDATION = "liquidation_factor"

    def of(self, asset: AssetConfig) -> int:
        return getattr(asset, self.value)


class SplitPolicy(Enum):
    """How a partial liquidation spreads seizure across collateral assets."""

    PROPORTIONAL = "proportional"
    LARGEST_VALUE_FIRST = "largest_value_first"


@dataclass
class CollateralPosition:
    """Priced view of one collateral holding."""

    index: int
    asset: AssetConfig
    balance: int
    price: int

    @property
    def value(self) -> int:
        """Market value in USD (price scale)."""
        return mul_price(self.balance, self.price, self.asset.scale)

    def weighted(self, kind: FactorKind) -> int:
        return mul_factor(self.value, kind.of(self.asset))


@dataclass
class PartialLiquidationPlan:
    """Outcome of planning a partial liquidation for one account."""

    account: str
    debt: int  # base units
    repay_usd: int
    repay_base: int
    assets: List[str] = field(default_factory=list)
    amounts: List[int] = field(default_factory=list)
    usd_values: List[int] = field(default_factory=list)
    new_principal: int = 0

    @property
    def remaining_debt(self) -> int:
        return self.debt - self.repay_base


class RiskEvaluator:
    """
    Solvency predicates over a market's accounts.

    Collateral with a zero factor is skipped without reading its price, so
    an asset with a broken feed can be neutralized by zeroing its factor.
    """

    def __init__(self, market: "MoneyMarket"):
        self.market = market

    # Pricing

    def get_price(self, feed: str) -> int:
        return self.market.feeds[feed].latest_price()

    def base_price(self) -> int:
        return self.get_price(self.market.config.base_token_price_feed)

    def debt_usd(self, address: str) -> int:
        """USD value (price scale) of an account's debt; 0 for suppliers."""
        principal = self.market.state.account(address).signed_principal
        if principal >= 0:
            return 0
        totals = self.market.state.totals
        debt = -present_value(totals.base_supply_index, totals.base_borrow_index, principal)
        return mul_price(debt, self.base_price(), self.market.config.base_scale)

    def positions(self, address: str, kind: Optional[FactorKind] = None) -> List[CollateralPosition]:
        """
        Priced collateral the account holds.

        Args:
            address: Account to inspect
            kind: When given, assets whose factor of this kind is 0 are skipped

        Returns:
            One entry per held asset, in asset-index order
        """
        account = self.market.state.account(address)
        result = []
        for index, asset in enumerate(self.market.config.assets):
            if not account.has_asset(index):
                continue
            if kind is not None and kind.of(asset) == 0:
                continue
            result.append(
                CollateralPosition(index, asset, account.collateral_balance(asset.asset), self.get_price(asset.price_feed))
            )
        return result

    def collateral_value(self, address: str, kind: FactorKind) -> int:
        return sum(p.weighted(kind) for p in self.positions(address, kind))

    def liquidity_by_asset(self, address: str, kind: FactorKind) -> Dict[str, int]:
        """Per-asset contribution to liquidity; zero-factor assets report 0."""
        account = self.market.state.account(address)
        contributions = {}
        for index, asset in enumerate(self.market.config.assets):
            if not account.has_asset(index):
                continue
            if kind.of(asset) == 0:
                contributions[asset.asset] = 0
                continue
            position = CollateralPosition(
                index, asset, account.collateral_balance(asset.asset), self.get_price(asset.price_feed)
            )
            contributions[asset.asset] = position.weighted(kind)
        return contributions

    def liquidity(self, address: str, kind: FactorKind) -> int:
        """Weighted collateral value minus debt value (USD, price scale)."""
        return self.collateral_value(address, kind) - self.debt_usd(address)

    # Predicates

    def is_borrow_collateralized(self, address: str) -> bool:
        if self.market.state.account(address).signed_principal >= 0:
            return True
        return self.liquidity(address, FactorKind.BORROW) >= 0

    def is_liquidatable(self, address: str) -> bool:
        if self.market.state.account(address).signed_principal >= 0:
            return False
        return self.liquidity(address, FactorKind.LIQUIDATE) < 0

    def is_bad_debt(self, address: str) -> bool:
        """Liquidatable, and seizing everything at liquidation value still leaves debt."""
        if not self.is_liquidatable(address):
            return False
        return self.collateral_value(address, FactorKind.LIQUIDATION) < self.debt_usd(address)

    def is_partially_liquidatable(self, address: str) -> bool:
        return self.plan_partial_liquidation(address) is not None

    # Health factors

    def get_liquidation_health_factor(self, address: str) -> int:
        """
        Seizable collateral value at liquidation factors over debt.

        Returns:
            LHF in factor scale, 0 with no debt or no seizable collateral
        """
        debt = self.debt_usd(address)
        if debt == 0:
            return 0
        seizable = self.collateral_value(address, FactorKind.LIQUIDATION)
        if seizable == 0:
            return 0
        return seizable * FACTOR_SCALE // debt

    def get_target_health_factor(self, address: str) -> int:
        """LHF discounted by the storefront coefficient; never above LHF."""
        return mul_factor(self.get_liquidation_health_factor(address), self.market.config.store_front_price_factor)

    # Partial liquidation

    def get_minimal_debt(self, address: str) -> int:
        """
        Base amount a liquidation of ``address`` would repay.

        Returns:
            0 for accounts that are not liquidatable, the whole debt when only
            a full absorb applies, otherwise the partial repay amount
        """
        if not self.is_liquidatable(address):
            return 0
        plan = self.plan_partial_liquidation(address)
        if plan is None:
            return self.market.ledger.borrow_balance_of(address)
        return plan.repay_base

    def collateral_for_minimal_debt(self, address: str) -> Tuple[List[str], List[int]]:
        """
        Collateral a liquidation of ``address`` would seize.

        Returns:
            Parallel (assets, amounts); everything seizable when only a full
            absorb applies, empty when the account is not liquidatable
        """
        if not self.is_liquidatable(address):
            return [], []
        plan = self.plan_partial_liquidation(address)
        if plan is not None:
            return list(plan.assets), list(plan.amounts)
        seizable = self.positions(address, FactorKind.LIQUIDATION)
        return [p.asset.asset for p in seizable], [p.balance for p in seizable]

    def plan_partial_liquidation(self, address: str) -> Optional[PartialLiquidationPlan]:
        """
        Plan the smallest repayment that restores the account.

        The starting repay amount is the larger of ``debt - B * targetHF``
        (``B`` the borrow-factor value of all collateral) and the repay at
        which remaining liquidate-factor value covers remaining debt. The
        resulting seizure is then simulated with exact integer math and
        raised until the post-state is no longer liquidatable.

        Args:
            address: Account to plan for

        Returns:
            The plan, or None when the account needs a full absorb (or is
            not liquidatable at all)
        """
        if not self.is_liquidatable(address) or self.is_bad_debt(address):
            return None

        eligible = [p for p in self.positions(address, FactorKind.LIQUIDATION) if p.balance > 0]
        if not eligible:
            return None

        debt_usd = self.debt_usd(address)
        seizable = sum(p.weighted(FactorKind.LIQUIDATION) for p in eligible)
        eligible_liquidate = sum(p.weighted(FactorKind.LIQUIDATE) for p in eligible)
        if seizable <= eligible_liquidate:
            # Each unit repaid removes at least as much liquidate-factor value
            return None

        total_liquidate = self.collateral_value(address, FactorKind.LIQUIDATE)
        borrow_value = self.collateral_value(address, FactorKind.BORROW)
        target_hf = self.get_target_health_factor(address)

        formula_repay = debt_usd - mul_factor(borrow_value, target_hf)
        margin = seizable - eligible_liquidate
        buffer = ceil_div(ROUNDING_UNITS_PER_ASSET * (len(eligible) + 1) * seizable, margin)
        exit_repay = ceil_div((debt_usd - total_liquidate) * seizable, margin) + buffer

        repay_usd = max(formula_repay, exit_repay)
        step = buffer
        for _ in range(MAX_PLAN_ATTEMPTS):
            if repay_usd >= min(debt_usd, seizable):
                return None
            plan = self._build_plan(address, eligible, seizable, repay_usd)
            if plan is not None and self._plan_restores(address, plan):
                logger.debug(f"Partial liquidation plan for {address}: repay {plan.repay_base}")
                return plan
            repay_usd += step
            step *= 2
        return None

    def _split(self, eligible: List[CollateralPosition], seizable: int, repay_usd: int) -> List[int]:
        policy = SplitPolicy(self.market.split_policy)
        if policy is SplitPolicy.PROPORTIONAL:
            return [p.balance * repay_usd // seizable for p in eligible]

        # Largest liquidation value first; ties keep asset-index order
        amounts = [0] * len(eligible)
        remaining = repay_usd
        order = sorted(range(len(eligible)), key=lambda i: -eligible[i].weighted(FactorKind.LIQUIDATION))
        for i in order:
            if remaining <= 0:
                break
            position = eligible[i]
            weighted = position.weighted(FactorKind.LIQUIDATION)
            if weighted == 0:
                continue
            amount = min(position.balance, ceil_div(remaining * position.balance, weighted))
            amounts[i] = amount
            if amount == position.balance:
                remaining -= weighted
            else:
                remaining = 0
        return amounts

    def _build_plan(
        self,
        address: str,
        eligible: List[CollateralPosition],
        seizable: int,
        repay_usd: int,
    ) -> Optional[PartialLiquidationPlan]:
        config = self.market.config
        totals = self.market.state.totals
        account = self.market.state.account(address)

        plan = PartialLiquidationPlan(
            account=address,
            debt=self.market.ledger.borrow_balance_of(address),
            repay_usd=repay_usd,
            repay_base=0,
        )
        credit_usd = 0
        for position, amount in zip(eligible, self._split(eligible, seizable, repay_usd)):
            if amount <= 0:
                continue
            value = mul_price(amount, position.price, position.asset.scale)
            credit_usd += mul_factor(value, position.asset.liquidation_factor)
            plan.assets.append(position.asset.asset)
            plan.amounts.append(amount)
            plan.usd_values.append(value)

        plan.repay_base = div_price(credit_usd, self.base_price(), config.base_scale)
        if plan.repay_base <= 0:
            return None
        old_balance = present_value(totals.base_supply_index, totals.base_borrow_index, account.signed_principal)
        new_balance = old_balance + plan.repay_base
        if new_balance >= 0 or -new_balance < max(config.base_borrow_min, 1):
            return None
        plan.new_principal = self.market.ledger.principal_value(new_balance)
        return plan

    def _plan_restores(self, address: str, plan: PartialLiquidationPlan) -> bool:
        """Simulate the plan: the account must leave the liquidatable zone with collateral left."""
        account = self.market.state.account(address)
        seized = dict(zip(plan.assets, plan.amounts))
        totals = self.market.state.totals

        remaining_debt = -present_value(totals.base_supply_index, totals.base_borrow_index, plan.new_principal)
        if remaining_debt <= 0:
            return False

        remaining_total = 0
        for asset, balance in account.collateral.items():
            left = balance - seized.get(asset, 0)
            if left < 0:
                return False
            remaining_total += left
        if remaining_total == 0:
            return False

        liquidate_value = 0
        for position in self.positions(address, FactorKind.LIQUIDATE):
            left = position.balance - seized.get(position.asset.asset, 0)
            liquidate_value += mul_factor(
                mul_price(left, position.price, position.asset.scale),
                position.asset.liquidate_collateral_factor,
            )

        debt_usd = mul_price(remaining_debt, self.base_price(), self.market.config.base_scale)
        return liquidate_value >= debt_usd
