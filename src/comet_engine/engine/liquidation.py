"""Full and partial absorption of underwater accounts, and collateral sales."""

import logging
from typing import TYPE_CHECKING, List

from comet_engine.core.constants import FACTOR_SCALE, ZERO_ADDRESS
from comet_engine.core.errors import (
    InsufficientReserves,
    NotForSale,
    NotLiquidatable,
    TooMuchSlippage,
)
from comet_engine.core.math import div_price, mul_factor, mul_price, safe128
from comet_engine.core.models import events
from comet_engine.engine.ledger import present_value_supply, repay_and_supply_amount
from comet_engine.engine.risk import FactorKind, PartialLiquidationPlan

if TYPE_CHECKING:
    from comet_engine.engine.market import MoneyMarket

logger = logging.getLogger(__name__)


class LiquidationEngine:
    """
    Seizes collateral from liquidatable accounts and sells it back.

    Callers hold the market's operation guard and have already accrued.
    """

    def __init__(self, market: "MoneyMarket"):
        self.market = market

    @property
    def risk(self):
        return self.market.risk

    @property
    def ledger(self):
        return self.market.ledger

    def absorb(self, absorber: str, accounts: List[str]) -> None:
        """
        Absorb every account in ``accounts``.

        Args:
            absorber: Address credited with liquidator points
            accounts: Accounts to absorb; all must be liquidatable
        """
        self.market.gate.check_absorb()
        for account in accounts:
            self._absorb_account(absorber, account)

        points = self.market.state.points(absorber)
        points.num_absorbs += 1
        points.num_absorbed += len(accounts)

    def _absorb_account(self, absorber: str, address: str) -> None:
        if not self.risk.is_liquidatable(address):
            raise NotLiquidatable(f"{address} is not liquidatable")

        market = self.market
        config = market.config
        account = market.state.account(address)
        old_principal = account.signed_principal
        old_balance = self.ledger.present_value(old_principal)
        base_price = self.risk.base_price()

        delta_value = 0
        for position in self.risk.positions(address, FactorKind.LIQUIDATION):
            asset = position.asset.asset
            seize_amount = position.balance
            self.ledger.set_collateral(address, asset, 0)
            self.ledger.change_total_collateral(asset, -seize_amount)

            value = position.value
            delta_value += mul_factor(value, position.asset.liquidation_factor)
            market.events.emit(events.AbsorbCollateral(absorber, address, asset, seize_amount, value))

        delta_balance = div_price(delta_value, base_price, config.base_scale)
        new_balance = old_balance + delta_balance
        if new_balance < 0:
            # Remaining shortfall is written off against reserves
            new_balance = 0

        new_principal = self.ledger.principal_value(new_balance)
        self.ledger.update_base_principal(address, new_principal)

        repay_amount, supply_amount = repay_and_supply_amount(old_principal, new_principal)
        self.ledger.apply_aggregates(supply_amount, -repay_amount)

        base_paid_out = new_balance - old_balance
        market.events.emit(
            events.AbsorbDebt(absorber, address, base_paid_out, mul_price(base_paid_out, base_price, config.base_scale))
        )
        if new_principal > 0:
            market.events.emit(
                events.Transfer(
                    ZERO_ADDRESS,
                    address,
                    present_value_supply(market.state.totals.base_supply_index, new_principal),
                )
            )
        logger.info(
            f"Absorbed {address} by {absorber}: paid out {base_paid_out}, new principal {new_principal}"
        )

    def absorb_partial(self, absorber: str, address: str) -> PartialLiquidationPlan:
        """
        Repay part of an account's debt with part of its collateral.

        Args:
            absorber: Address credited with liquidator points
            address: Account to liquidate; must be partially liquidatable

        Returns:
            The executed plan
        """
        self.market.gate.check_absorb()
        plan = self.risk.plan_partial_liquidation(address)
        if plan is None:
            raise NotLiquidatable(f"{address} is not partially liquidatable")

        market = self.market
        config = market.config
        account = market.state.account(address)
        old_principal = account.signed_principal

        for asset, amount, value in zip(plan.assets, plan.amounts, plan.usd_values):
            self.ledger.set_collateral(address, asset, account.collateral_balance(asset) - amount)
            self.ledger.change_total_collateral(asset, -amount)
            market.events.emit(events.AbsorbCollateral(absorber, address, asset, amount, value))

        self.ledger.update_base_principal(address, plan.new_principal)
        repay_amount, supply_amount = repay_and_supply_amount(old_principal, plan.new_principal)
        self.ledger.apply_aggregates(supply_amount, -repay_amount)

        base_price = self.risk.base_price()
        market.events.emit(
            events.AbsorbDebt(
                absorber, address, plan.repay_base, mul_price(plan.repay_base, base_price, config.base_scale)
            )
        )

        points = market.state.points(absorber)
        points.num_absorbs += 1
        points.num_absorbed += 1
        logger.info(
            f"Partially absorbed {address} by {absorber}: repaid {plan.repay_base} of {plan.debt}"
        )
        return plan

    def quote_collateral(self, asset: str, base_amount: int) -> int:
        """
        Collateral bought by ``base_amount`` of base at the storefront price.

        The storefront discount is ``storeFrontPriceFactor * (1 - liquidationFactor)``.
        An asset with a zero liquidation factor is quoted at market price.

        Args:
            asset: Collateral asset address
            base_amount: Base units offered

        Returns:
            Collateral units in the asset's native decimals
        """
        config = self.market.config
        info = config.asset_config(asset)
        asset_price = self.risk.get_price(info.price_feed)

        if info.liquidation_factor == 0:
            discount_factor = 0
        else:
            discount_factor = mul_factor(config.store_front_price_factor, FACTOR_SCALE - info.liquidation_factor)
        asset_price_discounted = mul_factor(asset_price, FACTOR_SCALE - discount_factor)
        base_price = self.risk.base_price()
        return base_price * base_amount * info.scale // asset_price_discounted // config.base_scale

    def buy_collateral(self, buyer: str, asset: str, min_amount: int, base_amount: int, recipient: str) -> int:
        """
        Sell seized collateral for base while reserves are below target.

        Returns:
            Collateral units sent to ``recipient``
        """
        market = self.market
        market.gate.check_buy()

        reserves = market.get_reserves()
        if reserves >= 0 and reserves >= market.config.target_reserves:
            raise NotForSale()

        base_amount = market.transfer_in(market.config.base_token, buyer, base_amount)
        collateral_amount = self.quote_collateral(asset, base_amount)
        if collateral_amount < min_amount:
            raise TooMuchSlippage(f"Quoted {collateral_amount}, minimum {min_amount}")
        if collateral_amount > market.get_collateral_reserves(asset):
            raise InsufficientReserves(f"Not enough {asset} reserves for {collateral_amount}")

        market.transfer_out(asset, recipient, safe128(collateral_amount))
        market.events.emit(events.BuyCollateral(buyer, asset, base_amount, collateral_amount))
        logger.info(f"{buyer} bought {collateral_amount} {asset} for {base_amount} base")
        return collateral_amount
