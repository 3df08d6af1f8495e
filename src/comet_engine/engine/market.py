"""Market facade: the operation set exposed to users, liquidators and governance."""

import copy
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from comet_engine.config import get_settings
from comet_engine.core.constants import ENTIRE_BALANCE, ZERO_ADDRESS
from comet_engine.core.errors import (
    BorrowTooSmall,
    InsufficientReserves,
    InvalidUInt128,
    NoSelfTransfer,
    NotCollateralized,
    SupplyCapExceeded,
    Unauthorized,
)
from comet_engine.core.math import safe128
from comet_engine.core.models import events
from comet_engine.core.models.account import AccountState, LiquidatorPoints
from comet_engine.core.models.clock import Clock
from comet_engine.core.models.events import EventLog
from comet_engine.core.models.market import MarketConfig, MarketState, TotalsBasic
from comet_engine.core.models.price_feed import PriceFeed
from comet_engine.core.models.token import Token
from comet_engine.engine.configurator import Configurator
from comet_engine.engine.guard import OperationGuard
from comet_engine.engine.interest import InterestRateModel
from comet_engine.engine.ledger import (
    PrincipalLedger,
    present_value_borrow,
    present_value_supply,
    repay_and_supply_amount,
    withdraw_and_borrow_amount,
)
from comet_engine.engine.liquidation import LiquidationEngine
from comet_engine.engine.pause import PauseGate
from comet_engine.engine.risk import PartialLiquidationPlan, RiskEvaluator

logger = logging.getLogger(__name__)


class MoneyMarket:
    """
    Single-asset money market.

    Every mutating operation runs inside the operation guard: it accrues
    interest, checks the pause gates, updates the ledger, checks risk
    before letting balances fall, moves tokens and emits events. Any
    error rolls the whole operation back.

    Addresses are plain strings. ``tokens`` maps token address to ledger
    and must contain the base token and every listed collateral token;
    ``feeds`` maps feed keys used in the config to price feeds.
    """

    def __init__(
        self,
        config: MarketConfig,
        tokens: Iterable[Token],
        feeds: Dict[str, PriceFeed],
        clock: Clock,
        address: str = "market",
        split_policy: Optional[str] = None,
    ):
        self.address = address
        self.tokens: Dict[str, Token] = {t.address: t for t in tokens}
        self.feeds = feeds
        self.clock = clock
        self.split_policy = split_policy or get_settings().partial_liquidation_split
        self.events = EventLog()
        self.state = MarketState()
        self.state.totals.last_accrual_time = clock.now()

        self.guard = OperationGuard(self)
        self.ledger = PrincipalLedger(self)
        self.risk = RiskEvaluator(self)
        self.gate = PauseGate(self)
        self.liquidation = LiquidationEngine(self)
        self.set_config(config)
        self.configurator = Configurator(self)
        self.configurator.validate(config)
        logger.info(f"Market {address} created with {config.num_assets} collateral assets")

    def set_config(self, config: MarketConfig) -> None:
        """Install a configuration (used by upgrades and rollbacks)."""
        self.config = config
        self.interest = InterestRateModel(config)

    # Accrual

    def accrue(self) -> bool:
        return self.interest.accrue(self.state.totals, self.clock.now())

    def accrue_account(self, account: str) -> None:
        """Accrue the market and settle ``account``'s reward tracking."""
        with self.guard.operation("accrue_account"):
            self.settle_account(account)

    def settle_account(self, account: str) -> None:
        """Same as :meth:`accrue_account`, for callers already holding the guard."""
        self.accrue()
        self.ledger.update_base_principal(account, self.state.account(account).signed_principal)

    # Authorization

    def has_permission(self, owner: str, manager: str) -> bool:
        return owner == manager or manager in self.state.permissions.get(owner, set())

    def allow(self, owner: str, manager: str, is_allowed: bool) -> None:
        """Let ``manager`` act on ``owner``'s balances (or revoke it)."""
        managers = self.state.permissions.setdefault(owner, set())
        if is_allowed:
            managers.add(manager)
        else:
            managers.discard(manager)

    def _require_permission(self, owner: str, operator: str) -> None:
        if not self.has_permission(owner, operator):
            raise Unauthorized(f"{operator} may not act for {owner}")

    # Token movement

    def transfer_in(self, asset: str, src: str, amount: int) -> int:
        """Pull ``amount`` from ``src``; returns what the market actually received."""
        token = self.tokens[asset]
        before = token.balance_of(self.address)
        token.transfer(src, self.address, amount)
        return token.balance_of(self.address) - before

    def transfer_out(self, asset: str, to: str, amount: int) -> None:
        self.tokens[asset].transfer(self.address, to, amount)

    # Supply

    def supply(self, caller: str, asset: str, amount: int) -> None:
        self._supply(caller, caller, caller, asset, amount)

    def supply_to(self, caller: str, dst: str, asset: str, amount: int) -> None:
        self._supply(caller, caller, dst, asset, amount)

    def supply_from(self, operator: str, src: str, dst: str, asset: str, amount: int) -> None:
        self._supply(operator, src, dst, asset, amount)

    def _supply(self, operator: str, src: str, dst: str, asset: str, amount: int) -> None:
        with self.guard.operation("supply"):
            self._require_permission(src, operator)
            self.accrue()
            if asset == self.config.base_token:
                if amount == ENTIRE_BALANCE:
                    amount = self.ledger.borrow_balance_of(dst)
                self._supply_base(src, dst, amount)
            else:
                self._supply_collateral(src, dst, asset, safe128(amount))

    def _supply_base(self, src: str, dst: str, amount: int) -> None:
        self.gate.check_base_supply()
        amount = self.transfer_in(self.config.base_token, src, amount)

        dst_principal = self.state.account(dst).signed_principal
        dst_balance = self.ledger.present_value(dst_principal) + amount
        dst_principal_new = self.ledger.principal_value(dst_balance)

        repay_amount, supply_amount = repay_and_supply_amount(dst_principal, dst_principal_new)
        self.ledger.apply_aggregates(supply_amount, -repay_amount)
        self.ledger.update_base_principal(dst, dst_principal_new)

        self.events.emit(events.Supply(src, dst, amount))
        if supply_amount > 0:
            self.events.emit(events.Transfer(ZERO_ADDRESS, dst, self.ledger.supply_present_value(supply_amount)))
        logger.debug(f"{src} supplied {amount} base to {dst}")

    def _supply_collateral(self, src: str, dst: str, asset: str, amount: int) -> None:
        index = self.config.asset_index(asset)
        info = self.config.assets[index]
        self.gate.check_collateral_supply(index)
        amount = self.transfer_in(asset, src, amount)

        total = self.ledger.change_total_collateral(asset, amount)
        if total > info.supply_cap:
            raise SupplyCapExceeded(f"{asset}: {total} > cap {info.supply_cap}")

        balance = self.state.account(dst).collateral_balance(asset)
        self.ledger.set_collateral(dst, asset, balance + amount)
        self.events.emit(events.SupplyCollateral(src, dst, asset, amount))
        logger.debug(f"{src} supplied {amount} {asset} to {dst}")

    # Withdraw

    def withdraw(self, caller: str, asset: str, amount: int) -> None:
        self._withdraw(caller, caller, caller, asset, amount)

    def withdraw_to(self, caller: str, to: str, asset: str, amount: int) -> None:
        self._withdraw(caller, caller, to, asset, amount)

    def withdraw_from(self, operator: str, src: str, to: str, asset: str, amount: int) -> None:
        self._withdraw(operator, src, to, asset, amount)

    def _withdraw(self, operator: str, src: str, to: str, asset: str, amount: int) -> None:
        with self.guard.operation("withdraw"):
            self._require_permission(src, operator)
            self.accrue()
            if asset == self.config.base_token:
                if amount == ENTIRE_BALANCE:
                    amount = self.ledger.balance_of(src)
                self._withdraw_base(src, to, amount)
            else:
                self._withdraw_collateral(src, to, asset, safe128(amount))

    def _check_borrower(self, address: str, balance: int) -> None:
        if balance >= 0:
            return
        if -balance < self.config.base_borrow_min:
            raise BorrowTooSmall(f"Borrow of {-balance} below minimum {self.config.base_borrow_min}")
        if not self.risk.is_borrow_collateralized(address):
            raise NotCollateralized(f"{address} would be undercollateralized")

    def _withdraw_base(self, src: str, to: str, amount: int) -> None:
        src_principal = self.state.account(src).signed_principal
        src_balance = self.ledger.present_value(src_principal) - amount
        src_principal_new = self.ledger.principal_value(src_balance)

        withdraw_amount, borrow_amount = withdraw_and_borrow_amount(src_principal, src_principal_new)
        self.gate.check_base_withdraw(withdraw_amount, borrow_amount)
        self.ledger.apply_aggregates(-withdraw_amount, borrow_amount)
        self.ledger.update_base_principal(src, src_principal_new)
        self._check_borrower(src, src_balance)

        self.transfer_out(self.config.base_token, to, amount)
        self.events.emit(events.Withdraw(src, to, amount))
        if withdraw_amount > 0:
            self.events.emit(events.Transfer(src, ZERO_ADDRESS, self.ledger.supply_present_value(withdraw_amount)))
        logger.debug(f"{src} withdrew {amount} base to {to}")

    def _withdraw_collateral(self, src: str, to: str, asset: str, amount: int) -> None:
        index = self.config.asset_index(asset)
        self.gate.check_collateral_withdraw(index)

        balance = self.state.account(src).collateral_balance(asset)
        if amount > balance:
            raise InvalidUInt128(f"{src} holds {balance} {asset}, cannot withdraw {amount}")
        self.ledger.set_collateral(src, asset, balance - amount)
        self.ledger.change_total_collateral(asset, -amount)
        if not self.risk.is_borrow_collateralized(src):
            raise NotCollateralized(f"{src} would be undercollateralized")

        self.transfer_out(asset, to, amount)
        self.events.emit(events.WithdrawCollateral(src, to, asset, amount))
        logger.debug(f"{src} withdrew {amount} {asset} to {to}")

    # Transfer

    def transfer(self, caller: str, dst: str, amount: int) -> None:
        """Transfer base balance."""
        self._transfer(caller, caller, dst, self.config.base_token, amount)

    def transfer_from(self, operator: str, src: str, dst: str, amount: int) -> None:
        self._transfer(operator, src, dst, self.config.base_token, amount)

    def transfer_asset(self, caller: str, dst: str, asset: str, amount: int) -> None:
        self._transfer(caller, caller, dst, asset, amount)

    def transfer_asset_from(self, operator: str, src: str, dst: str, asset: str, amount: int) -> None:
        self._transfer(operator, src, dst, asset, amount)

    def _transfer(self, operator: str, src: str, dst: str, asset: str, amount: int) -> None:
        with self.guard.operation("transfer"):
            self._require_permission(src, operator)
            if src == dst:
                raise NoSelfTransfer()
            self.accrue()
            if asset == self.config.base_token:
                if amount == ENTIRE_BALANCE:
                    amount = self.ledger.balance_of(src)
                self._transfer_base(src, dst, amount)
            else:
                self._transfer_collateral(src, dst, asset, safe128(amount))

    def _transfer_base(self, src: str, dst: str, amount: int) -> None:
        src_principal = self.state.account(src).signed_principal
        dst_principal = self.state.account(dst).signed_principal
        src_balance = self.ledger.present_value(src_principal) - amount
        dst_balance = self.ledger.present_value(dst_principal) + amount
        src_principal_new = self.ledger.principal_value(src_balance)
        dst_principal_new = self.ledger.principal_value(dst_balance)

        withdraw_amount, borrow_amount = withdraw_and_borrow_amount(src_principal, src_principal_new)
        repay_amount, supply_amount = repay_and_supply_amount(dst_principal, dst_principal_new)
        self.gate.check_base_transfer(withdraw_amount, borrow_amount)

        self.ledger.apply_aggregates(supply_amount - withdraw_amount, borrow_amount - repay_amount)
        self.ledger.update_base_principal(src, src_principal_new)
        self.ledger.update_base_principal(dst, dst_principal_new)
        self._check_borrower(src, src_balance)

        if withdraw_amount > 0:
            self.events.emit(events.Transfer(src, ZERO_ADDRESS, self.ledger.supply_present_value(withdraw_amount)))
        if supply_amount > 0:
            self.events.emit(events.Transfer(ZERO_ADDRESS, dst, self.ledger.supply_present_value(supply_amount)))

    def _transfer_collateral(self, src: str, dst: str, asset: str, amount: int) -> None:
        index = self.config.asset_index(asset)
        self.gate.check_collateral_transfer(index)

        src_balance = self.state.account(src).collateral_balance(asset)
        if amount > src_balance:
            raise InvalidUInt128(f"{src} holds {src_balance} {asset}, cannot transfer {amount}")
        dst_balance = self.state.account(dst).collateral_balance(asset)
        self.ledger.set_collateral(src, asset, src_balance - amount)
        self.ledger.set_collateral(dst, asset, dst_balance + amount)
        if not self.risk.is_borrow_collateralized(src):
            raise NotCollateralized(f"{src} would be undercollateralized")
        self.events.emit(events.TransferCollateral(src, dst, asset, amount))

    # Liquidation

    def absorb(self, absorber: str, accounts: List[str]) -> None:
        with self.guard.operation("absorb"):
            self.accrue()
            self.liquidation.absorb(absorber, accounts)

    def absorb_partial(self, absorber: str, account: str) -> PartialLiquidationPlan:
        with self.guard.operation("absorb_partial"):
            self.accrue()
            return self.liquidation.absorb_partial(absorber, account)

    def buy_collateral(self, buyer: str, asset: str, min_amount: int, base_amount: int, recipient: str) -> int:
        with self.guard.operation("buy_collateral"):
            self.accrue()
            return self.liquidation.buy_collateral(buyer, asset, min_amount, base_amount, recipient)

    def quote_collateral(self, asset: str, base_amount: int) -> int:
        return self.liquidation.quote_collateral(asset, base_amount)

    def withdraw_reserves(self, caller: str, to: str, amount: int) -> None:
        """Send protocol reserves to ``to`` (governor only)."""
        with self.guard.operation("withdraw_reserves"):
            if caller != self.config.governor:
                raise Unauthorized(f"{caller} cannot withdraw reserves")
            self.accrue()
            reserves = self.get_reserves()
            if reserves < 0 or amount > reserves:
                raise InsufficientReserves(f"Reserves {reserves}, requested {amount}")
            self.transfer_out(self.config.base_token, to, amount)
            self.events.emit(events.WithdrawReserves(to, amount))
            logger.info(f"Withdrew {amount} reserves to {to}")

    # Pause

    def pause(
        self,
        caller: str,
        supply_paused: bool = False,
        transfer_paused: bool = False,
        withdraw_paused: bool = False,
        absorb_paused: bool = False,
        buy_paused: bool = False,
    ) -> None:
        self.gate.pause(caller, supply_paused, transfer_paused, withdraw_paused, absorb_paused, buy_paused)

    # Views

    def _accrued_indices(self) -> Tuple[int, int]:
        totals = self.state.totals
        return self.interest.accrued_interest_indices(totals, self.clock.now() - totals.last_accrual_time)

    def balance_of(self, account: str) -> int:
        """Supply balance including interest accrued up to now."""
        principal = self.state.account(account).signed_principal
        supply_index, _ = self._accrued_indices()
        return present_value_supply(supply_index, principal) if principal > 0 else 0

    def borrow_balance_of(self, account: str) -> int:
        """Debt including interest accrued up to now."""
        principal = self.state.account(account).signed_principal
        _, borrow_index = self._accrued_indices()
        return present_value_borrow(borrow_index, -principal) if principal < 0 else 0

    def collateral_balance_of(self, account: str, asset: str) -> int:
        return self.state.account(account).collateral_balance(asset)

    def get_reserves(self) -> int:
        """Base held by the market minus what suppliers are owed plus what borrowers owe."""
        supply_index, borrow_index = self._accrued_indices()
        totals = self.state.totals
        balance = self.tokens[self.config.base_token].balance_of(self.address)
        total_supply = present_value_supply(supply_index, totals.total_supply_base)
        total_borrow = present_value_borrow(borrow_index, totals.total_borrow_base)
        return balance - total_supply + total_borrow

    def get_collateral_reserves(self, asset: str) -> int:
        return self.tokens[asset].balance_of(self.address) - self.state.total_supply_asset(asset)

    def get_utilization(self) -> int:
        return self.interest.utilization(self.state.totals)

    def get_supply_rate(self, utilization: Optional[int] = None) -> int:
        return self.interest.supply_rate(self.get_utilization() if utilization is None else utilization)

    def get_borrow_rate(self, utilization: Optional[int] = None) -> int:
        return self.interest.borrow_rate(self.get_utilization() if utilization is None else utilization)

    def get_price(self, feed: str) -> int:
        return self.risk.get_price(feed)

    def user_basic(self, account: str) -> AccountState:
        return copy.deepcopy(self.state.account(account))

    def totals_basic(self) -> TotalsBasic:
        return copy.deepcopy(self.state.totals)

    def total_supply_asset(self, asset: str) -> int:
        return self.state.total_supply_asset(asset)

    def liquidator_points(self, absorber: str) -> LiquidatorPoints:
        return copy.deepcopy(self.state.liquidator_points.get(absorber, LiquidatorPoints()))

    def base_tracking_accrued(self, account: str) -> int:
        return self.state.account(account).base_tracking_accrued

    def is_borrow_collateralized(self, account: str) -> bool:
        return self.risk.is_borrow_collateralized(account)

    def is_liquidatable(self, account: str) -> bool:
        return self.risk.is_liquidatable(account)

    def is_bad_debt(self, account: str) -> bool:
        return self.risk.is_bad_debt(account)

    def is_partially_liquidatable(self, account: str) -> bool:
        return self.risk.is_partially_liquidatable(account)
