"""Principal ledger: present value conversions and balance bookkeeping."""

from typing import TYPE_CHECKING, Tuple

from comet_engine.core.constants import BASE_INDEX_SCALE
from comet_engine.core.math import check_int104, safe104, safe128
from comet_engine.core.models.account import AccountState, Principal
from comet_engine.engine.rewards import update_base_tracking

if TYPE_CHECKING:
    from comet_engine.engine.market import MoneyMarket


def present_value_supply(base_supply_index: int, principal: int) -> int:
    return principal * base_supply_index // BASE_INDEX_SCALE


def present_value_borrow(base_borrow_index: int, principal: int) -> int:
    return principal * base_borrow_index // BASE_INDEX_SCALE


def principal_value_supply(base_supply_index: int, present: int) -> int:
    """Supply principal for a present value, rounded down."""
    return present * BASE_INDEX_SCALE // base_supply_index


def principal_value_borrow(base_borrow_index: int, present: int) -> int:
    """Borrow principal for a present value, rounded up."""
    return (present * BASE_INDEX_SCALE + base_borrow_index - 1) // base_borrow_index


def present_value(base_supply_index: int, base_borrow_index: int, principal: int) -> int:
    """Signed present value of a signed principal."""
    if principal >= 0:
        return present_value_supply(base_supply_index, principal)
    return -present_value_borrow(base_borrow_index, -principal)


def principal_value(base_supply_index: int, base_borrow_index: int, present: int) -> int:
    """
    Signed principal of a signed present value.

    Supply rounds down and borrow magnitude rounds up, so the market never
    owes more than it holds. A side effect: withdrawing a present value of 0
    from a supplier can still burn 1 unit of principal.
    """
    if present >= 0:
        return principal_value_supply(base_supply_index, present)
    return -principal_value_borrow(base_borrow_index, -present)


def repay_and_supply_amount(old_principal: int, new_principal: int) -> Tuple[int, int]:
    """
    Split a principal increase into the borrow repaid and the supply added.

    Returns:
        (repay_amount, supply_amount)
    """
    if new_principal < old_principal:
        return 0, 0
    if new_principal <= 0:
        return new_principal - old_principal, 0
    if old_principal >= 0:
        return 0, new_principal - old_principal
    return -old_principal, new_principal


def withdraw_and_borrow_amount(old_principal: int, new_principal: int) -> Tuple[int, int]:
    """
    Split a principal decrease into the supply withdrawn and the borrow added.

    Returns:
        (withdraw_amount, borrow_amount)
    """
    if new_principal > old_principal:
        return 0, 0
    if new_principal >= 0:
        return old_principal - new_principal, 0
    if old_principal <= 0:
        return 0, old_principal - new_principal
    return old_principal, -new_principal


class PrincipalLedger:
    """
    Reads and writes account principal and collateral for a market.

    Aggregates are only ever changed here, and a change that would take
    either aggregate below zero is rejected.
    """

    def __init__(self, market: "MoneyMarket"):
        self.market = market

    @property
    def totals(self):
        return self.market.state.totals

    def present_value(self, principal: int) -> int:
        return present_value(self.totals.base_supply_index, self.totals.base_borrow_index, principal)

    def principal_value(self, present: int) -> int:
        return principal_value(self.totals.base_supply_index, self.totals.base_borrow_index, present)

    def supply_present_value(self, principal: int) -> int:
        return present_value_supply(self.totals.base_supply_index, principal)

    def balance_of(self, address: str) -> int:
        """Present value of a supplier's balance (0 for borrowers)."""
        principal = self.market.state.account(address).signed_principal
        return present_value_supply(self.totals.base_supply_index, principal) if principal > 0 else 0

    def borrow_balance_of(self, address: str) -> int:
        """Present value of a borrower's debt (0 for suppliers)."""
        principal = self.market.state.account(address).signed_principal
        return present_value_borrow(self.totals.base_borrow_index, -principal) if principal < 0 else 0

    def apply_aggregates(self, supply_delta: int, borrow_delta: int) -> None:
        totals = self.totals
        totals.total_supply_base = safe104(totals.total_supply_base + supply_delta)
        totals.total_borrow_base = safe104(totals.total_borrow_base + borrow_delta)

    def update_base_principal(self, address: str, new_principal: int) -> None:
        """Settle reward tracking, then store ``new_principal`` re-tagged."""
        account = self.market.state.account(address)
        update_base_tracking(account, self.totals, self.market.config, new_principal)
        account.principal = Principal.from_signed(check_int104(new_principal))

    def set_collateral(self, address: str, asset: str, new_balance: int) -> None:
        """Store a collateral balance and keep the ``assets_in`` bit in sync."""
        account = self.market.state.account(address)
        index = self.market.config.asset_index(asset)
        old_balance = account.collateral_balance(asset)
        account.collateral[asset] = safe128(new_balance)
        update_assets_in(account, index, old_balance, new_balance)

    def change_total_collateral(self, asset: str, delta: int) -> int:
        totals = self.market.state.totals_collateral
        totals[asset] = safe128(totals.get(asset, 0) + delta)
        return totals[asset]


def update_assets_in(account: AccountState, index: int, old_balance: int, new_balance: int) -> None:
    if old_balance == 0 and new_balance != 0:
        account.assets_in |= 1 << index
    elif old_balance != 0 and new_balance == 0:
        account.assets_in &= ~(1 << index)
