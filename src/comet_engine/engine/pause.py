"""Pause matrix: flag setters, operation gates and collateral deactivation."""

import logging
from typing import TYPE_CHECKING, Type

from comet_engine.core import errors
from comet_engine.core.models import events

if TYPE_CHECKING:
    from comet_engine.engine.market import MoneyMarket

logger = logging.getLogger(__name__)


class PauseGate:
    """
    Owns the market's circuit breakers.

    Setters are restricted to the governor and pause guardian and reject
    no-op toggles, so every pause event in the log is a real transition.
    The ``check_*`` methods raise the flag-specific error for the first
    applicable flag that is set.
    """

    def __init__(self, market: "MoneyMarket"):
        self.market = market

    @property
    def flags(self):
        return self.market.state.pause

    # Global pause

    def pause(
        self,
        caller: str,
        supply_paused: bool,
        transfer_paused: bool,
        withdraw_paused: bool,
        absorb_paused: bool,
        buy_paused: bool,
    ) -> None:
        """Set all global flags at once."""
        config = self.market.config
        if caller not in (config.governor, config.pause_guardian):
            raise errors.Unauthorized(f"{caller} cannot pause the market")

        flags = self.flags
        flags.supply_paused = supply_paused
        flags.transfer_paused = transfer_paused
        flags.withdraw_paused = withdraw_paused
        flags.absorb_paused = absorb_paused
        flags.buy_paused = buy_paused
        self.market.events.emit(
            events.PauseAction(supply_paused, transfer_paused, withdraw_paused, absorb_paused, buy_paused)
        )
        logger.info(
            f"Global pause set by {caller}: supply={supply_paused} transfer={transfer_paused} "
            f"withdraw={withdraw_paused} absorb={absorb_paused} buy={buy_paused}"
        )

    # Extended flags

    def _require_pauser(self, caller: str) -> None:
        config = self.market.config
        if caller not in (config.governor, config.pause_guardian):
            raise errors.OnlyPauseGuardianOrGovernor()

    def _require_asset_index(self, index: int) -> None:
        if index < 0 or index >= self.market.config.num_assets:
            raise errors.InvalidAssetIndex(index)

    def _set_flag(self, caller: str, name: str, paused: bool, event_type: Type[events.FlagPauseAction]) -> None:
        self._require_pauser(caller)
        if getattr(self.flags, name) == paused:
            raise errors.OffsetStatusAlreadySet(f"{name} is already {paused}")
        setattr(self.flags, name, paused)
        self.market.events.emit(event_type(paused))
        logger.info(f"{name} -> {paused} by {caller}")

    def _set_asset_flag(
        self,
        caller: str,
        name: str,
        index: int,
        paused: bool,
        event_type: Type[events.AssetPauseAction],
    ) -> None:
        self._require_pauser(caller)
        self._require_asset_index(index)
        if self.flags.asset_flag(name, index) == paused:
            raise errors.CollateralAssetOffsetStatusAlreadySet(index)
        self.flags.set_asset_flag(name, index, paused)
        self.market.events.emit(event_type(index, paused))
        logger.info(f"{name}[{index}] -> {paused} by {caller}")

    def pause_lenders_withdraw(self, caller: str, paused: bool) -> None:
        self._set_flag(caller, "lenders_withdraw_paused", paused, events.LendersWithdrawPauseAction)

    def pause_borrowers_withdraw(self, caller: str, paused: bool) -> None:
        self._set_flag(caller, "borrowers_withdraw_paused", paused, events.BorrowersWithdrawPauseAction)

    def pause_collateral_withdraw(self, caller: str, paused: bool) -> None:
        self._set_flag(caller, "collateral_withdraw_paused", paused, events.CollateralWithdrawPauseAction)

    def pause_collateral_asset_withdraw(self, caller: str, index: int, paused: bool) -> None:
        self._set_asset_flag(
            caller, "collateral_asset_withdraw_paused", index, paused, events.CollateralAssetWithdrawPauseAction
        )

    def pause_collateral_supply(self, caller: str, paused: bool) -> None:
        self._set_flag(caller, "collateral_supply_paused", paused, events.CollateralSupplyPauseAction)

    def pause_base_supply(self, caller: str, paused: bool) -> None:
        self._set_flag(caller, "base_supply_paused", paused, events.BaseSupplyPauseAction)

    def pause_collateral_asset_supply(self, caller: str, index: int, paused: bool) -> None:
        self._set_asset_flag(
            caller, "collateral_asset_supply_paused", index, paused, events.CollateralAssetSupplyPauseAction
        )

    def pause_lenders_transfer(self, caller: str, paused: bool) -> None:
        self._set_flag(caller, "lenders_transfer_paused", paused, events.LendersTransferPauseAction)

    def pause_borrowers_transfer(self, caller: str, paused: bool) -> None:
        self._set_flag(caller, "borrowers_transfer_paused", paused, events.BorrowersTransferPauseAction)

    def pause_collateral_transfer(self, caller: str, paused: bool) -> None:
        self._set_flag(caller, "collateral_transfer_paused", paused, events.CollateralTransferPauseAction)

    def pause_collateral_asset_transfer(self, caller: str, index: int, paused: bool) -> None:
        self._set_asset_flag(
            caller, "collateral_asset_transfer_paused", index, paused, events.CollateralAssetTransferPauseAction
        )

    # Collateral deactivation

    def is_collateral_deactivated(self, index: int) -> bool:
        return bool(self.market.state.deactivated_collaterals & (1 << index))

    def deactivate_collateral(self, caller: str, index: int) -> None:
        """Stop new supply and transfers of one collateral asset (pause guardian only)."""
        if caller != self.market.config.pause_guardian:
            raise errors.OnlyPauseGuardian()
        self._require_asset_index(index)
        self._set_activation(index, active=False)
        logger.info(f"Collateral {index} deactivated by {caller}")

    def activate_collateral(self, caller: str, index: int) -> None:
        """Reverse :meth:`deactivate_collateral` (governor only)."""
        if caller != self.market.config.governor:
            raise errors.OnlyGovernor()
        self._require_asset_index(index)
        self._set_activation(index, active=True)
        logger.info(f"Collateral {index} activated by {caller}")

    def _set_activation(self, index: int, active: bool) -> None:
        state = self.market.state
        if active:
            state.deactivated_collaterals &= ~(1 << index)
            self.market.events.emit(events.CollateralActivated(index))
        else:
            state.deactivated_collaterals |= 1 << index
            self.market.events.emit(events.CollateralDeactivated(index))
        self.flags.set_asset_flag("collateral_asset_supply_paused", index, not active)
        self.flags.set_asset_flag("collateral_asset_transfer_paused", index, not active)
        self.market.events.emit(events.CollateralAssetSupplyPauseAction(index, not active))
        self.market.events.emit(events.CollateralAssetTransferPauseAction(index, not active))

    # Gates

    def check_base_supply(self) -> None:
        if self.flags.supply_paused:
            raise errors.Paused("supply is paused")
        if self.flags.base_supply_paused:
            raise errors.BaseSupplyPaused()

    def check_collateral_supply(self, index: int) -> None:
        if self.flags.supply_paused:
            raise errors.Paused("supply is paused")
        if self.flags.collateral_supply_paused:
            raise errors.CollateralSupplyPaused()
        if self.flags.asset_flag("collateral_asset_supply_paused", index):
            raise errors.CollateralAssetSupplyPaused(index)

    def check_base_withdraw(self, withdraw_amount: int, borrow_amount: int) -> None:
        """Lender flag gates supply principal leaving; borrower flag gates new borrow principal."""
        if self.flags.withdraw_paused:
            raise errors.Paused("withdraw is paused")
        if withdraw_amount > 0 and self.flags.lenders_withdraw_paused:
            raise errors.LendersWithdrawPaused()
        if borrow_amount > 0 and self.flags.borrowers_withdraw_paused:
            raise errors.BorrowersWithdrawPaused()

    def check_collateral_withdraw(self, index: int) -> None:
        if self.flags.withdraw_paused:
            raise errors.Paused("withdraw is paused")
        if self.flags.collateral_withdraw_paused:
            raise errors.CollateralWithdrawPaused()
        if self.flags.asset_flag("collateral_asset_withdraw_paused", index):
            raise errors.CollateralAssetWithdrawPaused(index)

    def check_base_transfer(self, withdraw_amount: int, borrow_amount: int) -> None:
        if self.flags.transfer_paused:
            raise errors.Paused("transfer is paused")
        if withdraw_amount > 0 and self.flags.lenders_transfer_paused:
            raise errors.LendersTransferPaused()
        if borrow_amount > 0 and self.flags.borrowers_transfer_paused:
            raise errors.BorrowersTransferPaused()

    def check_collateral_transfer(self, index: int) -> None:
        if self.flags.transfer_paused:
            raise errors.Paused("transfer is paused")
        if self.flags.collateral_transfer_paused:
            raise errors.CollateralTransferPaused()
        if self.flags.asset_flag("collateral_asset_transfer_paused", index):
            raise errors.CollateralAssetTransferPaused(index)

    def check_absorb(self) -> None:
        if self.flags.absorb_paused:
            raise errors.Paused("absorb is paused")

    def check_buy(self) -> None:
        if self.flags.buy_paused:
            raise errors.Paused("buy is paused")
