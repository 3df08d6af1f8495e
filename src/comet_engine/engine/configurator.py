"""Staged market configuration, applied only by an explicit upgrade."""

import logging
from typing import TYPE_CHECKING, Optional

from comet_engine.core.constants import FACTOR_SCALE, MAX_ASSETS, MAX_BASE_DECIMALS, PRICE_FEED_DECIMALS
from comet_engine.core.errors import (
    AssetAlreadyListed,
    BadDecimals,
    BadDiscount,
    BadMinimum,
    BorrowCFTooLarge,
    LiquidateCFTooLarge,
    TooManyAssets,
    Unauthorized,
)
from comet_engine.core.models.asset import AssetConfig
from comet_engine.core.models.events import MarketUpgraded
from comet_engine.core.models.market import MarketConfig

if TYPE_CHECKING:
    from comet_engine.engine.market import MoneyMarket

logger = logging.getLogger(__name__)


class Configurator:
    """
    Holds a pending copy of a market's configuration.

    Governor-only setters edit the pending copy; the live market does not
    change until :meth:`deploy_and_upgrade` validates and installs it.
    """

    def __init__(self, market: "MoneyMarket"):
        self.market = market
        self.pending: MarketConfig = market.config

    def _require_governor(self, caller: str) -> None:
        if caller != self.pending.governor:
            raise Unauthorized(f"{caller} is not the governor")

    def _update(self, **changes) -> MarketConfig:
        self.pending = self.pending.model_copy(update=changes)
        return self.pending

    def _update_asset(self, asset: str, **changes) -> MarketConfig:
        index = self.pending.asset_index(asset)
        assets = list(self.pending.assets)
        assets[index] = assets[index].model_copy(update=changes)
        return self._update(assets=tuple(assets))

    def set_factory(self, caller: str, factory: str) -> None:
        self._require_governor(caller)
        self._update(factory=factory)
        logger.info(f"Pending factory set to {factory}")

    def set_governor(self, caller: str, governor: str) -> None:
        self._require_governor(caller)
        self._update(governor=governor)

    def set_pause_guardian(self, caller: str, pause_guardian: str) -> None:
        self._require_governor(caller)
        self._update(pause_guardian=pause_guardian)

    def add_asset(self, caller: str, asset_config: AssetConfig) -> None:
        self._require_governor(caller)
        if any(a.asset == asset_config.asset for a in self.pending.assets):
            raise AssetAlreadyListed(asset_config.asset)
        self._update(assets=self.pending.assets + (asset_config,))
        logger.info(f"Pending asset added: {asset_config.asset}")

    def update_asset_price_feed(self, caller: str, asset: str, price_feed: str) -> None:
        self._require_governor(caller)
        self._update_asset(asset, price_feed=price_feed)

    def update_asset_liquidation_factor(self, caller: str, asset: str, liquidation_factor: int) -> None:
        self._require_governor(caller)
        self._update_asset(asset, liquidation_factor=liquidation_factor)

    def update_asset_borrow_collateral_factor(self, caller: str, asset: str, borrow_collateral_factor: int) -> None:
        self._require_governor(caller)
        self._update_asset(asset, borrow_collateral_factor=borrow_collateral_factor)

    def update_asset_liquidate_collateral_factor(
        self, caller: str, asset: str, liquidate_collateral_factor: int
    ) -> None:
        self._require_governor(caller)
        self._update_asset(asset, liquidate_collateral_factor=liquidate_collateral_factor)

    def update_asset_supply_cap(self, caller: str, asset: str, supply_cap: int) -> None:
        self._require_governor(caller)
        self._update_asset(asset, supply_cap=supply_cap)

    def set_store_front_price_factor(self, caller: str, store_front_price_factor: int) -> None:
        self._require_governor(caller)
        self._update(store_front_price_factor=store_front_price_factor)

    def set_target_reserves(self, caller: str, target_reserves: int) -> None:
        self._require_governor(caller)
        self._update(target_reserves=target_reserves)

    def set_base_tracking_speeds(self, caller: str, supply_speed: int, borrow_speed: int) -> None:
        self._require_governor(caller)
        self._update(base_tracking_supply_speed=supply_speed, base_tracking_borrow_speed=borrow_speed)

    def validate(self, config: Optional[MarketConfig] = None) -> MarketConfig:
        """
        Check a configuration against the market's invariants.

        Args:
            config: Configuration to check (default: the pending one)

        Returns:
            The validated configuration
        """
        config = config or self.pending
        feeds = self.market.feeds

        if config.store_front_price_factor > FACTOR_SCALE:
            raise BadDiscount()
        if config.base_decimals > MAX_BASE_DECIMALS:
            raise BadDecimals(f"Base token has {config.base_decimals} decimals")
        if config.base_min_for_rewards == 0:
            raise BadMinimum()
        if config.num_assets > MAX_ASSETS:
            raise TooManyAssets(f"{config.num_assets} assets listed, limit {MAX_ASSETS}")

        for feed_key in [config.base_token_price_feed] + [a.price_feed for a in config.assets]:
            feed = feeds.get(feed_key)
            if feed is None or feed.decimals != PRICE_FEED_DECIMALS:
                raise BadDecimals(f"Price feed {feed_key} must report {PRICE_FEED_DECIMALS} decimals")

        for asset in config.assets:
            if asset.liquidate_collateral_factor > FACTOR_SCALE:
                raise LiquidateCFTooLarge(asset.asset)
            # A zero liquidate factor means the asset is being wound down
            if asset.liquidate_collateral_factor > 0 and asset.borrow_collateral_factor >= asset.liquidate_collateral_factor:
                raise BorrowCFTooLarge(asset.asset)
        return config

    def deploy_and_upgrade(self, caller: str) -> MarketConfig:
        """Validate the pending configuration and install it in the market."""
        self._require_governor(caller)
        config = self.validate()
        with self.market.guard.operation("deploy_and_upgrade"):
            self.market.accrue()
            self.market.set_config(config)
            self.market.events.emit(MarketUpgraded(config.factory, config.num_assets))
        logger.info(f"Market upgraded: {config.num_assets} assets, factory {config.factory}")
        return config
