"""Pytest configuration and fixtures."""

from decimal import Decimal
from typing import Callable, Dict, Optional, Tuple

import pytest

from comet_engine.config import EngineSettings, get_settings
from comet_engine.core.math import factor
from comet_engine.core.models import AssetConfig, ManualClock, MarketConfig, StaticPriceFeed, Token
from comet_engine.engine.market import MoneyMarket

GOVERNOR = "governor"
PAUSE_GUARDIAN = "pause_guardian"

USDC = 10**6
WETH = 10**18
COMP = 10**18
WBTC = 10**8

# symbol: (decimals, usd price)
COLLATERAL: Dict[str, Tuple[int, str]] = {
    "COMP": (18, "175"),
    "WETH": (18, "3000"),
    "WBTC": (8, "41000"),
}


def make_asset(
    symbol: str,
    borrow_cf: str = "0.8",
    liquidate_cf: str = "0.85",
    liquidation_factor: str = "1",
    supply_cap: int = 10**30,
    decimals: Optional[int] = None,
) -> AssetConfig:
    """Create a collateral listing keyed (and priced) by its symbol."""
    return AssetConfig(
        asset=symbol,
        price_feed=symbol,
        decimals=COLLATERAL[symbol][0] if decimals is None else decimals,
        borrow_collateral_factor=factor(borrow_cf),
        liquidate_collateral_factor=factor(liquidate_cf),
        liquidation_factor=factor(liquidation_factor),
        supply_cap=supply_cap,
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Keep environment tweaks from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> EngineSettings:
    """Engine defaults, ignoring any local .env file."""
    return EngineSettings(_env_file=None)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def make_market(settings, clock) -> Callable[..., MoneyMarket]:
    """
    Factory for a USDC market ($1, 6 decimals).

    Collateral defaults to COMP ($175), WETH ($3000) and WBTC ($41000,
    8 decimals), each with borrow CF 0.8, liquidate CF 0.85 and
    liquidation factor 1. Extra keyword arguments override config fields.
    """

    def _make(assets=None, split_policy: str = "proportional", **overrides) -> MoneyMarket:
        if assets is None:
            assets = [make_asset(symbol) for symbol in COLLATERAL]

        tokens = [Token("USDC", "USDC", 6)]
        feeds = {"USDC": StaticPriceFeed.from_usd(Decimal("1"))}
        for asset in assets:
            tokens.append(Token(asset.asset, asset.asset, asset.decimals))
            feeds[asset.price_feed] = StaticPriceFeed.from_usd(COLLATERAL[asset.asset][1])

        config = MarketConfig.from_settings(
            settings,
            governor=GOVERNOR,
            pause_guardian=PAUSE_GUARDIAN,
            base_token="USDC",
            base_token_price_feed="USDC",
            assets=tuple(assets),
            **{"base_decimals": 6, **overrides},
        )
        return MoneyMarket(config, tokens, feeds, clock, split_policy=split_policy)

    return _make


@pytest.fixture
def market(make_market) -> MoneyMarket:
    """Default market with 1,000,000 USDC already supplied by ``lender``."""
    m = make_market()
    fund(m, "lender", "USDC", 1_000_000 * USDC)
    m.supply("lender", "USDC", 1_000_000 * USDC)
    return m


def fund(market: MoneyMarket, account: str, asset: str, amount: int) -> None:
    """Mint tokens straight into an account's wallet."""
    market.tokens[asset].mint(account, amount)


def open_borrow(market: MoneyMarket, account: str, asset: str, collateral: int, borrow: int) -> None:
    """Post collateral and borrow base against it."""
    fund(market, account, asset, collateral)
    market.supply(account, asset, collateral)
    market.withdraw(account, "USDC", borrow)


@pytest.fixture(name="fund")
def fund_fixture():
    return fund


@pytest.fixture(name="open_borrow")
def open_borrow_fixture():
    return open_borrow


@pytest.fixture(name="make_asset")
def make_asset_fixture():
    return make_asset
