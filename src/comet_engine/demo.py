"""Ready-made USDC market with COMP/WETH/WBTC collateral."""

from decimal import Decimal
from typing import Dict, Optional, Tuple

from comet_engine.config import EngineSettings, get_settings
from comet_engine.core.math import factor
from comet_engine.core.models import AssetConfig, Clock, ManualClock, MarketConfig, StaticPriceFeed, Token
from comet_engine.engine.market import MoneyMarket

GOVERNOR = "governor"
PAUSE_GUARDIAN = "pause_guardian"

# symbol: (decimals, usd price, borrowCF, liquidateCF, liquidationFactor)
DEFAULT_COLLATERAL: Dict[str, Tuple[int, str, str, str, str]] = {
    "COMP": (18, "175", "0.65", "0.70", "0.93"),
    "WETH": (18, "3000", "0.82", "0.85", "0.95"),
    "WBTC": (8, "41000", "0.70", "0.75", "0.93"),
}


def build_demo_market(
    settings: Optional[EngineSettings] = None,
    clock: Optional[Clock] = None,
    **config_overrides,
) -> MoneyMarket:
    """
    Build a USDC market with default collateral listings.

    Tokens and feeds are keyed by symbol. Supply caps are effectively
    unlimited.

    Args:
        settings: Engine defaults (default: cached settings)
        clock: Time source (default: a manual clock)
        **config_overrides: Fields overriding the settings-derived config

    Returns:
        A fresh market
    """
    settings = settings or get_settings()
    clock = clock or ManualClock()

    usdc = Token("USDC", "USDC", 6)
    tokens = [usdc]
    feeds = {"USDC": StaticPriceFeed.from_usd(Decimal("1"))}
    assets = []
    for symbol, (decimals, usd, borrow_cf, liquidate_cf, liquidation_factor) in DEFAULT_COLLATERAL.items():
        tokens.append(Token(symbol, symbol, decimals))
        feeds[symbol] = StaticPriceFeed.from_usd(usd)
        assets.append(
            AssetConfig(
                asset=symbol,
                price_feed=symbol,
                decimals=decimals,
                borrow_collateral_factor=factor(borrow_cf),
                liquidate_collateral_factor=factor(liquidate_cf),
                liquidation_factor=factor(liquidation_factor),
                supply_cap=10**30,
            )
        )

    config = MarketConfig.from_settings(
        settings,
        governor=GOVERNOR,
        pause_guardian=PAUSE_GUARDIAN,
        base_token="USDC",
        base_decimals=6,
        base_token_price_feed="USDC",
        assets=tuple(assets),
        **config_overrides,
    )
    return MoneyMarket(config, tokens, feeds, clock, split_policy=settings.partial_liquidation_split)
