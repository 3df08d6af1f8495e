"""Core data models for the money market engine."""

from .account import AccountState, LiquidatorPoints, Principal, PrincipalKind
from .asset import AssetConfig
from .clock import Clock, ManualClock
from .events import Event, EventLog
from .market import MarketConfig, MarketState, TotalsBasic
from .pause import PauseFlags
from .price_feed import PriceFeed, RoundData, StaticPriceFeed
from .token import Token

__all__ = [
    "AccountState",
    "LiquidatorPoints",
    "Principal",
    "PrincipalKind",
    "AssetConfig",
    "Clock",
    "ManualClock",
    "Event",
    "EventLog",
    "MarketConfig",
    "MarketState",
    "TotalsBasic",
    "PauseFlags",
    "PriceFeed",
    "RoundData",
    "StaticPriceFeed",
    "Token",
]
