"""Market configuration and mutable market state."""

from dataclasses import asdict, dataclass, field
from typing import Dict, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field

from comet_engine.core.constants import BASE_INDEX_SCALE, FACTOR_SCALE, TRACKING_INDEX_SCALE
from comet_engine.core.errors import BadAsset
from comet_engine.core.math import factor
from comet_engine.core.models.account import AccountState, LiquidatorPoints
from comet_engine.core.models.asset import AssetConfig
from comet_engine.core.models.pause import PauseFlags


class MarketConfig(BaseModel):
    """
    Immutable parameters of a market.

    Interest curve parameters are per-year rates in factor scale; the
    interest model converts them to per-second values.
    """

    model_config = ConfigDict(frozen=True)

    governor: str
    pause_guardian: str
    base_token: str
    base_token_price_feed: str
    base_decimals: int = Field(ge=0)
    factory: Optional[str] = None

    supply_kink: int = Field(ge=0, le=FACTOR_SCALE)
    supply_per_year_interest_rate_slope_low: int = Field(ge=0)
    supply_per_year_interest_rate_slope_high: int = Field(ge=0)
    supply_per_year_interest_rate_base: int = Field(ge=0)
    borrow_kink: int = Field(ge=0, le=FACTOR_SCALE)
    borrow_per_year_interest_rate_slope_low: int = Field(ge=0)
    borrow_per_year_interest_rate_slope_high: int = Field(ge=0)
    borrow_per_year_interest_rate_base: int = Field(ge=0)

    store_front_price_factor: int = Field(ge=0)
    tracking_index_scale: int = TRACKING_INDEX_SCALE
    base_tracking_supply_speed: int = Field(default=0, ge=0)
    base_tracking_borrow_speed: int = Field(default=0, ge=0)
    base_min_for_rewards: int = Field(ge=0)
    base_borrow_min: int = Field(ge=0)
    target_reserves: int = Field(ge=0)

    assets: Tuple[AssetConfig, ...] = ()

    @classmethod
    def from_settings(
        cls,
        settings,
        *,
        governor: str,
        pause_guardian: str,
        base_token: str,
        base_decimals: int,
        base_token_price_feed: str,
        assets: Tuple[AssetConfig, ...] = (),
        **overrides,
    ) -> "MarketConfig":
        """Build a config from :class:`EngineSettings` defaults plus explicit overrides."""
        values = dict(
            governor=governor,
            pause_guardian=pause_guardian,
            base_token=base_token,
            base_token_price_feed=base_token_price_feed,
            base_decimals=base_decimals,
            supply_kink=factor(settings.supply_kink),
            supply_per_year_interest_rate_slope_low=factor(settings.supply_per_year_interest_rate_slope_low),
            supply_per_year_interest_rate_slope_high=factor(settings.supply_per_year_interest_rate_slope_high),
            supply_per_year_interest_rate_base=factor(settings.supply_per_year_interest_rate_base),
            borrow_kink=factor(settings.borrow_kink),
            borrow_per_year_interest_rate_slope_low=factor(settings.borrow_per_year_interest_rate_slope_low),
            borrow_per_year_interest_rate_slope_high=factor(settings.borrow_per_year_interest_rate_slope_high),
            borrow_per_year_interest_rate_base=factor(settings.borrow_per_year_interest_rate_base),
            store_front_price_factor=factor(settings.storefront_price_factor),
            base_tracking_supply_speed=settings.base_tracking_supply_speed,
            base_tracking_borrow_speed=settings.base_tracking_borrow_speed,
            base_min_for_rewards=settings.base_min_for_rewards,
            base_borrow_min=settings.base_borrow_min,
            target_reserves=settings.target_reserves,
            assets=tuple(assets),
        )
        values.update(overrides)
        return cls(**values)

    @property
    def base_scale(self) -> int:
        return 10**self.base_decimals

    @property
    def num_assets(self) -> int:
        return len(self.assets)

    def asset_index(self, asset: str) -> int:
        for i, info in enumerate(self.assets):
            if info.asset == asset:
                return i
        raise BadAsset(f"Asset not listed: {asset}")

    def asset_config(self, asset: str) -> AssetConfig:
        return self.assets[self.asset_index(asset)]


@dataclass
class TotalsBasic:
    """Market-wide indices and principal aggregates."""

    base_supply_index: int = BASE_INDEX_SCALE
    base_borrow_index: int = BASE_INDEX_SCALE
    tracking_supply_index: int = 0
    tracking_borrow_index: int = 0
    total_supply_base: int = 0
    total_borrow_base: int = 0
    last_accrual_time: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TotalsBasic":
        return cls(**{k: int(v) for k, v in data.items()})


@dataclass
class MarketState:
    """
    All mutable state of one market.

    Account records are created on first access and never deleted.
    ``permissions`` maps an owner to the managers it has allowed.
    """

    totals: TotalsBasic = field(default_factory=TotalsBasic)
    totals_collateral: Dict[str, int] = field(default_factory=dict)
    accounts: Dict[str, AccountState] = field(default_factory=dict)
    liquidator_points: Dict[str, LiquidatorPoints] = field(default_factory=dict)
    pause: PauseFlags = field(default_factory=PauseFlags)
    permissions: Dict[str, Set[str]] = field(default_factory=dict)
    deactivated_collaterals: int = 0

    def account(self, address: str) -> AccountState:
        if address not in self.accounts:
            self.accounts[address] = AccountState()
        return self.accounts[address]

    def points(self, absorber: str) -> LiquidatorPoints:
        if absorber not in self.liquidator_points:
            self.liquidator_points[absorber] = LiquidatorPoints()
        return self.liquidator_points[absorber]

    def total_supply_asset(self, asset: str) -> int:
        return self.totals_collateral.get(asset, 0)

    def to_dict(self) -> dict:
        return {
            "totals": self.totals.to_dict(),
            "totals_collateral": dict(self.totals_collateral),
            "accounts": {k: v.to_dict() for k, v in self.accounts.items()},
            "liquidator_points": {k: v.to_dict() for k, v in self.liquidator_points.items()},
            "pause": self.pause.to_dict(),
            "permissions": {k: sorted(v) for k, v in self.permissions.items()},
            "deactivated_collaterals": self.deactivated_collaterals,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MarketState":
        return cls(
            totals=TotalsBasic.from_dict(data.get("totals", {})),
            totals_collateral={k: int(v) for k, v in data.get("totals_collateral", {}).items()},
            accounts={k: AccountState.from_dict(v) for k, v in data.get("accounts", {}).items()},
            liquidator_points={
                k: LiquidatorPoints(**{f: int(x) for f, x in v.items()})
                for k, v in data.get("liquidator_points", {}).items()
            },
            pause=PauseFlags.from_dict(data.get("pause", {})),
            permissions={k: set(v) for k, v in data.get("permissions", {}).items()},
            deactivated_collaterals=int(data.get("deactivated_collaterals", 0)),
        )
