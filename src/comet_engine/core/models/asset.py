"""Collateral asset configuration."""

from pydantic import BaseModel, ConfigDict, Field

from comet_engine.core.constants import FACTOR_SCALE


class AssetConfig(BaseModel):
    """
    Listing parameters of one collateral asset.

    Factors are ints in factor scale (1e18 == 100%). ``price_feed`` is the
    key of the asset's feed in the market's feed registry.
    """

    model_config = ConfigDict(frozen=True)

    asset: str
    price_feed: str
    decimals: int = Field(ge=0, le=36)
    borrow_collateral_factor: int = Field(ge=0, le=FACTOR_SCALE)
    liquidate_collateral_factor: int = Field(ge=0, le=FACTOR_SCALE)
    liquidation_factor: int = Field(ge=0, le=FACTOR_SCALE)
    supply_cap: int = Field(ge=0)

    @property
    def scale(self) -> int:
        """Native unit scale of the asset (10**decimals)."""
        return 10**self.decimals
