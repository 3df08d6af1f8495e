"""Pydantic settings for the money market engine."""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Engine defaults loaded from environment variables (prefix ``COMET_``)."""

    model_config = SettingsConfigDict(
        env_prefix="COMET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supply rate curve (per year, fractions)
    supply_kink: Decimal = Field(default=Decimal("0.8"), ge=0, le=1, description="Supply curve kink utilization")
    supply_per_year_interest_rate_slope_low: Decimal = Field(default=Decimal("0.04"), ge=0)
    supply_per_year_interest_rate_slope_high: Decimal = Field(default=Decimal("0.4"), ge=0)
    supply_per_year_interest_rate_base: Decimal = Field(default=Decimal("0"), ge=0)

    # Borrow rate curve (per year, fractions)
    borrow_kink: Decimal = Field(default=Decimal("0.8"), ge=0, le=1, description="Borrow curve kink utilization")
    borrow_per_year_interest_rate_slope_low: Decimal = Field(default=Decimal("0.05"), ge=0)
    borrow_per_year_interest_rate_slope_high: Decimal = Field(default=Decimal("0.3"), ge=0)
    borrow_per_year_interest_rate_base: Decimal = Field(default=Decimal("0.01"), ge=0)

    # Liquidation
    storefront_price_factor: Decimal = Field(
        default=Decimal("0.5"), ge=0, le=1, description="Share of the liquidation discount passed to buyers"
    )
    partial_liquidation_split: Literal["proportional", "largest_value_first"] = Field(
        default="proportional",
        description="How collateral seized by a partial liquidation is split across assets",
    )
    target_reserves: int = Field(default=5_000_000 * 10**6, ge=0, description="Reserves above which collateral is not sold")

    # Base token limits (base units)
    base_borrow_min: int = Field(default=10**6, ge=0, description="Smallest allowed borrow position")
    base_min_for_rewards: int = Field(default=10**6, gt=0, description="Total principal needed before rewards accrue")

    # Reward tracking speeds (tracking index units per second)
    base_tracking_supply_speed: int = Field(default=10**15, ge=0)
    base_tracking_borrow_speed: int = Field(default=10**15, ge=0)

    # Persistence / logging
    snapshot_dir: Path = Field(default=Path(".comet_engine"), description="Directory for JSON market snapshots")
    log_level: str = Field(default="INFO", description="Root logging level for the CLI")

    @field_validator("snapshot_dir", mode="before")
    @classmethod
    def parse_snapshot_dir(cls, v):
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v)
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case and check the logging level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def check_curves(self) -> "EngineSettings":
        """Borrowers never pay a lower base rate than suppliers earn."""
        if self.borrow_per_year_interest_rate_base < self.supply_per_year_interest_rate_base:
            raise ValueError("Borrow base rate must not be below supply base rate")
        return self

    def ensure_snapshot_dir(self) -> Path:
        """Ensure snapshot directory exists and return it."""
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        return self.snapshot_dir


@lru_cache()
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    return EngineSettings()
