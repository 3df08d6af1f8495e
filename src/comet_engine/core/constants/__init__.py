"""Core constants module."""

from comet_engine.core.constants.generic import (
    SECONDS_PER_YEAR,
    FACTOR_SCALE,
    BASE_INDEX_SCALE,
    PRICE_SCALE,
    PRICE_FEED_DECIMALS,
    BASE_ACCRUAL_SCALE,
    TRACKING_INDEX_SCALE,
    RESCALE_FACTOR_DECIMALS,
    MAX_ASSETS,
    MAX_BASE_DECIMALS,
    MAX_UINT64,
    MAX_UINT104,
    MAX_UINT128,
    MAX_UINT256,
    MAX_INT104,
    MIN_INT104,
    ENTIRE_BALANCE,
    ZERO_ADDRESS,
)

__all__ = [
    "SECONDS_PER_YEAR",
    "FACTOR_SCALE",
    "BASE_INDEX_SCALE",
    "PRICE_SCALE",
    "PRICE_FEED_DECIMALS",
    "BASE_ACCRUAL_SCALE",
    "TRACKING_INDEX_SCALE",
    "RESCALE_FACTOR_DECIMALS",
    "MAX_ASSETS",
    "MAX_BASE_DECIMALS",
    "MAX_UINT64",
    "MAX_UINT104",
    "MAX_UINT128",
    "MAX_UINT256",
    "MAX_INT104",
    "MIN_INT104",
    "ENTIRE_BALANCE",
    "ZERO_ADDRESS",
]
