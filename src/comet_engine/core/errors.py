"""Exception taxonomy for the money market engine.

Every failure raised by an engine operation derives from :class:`MarketError`.
The intermediate bases group errors by how a caller is expected to react:

- ``PausedError``: blocked by a circuit breaker, retry after unpause.
- ``PreconditionError``: account or market state must change first.
- ``AuthorizationError``: caller lacks the required role or permission.
- ``IntegrationError``: malformed input from an integrator.
- ``EconomicLimitError``: amount outside the configured economic bounds.
- ``SecurityError``: nested entry into the market.
- ``IdempotencyError``: flag already holds the requested value.
- ``ConfigurationError``: a pending configuration failed validation.

State is never partially mutated when one of these escapes an operation.
"""

from typing import Optional


class MarketError(Exception):
    """Base class for all engine errors."""

    default_message = "market operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class AssetIndexedError(MarketError):
    """Error carrying the position of the offending asset."""

    def __init__(self, index: int, message: Optional[str] = None):
        self.index = index
        super().__init__(message or f"{self.default_message} (asset index {index})")


# Circuit breakers

class PausedError(MarketError):
    default_message = "operation is paused"


class Paused(PausedError):
    pass


class LendersWithdrawPaused(PausedError):
    default_message = "lender withdrawals are paused"


class BorrowersWithdrawPaused(PausedError):
    default_message = "borrower withdrawals are paused"


class CollateralWithdrawPaused(PausedError):
    default_message = "collateral withdrawals are paused"


class CollateralAssetWithdrawPaused(AssetIndexedError, PausedError):
    default_message = "collateral asset withdrawals are paused"


class BaseSupplyPaused(PausedError):
    default_message = "base supply is paused"


class CollateralSupplyPaused(PausedError):
    default_message = "collateral supply is paused"


class CollateralAssetSupplyPaused(AssetIndexedError, PausedError):
    default_message = "collateral asset supply is paused"


class LendersTransferPaused(PausedError):
    default_message = "lender transfers are paused"


class BorrowersTransferPaused(PausedError):
    default_message = "borrower transfers are paused"


class CollateralTransferPaused(PausedError):
    default_message = "collateral transfers are paused"


class CollateralAssetTransferPaused(AssetIndexedError, PausedError):
    default_message = "collateral asset transfers are paused"


# Preconditions

class PreconditionError(MarketError):
    default_message = "precondition failed"


class NotCollateralized(PreconditionError):
    default_message = "account would be undercollateralized"


class NotLiquidatable(PreconditionError):
    default_message = "account is not liquidatable"


class NoSelfTransfer(PreconditionError):
    default_message = "cannot transfer to self"


class NotForSale(PreconditionError):
    default_message = "reserves are at or above target, collateral not for sale"


class TooMuchSlippage(PreconditionError):
    default_message = "quoted collateral below minimum"


class InsufficientReserves(PreconditionError):
    default_message = "insufficient reserves"


class InsufficientBalance(PreconditionError):
    default_message = "token balance too low"


class BadAsset(PreconditionError):
    default_message = "asset is not listed"


# Authorization

class AuthorizationError(MarketError):
    default_message = "caller is not authorized"


class Unauthorized(AuthorizationError):
    pass


class OnlyPauseGuardianOrGovernor(AuthorizationError):
    default_message = "only the pause guardian or governor may do this"


class OnlyPauseGuardian(AuthorizationError):
    default_message = "only the pause guardian may do this"


class OnlyGovernor(AuthorizationError):
    default_message = "only the governor may do this"


# Integration

class IntegrationError(MarketError):
    default_message = "invalid input"


class InvalidAssetIndex(AssetIndexedError, IntegrationError):
    default_message = "asset index out of range"


class InvalidUInt64(IntegrationError):
    default_message = "value does not fit in uint64"


class InvalidUInt104(IntegrationError):
    default_message = "value does not fit in uint104"


class InvalidUInt128(IntegrationError):
    default_message = "value does not fit in uint128"


class InvalidInt104(IntegrationError):
    default_message = "value does not fit in int104"


class NegativeNumber(IntegrationError):
    default_message = "value must not be negative"


class BadPrice(IntegrationError):
    default_message = "price feed returned a non-positive answer"


class NotSupported(IntegrationError):
    default_message = "operation not supported"


# Economic limits

class EconomicLimitError(MarketError):
    default_message = "economic limit reached"


class SupplyCapExceeded(EconomicLimitError):
    default_message = "supply cap exceeded"


class BorrowTooSmall(EconomicLimitError):
    default_message = "borrow below minimum"


# Security

class SecurityError(MarketError):
    default_message = "security violation"


class ReentrantCallBlocked(SecurityError):
    default_message = "reentrant call blocked"


# Idempotency

class IdempotencyError(MarketError):
    default_message = "value already set"


class OffsetStatusAlreadySet(IdempotencyError):
    default_message = "pause flag already has this status"


class CollateralAssetOffsetStatusAlreadySet(AssetIndexedError, IdempotencyError):
    default_message = "collateral asset pause flag already has this status"


# Configuration

class ConfigurationError(MarketError):
    default_message = "invalid configuration"


class BadDecimals(ConfigurationError):
    default_message = "unsupported decimals"


class BadDiscount(ConfigurationError):
    default_message = "storefront price factor above 1"


class BadMinimum(ConfigurationError):
    default_message = "minimum for rewards must be positive"


class TooManyAssets(ConfigurationError):
    default_message = "too many collateral assets"


class BorrowCFTooLarge(ConfigurationError):
    default_message = "borrow collateral factor must be below liquidate collateral factor"


class LiquidateCFTooLarge(ConfigurationError):
    default_message = "liquidate collateral factor above 1"


class AssetAlreadyListed(ConfigurationError):
    default_message = "asset already listed"
