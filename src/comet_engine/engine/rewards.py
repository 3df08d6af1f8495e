"""Reward accrual from tracking indices, and the reward claim desk."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from comet_engine.core.constants import BASE_ACCRUAL_SCALE, FACTOR_SCALE
from comet_engine.core.errors import NotSupported, Unauthorized
from comet_engine.core.models.account import AccountState
from comet_engine.core.models.events import EventLog, RewardClaimed
from comet_engine.core.models.market import MarketConfig, TotalsBasic
from comet_engine.core.models.token import Token

if TYPE_CHECKING:
    from comet_engine.engine.market import MoneyMarket

logger = logging.getLogger(__name__)


def accrual_descale_factor(config: MarketConfig) -> int:
    """Divisor bringing base units down to the 6-decimal accrual scale."""
    return max(config.base_scale // BASE_ACCRUAL_SCALE, 1)


def update_base_tracking(
    account: AccountState,
    totals: TotalsBasic,
    config: MarketConfig,
    new_principal: int,
) -> None:
    """
    Settle tracking accrual for the account's current principal.

    Must run before the principal changes. Afterwards the account's
    snapshot index points at the side (supply or borrow) of
    ``new_principal``.
    """
    principal = account.signed_principal
    descale = accrual_descale_factor(config)
    if principal >= 0:
        index_delta = totals.tracking_supply_index - account.base_tracking_index
        account.base_tracking_accrued += principal * index_delta // config.tracking_index_scale // descale
    else:
        index_delta = totals.tracking_borrow_index - account.base_tracking_index
        account.base_tracking_accrued += -principal * index_delta // config.tracking_index_scale // descale

    if new_principal >= 0:
        account.base_tracking_index = totals.tracking_supply_index
    else:
        account.base_tracking_index = totals.tracking_borrow_index


@dataclass(frozen=True)
class RewardConfig:
    """
    How tracked accrual converts to reward tokens.

    Accrual is kept at 6 decimals; ``rescale_factor`` bridges to the
    token's decimals and ``multiplier`` (factor scale) boosts a campaign.
    """

    token: Token
    rescale_factor: int
    should_upscale: bool
    multiplier: int = FACTOR_SCALE


class RewardsDistributor:
    """
    Pays out reward tokens owed according to a market's tracking accrual.

    The distributor's own token balance is the reward pool; issuing tokens
    into it happens outside the engine.
    """

    def __init__(self, market: "MoneyMarket", governor: str, address: str = "rewards"):
        self.market = market
        self.governor = governor
        self.address = address
        self.reward_config: Optional[RewardConfig] = None
        self.rewards_claimed: Dict[str, int] = {}
        self.events = EventLog()

    def set_reward_config(self, caller: str, token: Token, multiplier: int = FACTOR_SCALE) -> RewardConfig:
        """
        Configure the reward token for the market.

        Args:
            caller: Must be the governor
            token: Reward token
            multiplier: Campaign boost in factor scale (1e18 = no boost)

        Returns:
            The stored configuration
        """
        if caller != self.governor:
            raise Unauthorized(f"{caller} cannot configure rewards")
        if multiplier <= 0:
            raise NotSupported("Reward multiplier must be positive")

        token_scale = token.scale
        if BASE_ACCRUAL_SCALE > token_scale:
            config = RewardConfig(token, BASE_ACCRUAL_SCALE // token_scale, False, multiplier)
        else:
            config = RewardConfig(token, token_scale // BASE_ACCRUAL_SCALE, True, multiplier)
        self.reward_config = config
        logger.info(f"Reward token set to {token.symbol} (multiplier {multiplier})")
        return config

    def _require_config(self) -> RewardConfig:
        if self.reward_config is None:
            raise NotSupported("No reward token configured")
        return self.reward_config

    def _accrued_in_token(self, config: RewardConfig, account: str) -> int:
        accrued = self.market.base_tracking_accrued(account)
        if config.should_upscale:
            accrued *= config.rescale_factor
        else:
            accrued //= config.rescale_factor
        return accrued * config.multiplier // FACTOR_SCALE

    def get_reward_owed(self, account: str) -> Tuple[str, int]:
        """
        Reward tokens currently claimable by ``account``.

        Accrues the account first, so the answer reflects ``now``.

        Returns:
            (reward token address, amount owed)
        """
        config = self._require_config()
        self.market.accrue_account(account)
        accrued = self._accrued_in_token(config, account)
        claimed = self.rewards_claimed.get(account, 0)
        owed = accrued - claimed if accrued > claimed else 0
        return config.token.address, owed

    def claim(self, src: str, should_accrue: bool = True) -> int:
        """Claim rewards owed to ``src`` into ``src``'s own wallet."""
        return self._claim_internal(src, src, should_accrue)

    def claim_to(self, caller: str, src: str, to: str, should_accrue: bool = True) -> int:
        """Claim rewards owed to ``src`` on its behalf; ``caller`` needs permission."""
        if not self.market.has_permission(src, caller):
            raise Unauthorized(f"{caller} may not claim for {src}")
        return self._claim_internal(src, to, should_accrue)

    def _claim_internal(self, src: str, to: str, should_accrue: bool) -> int:
        config = self._require_config()
        with self.market.guard.operation("claim"):
            if should_accrue:
                self.market.settle_account(src)

            accrued = self._accrued_in_token(config, src)
            claimed = self.rewards_claimed.get(src, 0)
            if accrued <= claimed:
                return 0

            # Record before paying out; the reward token may call back in
            owed = accrued - claimed
            balances = config.token.snapshot()
            self.rewards_claimed[src] = accrued
            try:
                config.token.transfer(self.address, to, owed)
            except Exception:
                self.rewards_claimed[src] = claimed
                config.token.restore(balances)
                raise
        self.events.emit(RewardClaimed(src=src, recipient=to, token=config.token.address, amount=owed))
        logger.info(f"Claimed {owed} {config.token.symbol} for {src} to {to}")
        return owed
