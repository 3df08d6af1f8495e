"""End-to-end market lifecycle tests."""

import pytest

from comet_engine.core.models import ManualClock
from comet_engine.demo import build_demo_market
from comet_engine.engine.rewards import RewardsDistributor

USDC = 10**6
WETH = 10**18
YEAR = 365 * 24 * 3600


@pytest.fixture
def demo(settings):
    clock = ManualClock()
    market = build_demo_market(settings, clock)
    market.tokens["USDC"].mint("lender", 1_000_000 * USDC)
    market.supply("lender", "USDC", 1_000_000 * USDC)
    return market, clock


class TestLifecycle:
    """Supply, borrow, accrue, liquidate and sell collateral."""

    def test_interest_then_liquidation(self, demo):
        market, clock = demo
        market.tokens["WETH"].mint("borrower", 10 * WETH)
        market.supply("borrower", "WETH", 10 * WETH)
        market.withdraw("borrower", "USDC", 24_000 * USDC)

        clock.advance(YEAR)
        market.accrue()
        assert market.borrow_balance_of("borrower") > 24_000 * USDC
        assert market.balance_of("lender") > 1_000_000 * USDC

        market.feeds["WETH"].set_usd("2000")
        assert market.is_liquidatable("borrower")
        assert market.is_bad_debt("borrower")

        market.absorb("liquidator", ["borrower"])

        assert market.user_basic("borrower").signed_principal == 0
        assert market.totals_basic().total_borrow_base == 0
        assert market.get_reserves() < 0
        assert market.get_collateral_reserves("WETH") == 10 * WETH

        market.tokens["USDC"].mint("buyer", 5_000 * USDC)
        bought = market.buy_collateral("buyer", "WETH", 0, 5_000 * USDC, "buyer")
        # 5% liquidation discount, half passed to the buyer: 2000 * 0.975 = 1950 per WETH
        assert bought == 5_000 * WETH // 1950
        assert market.tokens["WETH"].balance_of("buyer") == bought

    def test_partial_liquidation(self, demo):
        market, _ = demo
        market.tokens["WETH"].mint("borrower", 10 * WETH)
        market.supply("borrower", "WETH", 10 * WETH)
        market.withdraw("borrower", "USDC", 24_000 * USDC)
        market.feeds["WETH"].set_usd("2800")

        plan = market.absorb_partial("liquidator", "borrower")

        assert not market.is_liquidatable("borrower")
        assert market.borrow_balance_of("borrower") == plan.remaining_debt
        assert 0 < market.collateral_balance_of("borrower", "WETH") < 10 * WETH

    def test_rewards_over_time(self, demo):
        market, clock = demo
        reward_token = market.tokens["COMP"]
        reward_token.mint("rewards", 10**24)
        rewards = RewardsDistributor(market, governor="governor")
        rewards.set_reward_config("governor", reward_token)

        clock.advance(3600)
        owed_token, owed = rewards.get_reward_owed("lender")

        assert owed_token == "COMP"
        assert owed > 0
        assert rewards.claim("lender") == owed
        assert reward_token.balance_of("lender") == owed

    def test_many_users_keep_totals_consistent(self, demo):
        market, clock = demo
        for i in range(5):
            user = f"user{i}"
            market.tokens["WBTC"].mint(user, 10**8)
            market.supply(user, "WBTC", 10**8)
            market.withdraw(user, "USDC", (i + 1) * 1_000 * USDC)
            clock.advance(600)
        market.transfer("user0", "user1", 500 * USDC)
        market.tokens["USDC"].mint("user4", 10_000 * USDC)
        market.supply("user4", "USDC", 10_000 * USDC)
        market.accrue()

        principals = [a.signed_principal for a in market.state.accounts.values()]
        totals = market.totals_basic()
        assert totals.total_supply_base == sum(p for p in principals if p > 0)
        assert totals.total_borrow_base == -sum(p for p in principals if p < 0)
