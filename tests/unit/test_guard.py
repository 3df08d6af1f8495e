"""Unit tests for the operation guard."""

import pytest

from comet_engine.core.errors import NotCollateralized, ReentrantCallBlocked
from comet_engine.core.models import Token

USDC = 10**6
WETH = 10**18


class TestReentrancy:
    """Tests for nested market calls."""

    @pytest.fixture
    def hooked(self, make_market, fund):
        """Market whose WETH token calls back into the market on transfer."""
        market = make_market()
        calls = []

        def hook(token: Token, src: str, dst: str, amount: int) -> None:
            if calls:
                return
            calls.append((src, dst, amount))
            market.withdraw("attacker", "USDC", USDC)

        fund(market, "attacker", "WETH", WETH)
        return market, hook, calls

    def test_reentrant_call_blocked(self, hooked):
        market, hook, calls = hooked
        market.tokens["WETH"].transfer_hook = hook

        with pytest.raises(ReentrantCallBlocked):
            market.supply("attacker", "WETH", WETH)

        assert calls == [("attacker", "market", WETH)]
        assert market.tokens["WETH"].balance_of("attacker") == WETH
        assert market.collateral_balance_of("attacker", "WETH") == 0
        assert not market.guard.locked

    def test_market_usable_after_block(self, hooked):
        market, hook, _ = hooked
        market.tokens["WETH"].transfer_hook = hook
        with pytest.raises(ReentrantCallBlocked):
            market.supply("attacker", "WETH", WETH)

        market.tokens["WETH"].transfer_hook = None
        market.supply("attacker", "WETH", WETH)

        assert market.collateral_balance_of("attacker", "WETH") == WETH


class TestRollback:
    """Tests for all-or-nothing operations."""

    def test_failed_withdraw_leaves_no_trace(self, market, fund):
        fund(market, "bob", "WETH", WETH)
        market.supply("bob", "WETH", WETH)
        state_before = market.state.to_dict()
        balances_before = market.tokens["USDC"].snapshot()
        events_before = len(market.events)

        with pytest.raises(NotCollateralized):
            market.withdraw("bob", "USDC", 5_000 * USDC)

        assert market.state.to_dict() == state_before
        assert market.tokens["USDC"].snapshot() == balances_before
        assert len(market.events) == events_before
        assert not market.guard.locked

    def test_failed_operation_keeps_accrual_unapplied(self, market, fund, clock):
        """Test a failed call does not even advance the accrual time."""
        fund(market, "bob", "WETH", WETH)
        market.supply("bob", "WETH", WETH)
        last_accrual = market.totals_basic().last_accrual_time
        clock.advance(3600)

        with pytest.raises(NotCollateralized):
            market.withdraw("bob", "USDC", 5_000 * USDC)

        assert market.totals_basic().last_accrual_time == last_accrual
