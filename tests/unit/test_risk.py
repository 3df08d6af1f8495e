"""Unit tests for collateral risk evaluation."""

import pytest

from comet_engine.core.constants import FACTOR_SCALE, PRICE_SCALE
from comet_engine.core.errors import BadPrice
from comet_engine.core.math import factor
from comet_engine.engine.risk import FactorKind

USDC = 10**6
WETH = 10**18


class TestPredicates:
    """Tests for collateralization and liquidation predicates."""

    def test_supplier_is_always_safe(self, market):
        assert market.is_borrow_collateralized("lender")
        assert not market.is_liquidatable("lender")
        assert not market.is_bad_debt("lender")

    def test_healthy_borrower(self, market, open_borrow):
        open_borrow(market, "bob", "WETH", WETH, 2_000 * USDC)

        assert market.is_borrow_collateralized("bob")
        assert not market.is_liquidatable("bob")
        # 3000 * 0.8 - 2000
        assert market.risk.liquidity("bob", FactorKind.BORROW) == 400 * PRICE_SCALE

    def test_price_drop_makes_liquidatable(self, market, open_borrow):
        open_borrow(market, "bob", "WETH", WETH, 2_000 * USDC)
        market.feeds["WETH"].set_usd("2400")

        # 2400 * 0.8 < 2000 but 2400 * 0.85 >= 2000
        assert not market.is_borrow_collateralized("bob")
        assert not market.is_liquidatable("bob")

        market.feeds["WETH"].set_usd("2000")
        assert market.is_liquidatable("bob")
        assert not market.is_bad_debt("bob")

        market.feeds["WETH"].set_usd("1500")
        assert market.is_bad_debt("bob")

    def test_lower_price_never_helps(self, market, open_borrow):
        """Test liquidity is monotone in collateral price."""
        open_borrow(market, "bob", "WETH", WETH, 2_000 * USDC)
        previous = None

        for usd in ("3000", "2600", "2200", "1800", "1400"):
            market.feeds["WETH"].set_usd(usd)
            liquidity = market.risk.liquidity("bob", FactorKind.LIQUIDATE)
            if previous is not None:
                assert liquidity <= previous
            previous = liquidity

    def test_interest_can_make_liquidatable(self, market, open_borrow, clock):
        open_borrow(market, "bob", "WETH", WETH, 2_400 * USDC)
        assert not market.is_liquidatable("bob")

        clock.advance(10 * 365 * 24 * 3600)
        market.accrue()

        assert market.is_liquidatable("bob")

    def test_bad_price_propagates(self, market, open_borrow):
        open_borrow(market, "bob", "WETH", WETH, 2_000 * USDC)
        market.feeds["WETH"].set_price(0)

        with pytest.raises(BadPrice):
            market.is_liquidatable("bob")


class TestFactorMonotonicity:
    """Tests that lowering a risk factor never makes an account safer."""

    @pytest.mark.parametrize(
        "setter, asset_factors, collateral, borrow, usd, steps",
        [
            (
                "update_asset_borrow_collateral_factor",
                ("0.8", "0.85", "1"),
                WETH,
                2_000 * USDC,
                "3000",
                ("0.8", "0.6", "0.3", "0"),
            ),
            (
                "update_asset_liquidate_collateral_factor",
                ("0.05", "0.85", "1"),
                10 * WETH,
                1_500 * USDC,
                "3000",
                ("0.85", "0.5", "0.1", "0"),
            ),
            (
                "update_asset_liquidation_factor",
                ("0.8", "0.85", "1"),
                WETH,
                2_000 * USDC,
                "2200",
                ("1", "0.9", "0.5", "0"),
            ),
        ],
    )
    def test_lower_factor_never_helps(
        self, make_market, make_asset, fund, open_borrow, setter, asset_factors, collateral, borrow, usd, steps
    ):
        borrow_cf, liquidate_cf, liquidation_factor = asset_factors
        market = make_market(assets=[make_asset("WETH", borrow_cf, liquidate_cf, liquidation_factor)])
        fund(market, "lender", "USDC", 100_000 * USDC)
        market.supply("lender", "USDC", 100_000 * USDC)
        open_borrow(market, "bob", "WETH", collateral, borrow)
        market.feeds["WETH"].set_usd(usd)

        outcomes = []
        for step in steps:
            getattr(market.configurator, setter)("governor", "WETH", factor(step))
            market.configurator.deploy_and_upgrade("governor")
            outcomes.append(
                (
                    not market.is_borrow_collateralized("bob"),
                    market.is_liquidatable("bob"),
                    market.is_bad_debt("bob"),
                )
            )

        for before, after in zip(outcomes, outcomes[1:]):
            assert all(a >= b for a, b in zip(after, before))
        # Each walk crosses at least one threshold
        assert outcomes[0] != outcomes[-1]


class TestZeroFactorAssets:
    """Tests for collateral excluded by a zero factor."""

    @pytest.fixture
    def comp_unborrowable(self, make_market, make_asset, fund):
        market = make_market(assets=[make_asset("COMP", borrow_cf="0"), make_asset("WETH")])
        fund(market, "lender", "USDC", 100_000 * USDC)
        market.supply("lender", "USDC", 100_000 * USDC)
        fund(market, "bob", "COMP", 10 * 10**18)
        market.supply("bob", "COMP", 10 * 10**18)
        return market

    def test_liquidity_by_asset_reports_zero(self, comp_unborrowable):
        contributions = comp_unborrowable.risk.liquidity_by_asset("bob", FactorKind.BORROW)
        assert contributions == {"COMP": 0}

    def test_zero_factor_price_is_not_read(self, comp_unborrowable):
        """Test a broken feed on a zero-factor asset does not block borrow checks."""
        comp_unborrowable.feeds["COMP"].set_price(0)

        assert comp_unborrowable.risk.collateral_value("bob", FactorKind.BORROW) == 0
        assert comp_unborrowable.risk.liquidity_by_asset("bob", FactorKind.BORROW) == {"COMP": 0}

    def test_cannot_borrow_against_zero_factor(self, comp_unborrowable):
        from comet_engine.core.errors import NotCollateralized

        with pytest.raises(NotCollateralized):
            comp_unborrowable.withdraw("bob", "USDC", 10 * USDC)


class TestHealthFactors:
    """Tests for liquidation and target health factors."""

    def test_no_debt(self, market):
        assert market.risk.get_liquidation_health_factor("lender") == 0
        assert market.risk.get_target_health_factor("lender") == 0

    def test_health_factor(self, market, open_borrow):
        open_borrow(market, "bob", "WETH", WETH, 2_000 * USDC)
        market.feeds["WETH"].set_usd("2000")

        # Liquidation factor 1: all 2000 of collateral is seizable against 2000 of debt
        assert market.risk.get_liquidation_health_factor("bob") == FACTOR_SCALE
        assert market.risk.get_target_health_factor("bob") == FACTOR_SCALE // 2

    def test_target_never_above_liquidation(self, market, open_borrow):
        open_borrow(market, "bob", "WETH", WETH, 1_000 * USDC)
        lhf = market.risk.get_liquidation_health_factor("bob")
        assert market.risk.get_target_health_factor("bob") <= lhf


class TestMinimalDebt:
    """Tests for the liquidation preview helpers."""

    def test_not_liquidatable(self, market, open_borrow):
        open_borrow(market, "bob", "WETH", WETH, 1_000 * USDC)

        assert market.risk.get_minimal_debt("bob") == 0
        assert market.risk.collateral_for_minimal_debt("bob") == ([], [])

    def test_bad_debt_needs_everything(self, market, open_borrow):
        open_borrow(market, "bob", "WETH", WETH, 2_000 * USDC)
        market.feeds["WETH"].set_usd("1500")

        assert market.risk.get_minimal_debt("bob") == 2_000 * USDC
        assert market.risk.collateral_for_minimal_debt("bob") == (["WETH"], [WETH])
