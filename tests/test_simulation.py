"""Tests for the logit market simulator and price optimizer."""

import numpy as np
import pytest

from tvconjoint import (
    AttributeKey,
    ConfigError,
    PriceGrid,
    ProductDesign,
    simulate_market,
)
from tvconjoint.models import competitor_price_anchors
from tvconjoint.simulation import design_utility, logit_shares, price_utility


def _simulate(model, config):
    return simulate_market(
        model,
        focal=config.focal_design,
        competitors=config.competitors,
        market_size=config.market_size,
        unit_cost=config.unit_cost(config.focal_design),
        price_grid=config.price_grid,
    )


class TestPriceAnchors:
    """The competitor prices anchor the price utility at 0 and 1 x coefficient."""

    def test_anchor_values(self, simple_model):
        assert price_utility(simple_model.price_coefficient, 2000, 2000, 2500) == 0.0
        assert price_utility(simple_model.price_coefficient, 2500, 2000, 2500) == pytest.approx(
            simple_model.price_coefficient
        )

    def test_same_design_at_both_anchors(self, simple_model, config):
        low, high = competitor_price_anchors(config.competitors)
        sony = config.competitors[0]

        u_low = design_utility(simple_model, sony, low, low, high)
        u_high = design_utility(simple_model, sony, high, low, high)

        assert u_high - u_low == pytest.approx(simple_model.price_coefficient, abs=1e-12)

    def test_anchors_ignore_competitor_order(self, config):
        assert competitor_price_anchors(config.competitors) == (2000.0, 2500.0)
        assert competitor_price_anchors(config.competitors[::-1]) == (2000.0, 2500.0)

    def test_missing_competitor_price(self, config):
        competitors = [config.competitors[0], ProductDesign(name="Unpriced")]

        with pytest.raises(ConfigError, match="Unpriced"):
            competitor_price_anchors(competitors)

    def test_identical_competitor_prices(self):
        competitors = [
            ProductDesign(name="A", price=2000.0),
            ProductDesign(name="B", price=2000.0),
        ]
        with pytest.raises(ConfigError, match="differ"):
            competitor_price_anchors(competitors)

    def test_wrong_competitor_count(self, config):
        with pytest.raises(ConfigError, match="Exactly two"):
            competitor_price_anchors(config.competitors[:1])


class TestShares:

    def test_three_shares_sum_to_one(self, simple_model, config):
        sim = _simulate(simple_model, config)

        for outcome in sim.outcomes:
            total = outcome.share + sum(outcome.competitor_shares.values())
            assert total == pytest.approx(1.0, abs=1e-9)
            assert 0.0 <= outcome.share <= 1.0

    def test_share_non_increasing_in_price(self, simple_model, config):
        sim = _simulate(simple_model, config)
        shares = np.array([o.share for o in sim.outcomes])

        assert np.all(np.diff(shares) <= 0)

    def test_sales_and_profit(self, simple_model, config):
        sim = _simulate(simple_model, config)
        unit_cost = config.unit_cost(config.focal_design)

        for outcome in sim.outcomes:
            assert outcome.sales == pytest.approx(outcome.share * config.market_size)
            assert outcome.profit == pytest.approx((outcome.price - unit_cost) * outcome.sales)

    def test_logit_shares_match_formula(self):
        u = np.array([0.5, -1.0, 2.0])

        assert logit_shares(u) == pytest.approx(np.exp(u) / np.exp(u).sum())

    def test_logit_shares_large_utilities(self):
        shares = logit_shares(np.array([800.0, 799.0, 0.0]))

        assert np.all(np.isfinite(shares))
        assert shares.sum() == pytest.approx(1.0)


class TestOptimizer:

    def test_concave_profit_peaks_at_2000(self, concave_market):
        model = concave_market.pop("model")
        sim = simulate_market(model, **concave_market)

        assert sim.optimal_price == 2000.0
        at_2000 = next(o for o in sim.outcomes if o.price == 2000.0)
        assert sim.optimum == at_2000
        assert sim.optimum.profit == pytest.approx(
            (2000.0 - 1500.0) * sim.optimum.share * 1000.0
        )
        assert all(o.profit <= sim.optimum.profit for o in sim.outcomes)

    def test_full_series_is_returned(self, simple_model, config):
        sim = _simulate(simple_model, config)

        assert [o.price for o in sim.outcomes] == list(np.arange(1500.0, 2601.0, 100.0))
        assert sim.unit_cost == 1750.0

    def test_optimum_is_grid_argmax(self, simple_model, config):
        sim = _simulate(simple_model, config)
        profits = [o.profit for o in sim.outcomes]

        assert sim.optimum is sim.outcomes[int(np.argmax(profits))]

    def test_price_insensitive_respondent_prices_at_top(self, config):
        from tvconjoint import UtilityModel

        model = UtilityModel.from_coefficients(
            "flat", 0.0, {k: 0.0 for k in AttributeKey},
        )
        sim = _simulate(model, config)

        # Constant share: profit rises with price, so the top of the grid wins
        assert sim.optimal_price == 2600.0

    def test_extrapolated_prices_reported(self, simple_model, config):
        sim = _simulate(simple_model, config)

        assert sim.extrapolated_prices == [1500.0, 1600.0, 1700.0, 1800.0, 1900.0, 2600.0]
        assert (sim.reference_low, sim.reference_high) == (2000.0, 2500.0)

    def test_single_point_grid(self, simple_model, config):
        config.price_grid = PriceGrid(low=2200.0, high=2200.0, step=50.0)
        sim = _simulate(simple_model, config)

        assert len(sim.outcomes) == 1
        assert sim.optimal_price == 2200.0


class TestPriceGrid:

    @pytest.mark.parametrize("step", [0.0, -100.0])
    def test_non_positive_step(self, simple_model, config, step):
        config.price_grid = PriceGrid(low=1500.0, high=2600.0, step=step)

        with pytest.raises(ConfigError, match="step"):
            _simulate(simple_model, config)

    def test_inverted_grid(self, simple_model, config):
        config.price_grid = PriceGrid(low=2600.0, high=1500.0, step=100.0)

        with pytest.raises(ConfigError, match="above"):
            _simulate(simple_model, config)

    @pytest.mark.parametrize(
        "bounds, name",
        [
            ({"low": np.nan, "high": 2600.0, "step": 100.0}, "low"),
            ({"low": 1500.0, "high": np.inf, "step": 100.0}, "high"),
            ({"low": 1500.0, "high": 2600.0, "step": np.nan}, "step"),
        ],
    )
    def test_non_finite_bounds(self, config, bounds, name):
        config.price_grid = PriceGrid(**bounds)

        with pytest.raises(ConfigError, match=f"{name} must be finite"):
            config.check()

    def test_fractional_step_is_inclusive(self):
        prices = PriceGrid(low=0.0, high=1.0, step=0.1).prices()

        assert len(prices) == 11
        assert prices[-1] == pytest.approx(1.0)

    def test_off_grid_high_is_excluded(self):
        prices = PriceGrid(low=1500.0, high=1650.0, step=100.0).prices()

        assert list(prices) == [1500.0, 1600.0]

    def test_degenerate_model_rejected(self, simple_model, config):
        import dataclasses

        from tvconjoint import DataError

        model = dataclasses.replace(simple_model, degenerate_terms=(AttributeKey.SCREEN_85,))
        with pytest.raises(DataError):
            _simulate(model, config)
