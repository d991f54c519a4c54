"""
Market simulation and price optimization for a focal product design.

For one respondent, the focal design competes against two fixed competitor
designs.  Each alternative's utility is the respondent's linear part-worth
model; the price term is interpolated on the scale anchored by the two
competitor prices (low-priced competitor -> 0, high-priced competitor ->
1 * price coefficient).  Shares follow the multinomial logit
share-of-preference rule over the three alternatives with no outside good.

Focal prices outside the competitor anchors extrapolate the linear price
term.  They are simulated as-is and reported in
``MarketSimulation.extrapolated_prices``.

scipy is imported lazily inside :func:`logit_shares`.
"""

# Import modules
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from tvconjoint.estimation import UtilityModel
from tvconjoint.exceptions import ComputationError, ConfigError
from tvconjoint.models import (
    ATTRIBUTE_KEYS,
    NON_PRICE_KEYS,
    PriceGrid,
    ProductDesign,
    competitor_price_anchors,
)

# =====================================================================
# Result containers
# =====================================================================


@dataclass(frozen=True)
class MarketOutcome:
    """Simulated market result for the focal design at one price."""

    price: float
    share: float
    sales: float
    profit: float
    competitor_shares: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "share": self.share,
            "sales": self.sales,
            "profit": self.profit,
            "competitor_shares": dict(self.competitor_shares),
        }


@dataclass(frozen=True)
class MarketSimulation:
    """Price sweep for one respondent plus its profit-maximizing point."""

    respondent: str
    focal_design: str
    unit_cost: float
    reference_low: float
    reference_high: float
    outcomes: list[MarketOutcome]
    optimum: MarketOutcome
    extrapolated_prices: list[float]

    @property
    def optimal_price(self) -> float:
        return self.optimum.price

    def to_dict(self) -> dict[str, Any]:
        return {
            "respondent": self.respondent,
            "focal_design": self.focal_design,
            "unit_cost": self.unit_cost,
            "reference_low": self.reference_low,
            "reference_high": self.reference_high,
            "optimum": self.optimum.to_dict(),
            "outcomes": [o.to_dict() for o in self.outcomes],
            "extrapolated_prices": list(self.extrapolated_prices),
        }


# =====================================================================
# Utility and shares
# =====================================================================


def price_utility(
    price_coefficient: float,
    price: float,
    reference_low: float,
    reference_high: float,
) -> float:
    """Linear price utility, 0 at ``reference_low`` and ``price_coefficient`` at ``reference_high``."""
    return price_coefficient * (price - reference_low) / (reference_high - reference_low)


def design_utility(
    model: UtilityModel,
    design: ProductDesign,
    price: float,
    reference_low: float,
    reference_high: float,
) -> float:
    """Total utility of *design* offered at *price* for one respondent."""
    utility = model.intercept
    for key in NON_PRICE_KEYS:
        utility += model.coefficient(key) * design.indicator(key)
    return utility + price_utility(model.price_coefficient, price, reference_low, reference_high)


def logit_shares(utilities: NDArray[np.float64]) -> NDArray[np.float64]:
    """Multinomial logit shares: ``exp(u_j) / sum_k exp(u_k)``."""
    from scipy.special import softmax  # lazy

    utilities = np.asarray(utilities, dtype=float)
    if not np.all(np.isfinite(utilities)):
        raise ComputationError(f"Non-finite utilities in logit share: {utilities}")
    return softmax(utilities)


# =====================================================================
# Price sweep
# =====================================================================


def simulate_market(
    model: UtilityModel,
    *,
    focal: ProductDesign,
    competitors: list[ProductDesign],
    market_size: float,
    unit_cost: float,
    price_grid: PriceGrid,
) -> MarketSimulation:
    """
    Sweep the focal price grid and pick the profit-maximizing price.

    At every candidate price the focal share, sales (share x market size)
    and profit ((price - unit_cost) x sales) are recorded.  The optimum is
    the first price with strictly maximum profit, so ties keep the lowest
    price.

    Raises ``ConfigError`` for an empty grid or an unusable competitor
    catalog, and ``DataError`` for a model with undetermined coefficients.
    """
    model.require_terms(ATTRIBUTE_KEYS)
    prices = price_grid.prices()
    reference_low, reference_high = competitor_price_anchors(competitors)
    if market_size <= 0:
        raise ConfigError(f"market_size must be positive (got {market_size})")

    competitor_utils = [
        design_utility(model, c, float(c.price), reference_low, reference_high)  # type: ignore[arg-type]
        for c in competitors
    ]

    outcomes: list[MarketOutcome] = []
    optimum: MarketOutcome | None = None
    for price in prices:
        price = float(price)
        focal_util = design_utility(model, focal, price, reference_low, reference_high)
        shares = logit_shares(np.array([focal_util, *competitor_utils]))
        share = float(shares[0])
        sales = share * market_size
        outcome = MarketOutcome(
            price=price,
            share=share,
            sales=sales,
            profit=(price - unit_cost) * sales,
            competitor_shares={
                c.name: float(s) for c, s in zip(competitors, shares[1:])
            },
        )
        outcomes.append(outcome)
        if optimum is None or outcome.profit > optimum.profit:
            optimum = outcome

    if optimum is None:
        raise ConfigError("Price grid produced no candidate prices")
    return MarketSimulation(
        respondent=model.respondent,
        focal_design=focal.name,
        unit_cost=unit_cost,
        reference_low=reference_low,
        reference_high=reference_high,
        outcomes=outcomes,
        optimum=optimum,
        extrapolated_prices=[
            float(p) for p in prices if p < reference_low or p > reference_high
        ],
    )
