"""
Derived metrics for a fitted respondent: attribute importance and
willingness to pay.

1. **Importance** — the utility range spanned by each attribute family,
   normalized so the four families sum to 1.
2. **Willingness to pay** — part-worths converted to dollars using the
   price coefficient and the dollar gap between the low and high price
   tiers.
"""

# Import modules
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from tvconjoint.estimation import UtilityModel
from tvconjoint.exceptions import ComputationError, ConfigError
from tvconjoint.models import (
    ATTRIBUTE_KEYS,
    NON_PRICE_KEYS,
    AttributeFamily,
    AttributeKey,
)

# Utility ranges below this are treated as no attribute sensitivity at all
RANGE_TOLERANCE = 1e-12
# OLS round-off leaves a price-blind respondent with a tiny nonzero coefficient
PRICE_TOLERANCE = 1e-9

# =====================================================================
# Result containers
# =====================================================================


@dataclass(frozen=True)
class ImportanceVector:
    """Utility range and normalized importance share per attribute family."""

    respondent: str
    ranges: dict[AttributeFamily, float]
    shares: dict[AttributeFamily, float]

    def as_percentages(self) -> dict[AttributeFamily, float]:
        return {fam: 100.0 * share for fam, share in self.shares.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "respondent": self.respondent,
            "ranges": {f.value: v for f, v in self.ranges.items()},
            "shares": {f.value: v for f, v in self.shares.items()},
        }


@dataclass(frozen=True)
class WTPVector:
    """Dollar value of each non-price attribute level for one respondent."""

    respondent: str
    # Dollars per unit of utility
    one_util_value: float
    values: dict[AttributeKey, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "respondent": self.respondent,
            "one_util_value": self.one_util_value,
            "values": {k.value: v for k, v in self.values.items()},
        }


# =====================================================================
# Importance
# =====================================================================


def attribute_ranges(model: UtilityModel) -> dict[AttributeFamily, float]:
    """
    Utility range per attribute family.

    Screen size has three levels: the intercept stands in for the 65"
    baseline, so the range is the spread of {intercept, intercept + b75,
    intercept + b85}.  The binary families span |coefficient|.
    """
    base = model.intercept
    screen = [
        base,
        base + model.coefficient(AttributeKey.SCREEN_75),
        base + model.coefficient(AttributeKey.SCREEN_85),
    ]
    return {
        AttributeFamily.SCREEN_SIZE: max(screen) - min(screen),
        AttributeFamily.RESOLUTION: abs(model.coefficient(AttributeKey.RESOLUTION_4K)),
        AttributeFamily.BRAND: abs(model.coefficient(AttributeKey.BRAND)),
        AttributeFamily.PRICE: abs(model.coefficient(AttributeKey.PRICE_HIGH)),
    }


def compute_importance(model: UtilityModel) -> ImportanceVector:
    """
    Normalized attribute importance for one respondent.

    Raises ``DataError`` for a model with undetermined coefficients and
    ``ComputationError`` when the respondent shows no sensitivity to any
    attribute (all ranges zero) or a range is not finite.
    """
    model.require_terms(ATTRIBUTE_KEYS)
    ranges = attribute_ranges(model)
    total = sum(ranges.values())
    if not math.isfinite(total):
        raise ComputationError(
            f"{model.respondent}: attribute utility ranges are not finite; "
            f"importance is undefined"
        )
    if total <= RANGE_TOLERANCE:
        raise ComputationError(
            f"{model.respondent}: all attribute utility ranges are zero; "
            f"importance is undefined"
        )
    shares = {fam: rng / total for fam, rng in ranges.items()}
    return ImportanceVector(respondent=model.respondent, ranges=ranges, shares=shares)


# =====================================================================
# Willingness to pay
# =====================================================================


def one_util_value(price_coefficient: float, price_differential: float) -> float:
    """Dollars per unit of utility: ``price_differential / |price_coefficient|``."""
    if price_differential <= 0:
        raise ConfigError(
            f"Reference price differential must be positive (got {price_differential})"
        )
    if not math.isfinite(price_coefficient) or abs(price_coefficient) < PRICE_TOLERANCE:
        raise ConfigError(
            f"Price coefficient is {price_coefficient}; willingness to pay is undefined"
        )
    return price_differential / abs(price_coefficient)


def compute_wtp(model: UtilityModel, price_differential: float) -> WTPVector:
    """
    Willingness to pay for each non-price attribute level.

    WTP keeps the sign of the part-worth: a level the respondent dislikes
    gets a negative value, i.e. the discount needed to accept it.
    """
    model.require_terms(ATTRIBUTE_KEYS)
    dollars = one_util_value(model.price_coefficient, price_differential)
    values = {key: model.coefficient(key) * dollars for key in NON_PRICE_KEYS}
    bad = [key.value for key, value in values.items() if not math.isfinite(value)]
    if bad:
        raise ComputationError(
            f"{model.respondent}: willingness to pay is not finite for {', '.join(bad)}"
        )
    return WTPVector(respondent=model.respondent, one_util_value=dollars, values=values)
