"""
Data models for the conjoint pricing pipeline.

These Pydantic models define the study configuration (price grid, cost
table, competitor catalog) and the product designs that the market
simulator prices.  Attributes are identified everywhere by
:class:`AttributeKey` so part-worths, designs and costs join by key.
"""

# Import modules
from __future__ import annotations
import enum
import math
from pathlib import Path

import numpy as np
import yaml
from numpy.typing import NDArray
from pydantic import BaseModel, Field, ValidationError, model_validator

from tvconjoint.exceptions import ConfigError

# ------------------------------------------------------------------
# Attribute keys
# ------------------------------------------------------------------

class AttributeFamily(str, enum.Enum):
    """Attribute families that importance is reported for."""

    SCREEN_SIZE = "screen_size"
    RESOLUTION = "resolution"
    BRAND = "brand"
    PRICE = "price"


class AttributeKey(str, enum.Enum):
    """Binary attribute indicators; the value is the canonical column name.

    65" screen, HD resolution, no brand and the low price tier are the
    omitted baseline levels absorbed by the intercept.
    """

    SCREEN_75 = "screen_75"
    SCREEN_85 = "screen_85"
    RESOLUTION_4K = "resolution_4k"
    BRAND = "brand"
    PRICE_HIGH = "price_high"

    @property
    def family(self) -> AttributeFamily:
        return _KEY_FAMILIES[self]

    @property
    def label(self) -> str:
        return _KEY_LABELS[self]


_KEY_FAMILIES: dict[AttributeKey, AttributeFamily] = {
    AttributeKey.SCREEN_75: AttributeFamily.SCREEN_SIZE,
    AttributeKey.SCREEN_85: AttributeFamily.SCREEN_SIZE,
    AttributeKey.RESOLUTION_4K: AttributeFamily.RESOLUTION,
    AttributeKey.BRAND: AttributeFamily.BRAND,
    AttributeKey.PRICE_HIGH: AttributeFamily.PRICE,
}

_KEY_LABELS: dict[AttributeKey, str] = {
    AttributeKey.SCREEN_75: '75" screen',
    AttributeKey.SCREEN_85: '85" screen',
    AttributeKey.RESOLUTION_4K: "4K resolution",
    AttributeKey.BRAND: "Brand",
    AttributeKey.PRICE_HIGH: "High price",
}

# Regression column order
ATTRIBUTE_KEYS: tuple[AttributeKey, ...] = tuple(AttributeKey)
NON_PRICE_KEYS: tuple[AttributeKey, ...] = tuple(
    k for k in AttributeKey if k is not AttributeKey.PRICE_HIGH
)
SCREEN_KEYS: tuple[AttributeKey, ...] = (AttributeKey.SCREEN_75, AttributeKey.SCREEN_85)

# Spreadsheet headers used by the original survey export
DEFAULT_COLUMN_MAP: dict[str, AttributeKey] = {
    "Screen 75 inch": AttributeKey.SCREEN_75,
    "Screen 85 inch": AttributeKey.SCREEN_85,
    "Resolution 4K = 1": AttributeKey.RESOLUTION_4K,
    "Sony = 1": AttributeKey.BRAND,
    "Price (low = 0; high =1)": AttributeKey.PRICE_HIGH,
}


# ------------------------------------------------------------------
# Product designs
# ------------------------------------------------------------------

class ProductDesign(BaseModel):
    """A named bundle of non-price indicator values plus an optional price."""

    name: str
    attributes: dict[AttributeKey, int] = Field(default_factory=dict)
    price: float | None = None

    @model_validator(mode="after")
    def _validate_indicators(self) -> "ProductDesign":
        for key, value in self.attributes.items():
            if key is AttributeKey.PRICE_HIGH:
                raise ValueError(
                    f"{self.name}: the price tier is set through 'price', "
                    f"not as an attribute indicator"
                )
            if value not in (0, 1):
                raise ValueError(f"{self.name}: indicator {key.value} must be 0 or 1")
        if all(self.attributes.get(k, 0) == 1 for k in SCREEN_KEYS):
            raise ValueError(f"{self.name}: a design has exactly one screen size")
        return self

    def indicator(self, key: AttributeKey) -> int:
        """Indicator value for *key*; unset keys are the baseline (0)."""
        return self.attributes.get(key, 0)

    def with_price(self, price: float) -> "ProductDesign":
        return self.model_copy(update={"price": float(price)})


# ------------------------------------------------------------------
# Price grid
# ------------------------------------------------------------------

class PriceGrid(BaseModel):
    """Inclusive focal price sweep ``low, low + step, ..., high``."""

    low: float
    high: float
    step: float

    def prices(self) -> NDArray[np.float64]:
        """Candidate prices; raises ``ConfigError`` for an empty or unbounded grid."""
        bounds = {"low": self.low, "high": self.high, "step": self.step}
        not_finite = [name for name, value in bounds.items() if not math.isfinite(value)]
        if not_finite:
            raise ConfigError(
                f"Price grid {', '.join(not_finite)} must be finite"
            )
        if self.step <= 0:
            raise ConfigError(f"Price grid step must be positive (got {self.step})")
        if self.low > self.high:
            raise ConfigError(
                f"Price grid low ({self.low}) is above high ({self.high})"
            )
        # Tolerance keeps an on-grid upper bound despite float division
        n_points = int(np.floor((self.high - self.low) / self.step + 1e-9)) + 1
        return self.low + self.step * np.arange(n_points, dtype=float)


def competitor_price_anchors(competitors: list[ProductDesign]) -> tuple[float, float]:
    """
    Return ``(reference_low, reference_high)`` from the competitor prices.

    The low-priced competitor defines price utility 0 and the high-priced
    one defines price utility ``1 * price_coefficient``.
    """
    if len(competitors) != 2:
        raise ConfigError(
            f"Exactly two competitor designs are required (got {len(competitors)})"
        )
    missing = [c.name for c in competitors if c.price is None]
    if missing:
        raise ConfigError(f"Competitor price missing for: {', '.join(missing)}")
    low, high = sorted(float(c.price) for c in competitors)  # type: ignore[arg-type]
    if low == high:
        raise ConfigError(
            f"Competitor prices must differ to anchor the price scale (both {low})"
        )
    return low, high


# ------------------------------------------------------------------
# Study configuration (loaded from YAML)
# ------------------------------------------------------------------

def _default_competitors() -> list[ProductDesign]:
    return [
        ProductDesign(
            name="Sony",
            attributes={
                AttributeKey.SCREEN_75: 1,
                AttributeKey.RESOLUTION_4K: 1,
                AttributeKey.BRAND: 1,
            },
            price=2500.0,
        ),
        ProductDesign(
            name="Sharp",
            attributes={AttributeKey.RESOLUTION_4K: 1},
            price=2000.0,
        ),
    ]


class StudyConfig(BaseModel):
    """Top-level study configuration, typically loaded from a YAML file."""

    name: str = "TV conjoint study"
    description: str = ""
    # Substring that identifies preference-rank columns
    preference_marker: str = "Preference"
    column_map: dict[str, AttributeKey] = Field(
        default_factory=lambda: dict(DEFAULT_COLUMN_MAP)
    )
    # Dollar gap assumed to match the low -> high price indicator swing
    reference_price_differential: float = 500.0
    market_size: float = 100.0
    base_cost: float = 1000.0
    unit_cost_table: dict[AttributeKey, float] = Field(
        default_factory=lambda: {
            AttributeKey.SCREEN_75: 500.0,
            AttributeKey.SCREEN_85: 1000.0,
            AttributeKey.RESOLUTION_4K: 250.0,
            AttributeKey.BRAND: 250.0,
        }
    )
    price_grid: PriceGrid = Field(
        default_factory=lambda: PriceGrid(low=1500.0, high=2600.0, step=100.0)
    )
    focal_design: ProductDesign = Field(
        default_factory=lambda: ProductDesign(
            name="My design",
            attributes={AttributeKey.SCREEN_75: 1, AttributeKey.RESOLUTION_4K: 1},
        )
    )
    competitors: list[ProductDesign] = Field(default_factory=_default_competitors)
    # Fits above this design-matrix condition number raise a FitWarning
    max_condition_number: float = Field(default=1000.0, gt=0)

    @model_validator(mode="after")
    def _validate_unique_design_names(self) -> "StudyConfig":
        names = [self.focal_design.name] + [c.name for c in self.competitors]
        if len(names) != len(set(names)):
            raise ValueError("Product design names must be unique")
        return self

    # ------------------------------------------------------------------
    # Run-time checks
    # ------------------------------------------------------------------

    def check(self) -> None:
        """
        Validate the parts of the configuration shared by every respondent.

        Raises ``ConfigError`` so that a bad grid, cost table or competitor
        catalog aborts a run before any respondent is processed.
        """
        self.price_grid.prices()
        competitor_price_anchors(self.competitors)
        if self.reference_price_differential <= 0:
            raise ConfigError(
                "reference_price_differential must be positive "
                f"(got {self.reference_price_differential})"
            )
        if self.market_size <= 0:
            raise ConfigError(f"market_size must be positive (got {self.market_size})")
        if AttributeKey.PRICE_HIGH in self.unit_cost_table:
            raise ConfigError("unit_cost_table cannot carry a cost for the price tier")

    def unit_cost(self, design: ProductDesign) -> float:
        """Base cost plus the cost addition of every level the design has."""
        return self.base_cost + sum(
            cost * design.indicator(key) for key, cost in self.unit_cost_table.items()
        )

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, path: str | Path) -> "StudyConfig":
        """Load a study configuration from a YAML file."""
        path = Path(path)
        try:
            with path.open() as f:
                data = yaml.safe_load(f) or {}
        except OSError as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid config file {path}:\n{exc}") from exc
