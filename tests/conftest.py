"""Pytest fixtures for the conjoint pipeline tests."""

import itertools

import numpy as np
import pandas as pd
import pytest

from tvconjoint import AttributeKey, PriceGrid, ProductDesign, StudyConfig, UtilityModel

ATTRIBUTE_COLUMNS = [k.value for k in AttributeKey]

# Known part-worths used to generate preference scores
ALICE = {
    "intercept": 10.0,
    AttributeKey.SCREEN_75: 3.0,
    AttributeKey.SCREEN_85: 5.0,
    AttributeKey.RESOLUTION_4K: 4.0,
    AttributeKey.BRAND: 2.0,
    AttributeKey.PRICE_HIGH: -6.0,
}
BOB = {
    "intercept": 8.0,
    AttributeKey.SCREEN_75: 1.0,
    AttributeKey.SCREEN_85: 1.5,
    AttributeKey.RESOLUTION_4K: 2.0,
    AttributeKey.BRAND: 4.0,
    AttributeKey.PRICE_HIGH: -3.0,
}


def make_profiles() -> pd.DataFrame:
    """Full factorial: 3 screen sizes x 4K x brand x price tier = 24 profiles."""
    rows = []
    screens = [(0, 0), (1, 0), (0, 1)]
    for (s75, s85), res, brand, price in itertools.product(screens, (0, 1), (0, 1), (0, 1)):
        rows.append({
            AttributeKey.SCREEN_75.value: s75,
            AttributeKey.SCREEN_85.value: s85,
            AttributeKey.RESOLUTION_4K.value: res,
            AttributeKey.BRAND.value: brand,
            AttributeKey.PRICE_HIGH.value: price,
        })
    return pd.DataFrame(rows)


def score(profiles: pd.DataFrame, partworths: dict, noise: float = 0.0, seed: int = 0) -> pd.Series:
    """Linear preference score from part-worths, plus optional Gaussian noise."""
    y = np.full(len(profiles), partworths["intercept"], dtype=float)
    for key in AttributeKey:
        y += partworths[key] * profiles[key.value].to_numpy()
    if noise:
        y += noise * np.random.default_rng(seed).standard_normal(len(profiles))
    return pd.Series(y, index=profiles.index)


@pytest.fixture
def profiles() -> pd.DataFrame:
    return make_profiles()


@pytest.fixture
def survey_data() -> pd.DataFrame:
    """Two well-conditioned respondents with slightly noisy scores."""
    data = make_profiles()
    data["Preference Alice"] = score(data, ALICE, noise=0.05, seed=1)
    data["Preference Bob"] = score(data, BOB, noise=0.05, seed=2)
    return data


@pytest.fixture
def config() -> StudyConfig:
    return StudyConfig()


@pytest.fixture
def simple_model() -> UtilityModel:
    """Hand-built model with a negative price effect."""
    return UtilityModel.from_coefficients(
        "simple",
        intercept=1.0,
        coefficients={
            AttributeKey.SCREEN_75: 0.5,
            AttributeKey.SCREEN_85: 0.8,
            AttributeKey.RESOLUTION_4K: 0.6,
            AttributeKey.BRAND: 0.4,
            AttributeKey.PRICE_HIGH: -1.2,
        },
    )


@pytest.fixture
def concave_market():
    """
    Focal design facing two much more attractive competitors.

    The focal share stays tiny, so profit is proportional to
    (p - 1500) * exp(-(p - 2000) / 500), which peaks at p = 2000.
    """
    model = UtilityModel.from_coefficients(
        "concave",
        intercept=0.0,
        coefficients={
            AttributeKey.SCREEN_75: 0.0,
            AttributeKey.SCREEN_85: 0.0,
            AttributeKey.RESOLUTION_4K: 0.0,
            AttributeKey.BRAND: 12.0,
            AttributeKey.PRICE_HIGH: -1.0,
        },
    )
    competitors = [
        ProductDesign(name="Premium", attributes={AttributeKey.BRAND: 1}, price=2500.0),
        ProductDesign(name="Value", attributes={AttributeKey.BRAND: 1}, price=2000.0),
    ]
    return {
        "model": model,
        "focal": ProductDesign(name="Focal"),
        "competitors": competitors,
        "market_size": 1000.0,
        "unit_cost": 1500.0,
        "price_grid": PriceGrid(low=1500.0, high=2600.0, step=100.0),
    }
