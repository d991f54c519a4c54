"""
Individual-level part-worth estimation for the conjoint study.

Each respondent's preference column is regressed on the five attribute
indicators by ordinary least squares (statsmodels), one independent fit per
respondent.  The fitted coefficients are that respondent's part-worths; the
intercept is the utility of the baseline profile (65", HD, no brand, low
price).

Fits are pure functions of the (read-only) survey table, so any number of
them may run side by side.
"""

# Import modules
from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
import statsmodels.api as sm

from tvconjoint.exceptions import DataError, FitWarning
from tvconjoint.models import ATTRIBUTE_KEYS, AttributeKey

logger = logging.getLogger(__name__)

INTERCEPT = "intercept"

# =====================================================================
# Result container
# =====================================================================


@dataclass(frozen=True)
class UtilityModel:
    """Fitted part-worths and OLS diagnostics for one respondent."""

    respondent: str
    intercept: float
    coefficients: dict[AttributeKey, float]
    n_obs: int
    df_resid: float
    r_squared: float
    adj_r_squared: float
    residual_std: float
    condition_number: float
    # Keyed by "intercept" and AttributeKey values
    std_errors: dict[str, float] = field(default_factory=dict)
    p_values: dict[str, float] = field(default_factory=dict)
    # Attributes without independent variation; their coefficient is NaN
    degenerate_terms: tuple[AttributeKey, ...] = ()
    # Condition number above the configured threshold; coefficients are kept
    near_singular: bool = False

    @classmethod
    def from_coefficients(
        cls,
        respondent: str,
        intercept: float,
        coefficients: dict[AttributeKey, float],
    ) -> "UtilityModel":
        """Build a model from known part-worths (what-if runs, no fit diagnostics)."""
        missing = [k.value for k in ATTRIBUTE_KEYS if k not in coefficients]
        if missing:
            raise DataError(f"{respondent}: missing coefficient(s) for {', '.join(missing)}")
        return cls(
            respondent=respondent,
            intercept=float(intercept),
            coefficients={k: float(coefficients[k]) for k in ATTRIBUTE_KEYS},
            n_obs=0,
            df_resid=math.nan,
            r_squared=math.nan,
            adj_r_squared=math.nan,
            residual_std=math.nan,
            condition_number=math.nan,
        )

    @property
    def is_degenerate(self) -> bool:
        """True when any coefficient is undetermined or the design is near-singular."""
        return bool(self.degenerate_terms) or self.near_singular

    @property
    def price_coefficient(self) -> float:
        return self.coefficients[AttributeKey.PRICE_HIGH]

    def coefficient(self, key: AttributeKey) -> float:
        return self.coefficients[key]

    def require_terms(self, keys: tuple[AttributeKey, ...] = ATTRIBUTE_KEYS) -> None:
        """Raise ``DataError`` if any of *keys* has an undetermined coefficient."""
        bad = [k for k in keys if k in self.degenerate_terms]
        if bad:
            raise DataError(
                f"{self.respondent}: coefficients undetermined for "
                f"{', '.join(k.value for k in bad)}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "respondent": self.respondent,
            "intercept": self.intercept,
            "coefficients": {k.value: v for k, v in self.coefficients.items()},
            "n_obs": self.n_obs,
            "df_resid": self.df_resid,
            "r_squared": self.r_squared,
            "adj_r_squared": self.adj_r_squared,
            "residual_std": self.residual_std,
            "condition_number": self.condition_number,
            "std_errors": dict(self.std_errors),
            "p_values": dict(self.p_values),
            "degenerate_terms": [k.value for k in self.degenerate_terms],
            "near_singular": self.near_singular,
        }


# =====================================================================
# Dataset checks
# =====================================================================


def find_preference_columns(data: pd.DataFrame, marker: str) -> list[str]:
    """Preference-rank columns, in table order, identified by *marker*."""
    attribute_columns = {k.value for k in ATTRIBUTE_KEYS}
    return [
        str(col) for col in data.columns
        if marker in str(col) and str(col) not in attribute_columns
    ]


def validate_attribute_data(data: pd.DataFrame) -> None:
    """
    Check the attribute indicators shared by every respondent.

    Raises ``DataError`` when a column name repeats or is missing, a value
    is not 0/1, or a profile claims both the 75" and the 85" screen.
    """
    duplicated = sorted({str(c) for c in data.columns[data.columns.duplicated()]})
    if duplicated:
        raise DataError(f"Duplicate column name(s): {', '.join(duplicated)}")
    missing = [k.value for k in ATTRIBUTE_KEYS if k.value not in data.columns]
    if missing:
        raise DataError(f"Missing attribute column(s): {', '.join(missing)}")
    if data.empty:
        raise DataError("Survey dataset has no rows")

    for key in ATTRIBUTE_KEYS:
        values = pd.to_numeric(data[key.value], errors="coerce")
        if values.isna().any() or not values.isin([0, 1]).all():
            raise DataError(f"Attribute column {key.value!r} must contain only 0/1 values")

    both = (data[AttributeKey.SCREEN_75.value] == 1) & (data[AttributeKey.SCREEN_85.value] == 1)
    if both.any():
        rows = [str(i) for i in data.index[both][:5]]
        raise DataError(
            f"{int(both.sum())} profile(s) set both screen-size indicators "
            f"(rows {', '.join(rows)})"
        )


def _preference_scores(data: pd.DataFrame, column: str) -> pd.Series:
    if column not in data.columns:
        raise DataError(f"Preference column {column!r} not found")
    selected = data[column]
    if isinstance(selected, pd.DataFrame):
        raise DataError(f"Preference column {column!r} appears more than once")
    scores = pd.to_numeric(selected, errors="coerce").astype(float)
    # np.isfinite is False for NaN as well as +/-inf
    n_bad = int((~np.isfinite(scores)).sum())
    if n_bad:
        raise DataError(
            f"Preference column {column!r} has {n_bad} missing, infinite "
            f"or non-numeric value(s)"
        )
    return scores


def _identified_columns(design: pd.DataFrame) -> tuple[list[str], list[str]]:
    """
    Split design columns into those that add rank and those that do not.

    Columns are visited in order (intercept first), so a constant indicator
    or one that duplicates earlier columns ends up in the second list.
    """
    kept: list[str] = []
    dropped: list[str] = []
    rank = 0
    for col in design.columns:
        trial = design[kept + [col]].to_numpy()
        new_rank = int(np.linalg.matrix_rank(trial))
        if new_rank > rank:
            kept.append(col)
            rank = new_rank
        else:
            dropped.append(col)
    return kept, dropped


# =====================================================================
# OLS fit
# =====================================================================


def estimate_utilities(
    data: pd.DataFrame,
    preference_column: str,
    *,
    max_condition_number: float = 1000.0,
) -> UtilityModel:
    """
    Fit ``preference ~ 1 + indicators`` by OLS for one respondent.

    Parameters
    ----------
    data : survey table with the canonical attribute columns
    preference_column : the respondent's preference-rank column
    max_condition_number : fits above this threshold are flagged as
        near-singular with a :class:`FitWarning`

    Indicators without independent variation get a NaN coefficient, are
    listed in ``degenerate_terms`` and trigger a :class:`FitWarning`.  A
    near-singular fit keeps its coefficients but sets ``near_singular``.
    A table with no usable variation at all raises ``DataError``.
    """
    validate_attribute_data(data)
    y = _preference_scores(data, preference_column)

    columns = [k.value for k in ATTRIBUTE_KEYS]
    X = data[columns].astype(float)
    n_params = len(columns) + 1
    if len(y) < n_params:
        raise DataError(
            f"{preference_column}: {len(y)} profiles cannot identify {n_params} parameters"
        )
    if all(X[c].nunique() <= 1 for c in columns):
        raise DataError(f"{preference_column}: no variation in any attribute indicator")
    if y.nunique() <= 1:
        raise DataError(f"{preference_column}: preference scores are constant")

    design = sm.add_constant(X, has_constant="add").rename(columns={"const": INTERCEPT})
    kept, dropped = _identified_columns(design)
    degenerate = tuple(AttributeKey(c) for c in dropped)
    if degenerate:
        warnings.warn(
            f"{preference_column}: no independent variation for "
            f"{', '.join(k.label for k in degenerate)}; coefficient(s) undetermined",
            FitWarning,
            stacklevel=2,
        )

    # A perfect fit leaves zero residual variance; inf/NaN t-stats are expected
    with np.errstate(divide="ignore", invalid="ignore"):
        results = sm.OLS(y, design[kept]).fit()
        params = results.params
        bse = results.bse
        pvalues = results.pvalues
        residual_std = float(np.sqrt(results.scale))
        adj_r_squared = float(results.rsquared_adj)

    condition_number = float(results.condition_number)
    near_singular = condition_number > max_condition_number
    if near_singular:
        warnings.warn(
            f"{preference_column}: near-singular design matrix "
            f"(condition number {condition_number:.3g})",
            FitWarning,
            stacklevel=2,
        )

    coefficients = {
        k: float(params[k.value]) if k.value in kept else math.nan
        for k in ATTRIBUTE_KEYS
    }
    model = UtilityModel(
        respondent=preference_column,
        intercept=float(params[INTERCEPT]),
        coefficients=coefficients,
        n_obs=int(results.nobs),
        df_resid=float(results.df_resid),
        r_squared=float(results.rsquared),
        adj_r_squared=adj_r_squared,
        residual_std=residual_std,
        condition_number=condition_number,
        std_errors={c: float(bse[c]) for c in kept},
        p_values={c: float(pvalues[c]) for c in kept},
        degenerate_terms=degenerate,
        near_singular=near_singular,
    )
    logger.debug(
        "Fitted %s: n=%d R^2=%.3f price=%.4f",
        preference_column, model.n_obs, model.r_squared, coefficients[AttributeKey.PRICE_HIGH],
    )
    return model
