"""
Per-respondent orchestration of the conjoint pricing pipeline.

For each preference column in the survey table, the pipeline fits the
respondent's part-worths and derives importance, willingness to pay and the
profit-maximizing focal price.  Respondents are independent units of work:
a failure for one respondent is logged, recorded with its reason and the
batch continues.  Problems with the shared configuration or the shared
attribute columns abort the run before any respondent is processed.

Group-level summaries (mean ± SD across respondents) are computed from the
respondents that completed every step.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import warnings
from collections import Counter, defaultdict
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from itertools import repeat
from typing import Any

import numpy as np
import pandas as pd

from tvconjoint.analysis import ImportanceVector, WTPVector, compute_importance, compute_wtp
from tvconjoint.estimation import (
    UtilityModel,
    estimate_utilities,
    find_preference_columns,
    validate_attribute_data,
)
from tvconjoint.exceptions import ConjointError, DataError, FitWarning
from tvconjoint.models import StudyConfig, competitor_price_anchors
from tvconjoint.simulation import MarketSimulation, simulate_market

logger = logging.getLogger(__name__)

# =====================================================================
# Result containers
# =====================================================================


@dataclass(frozen=True)
class RespondentResult:
    """Everything the pipeline derived for one respondent."""

    respondent: str
    model: UtilityModel
    importance: ImportanceVector | None = None
    wtp: WTPVector | None = None
    market: MarketSimulation | None = None
    fit_warnings: list[str] = field(default_factory=list)

    @property
    def is_degenerate(self) -> bool:
        return self.model.is_degenerate

    def to_dict(self) -> dict[str, Any]:
        return {
            "respondent": self.respondent,
            "degenerate": self.is_degenerate,
            "fit_warnings": list(self.fit_warnings),
            "model": self.model.to_dict(),
            "importance": self.importance.to_dict() if self.importance else None,
            "wtp": self.wtp.to_dict() if self.wtp else None,
            "market": self.market.to_dict() if self.market else None,
        }


def _mean_std_n(values: list[float]) -> tuple[float, float, int]:
    return (
        float(np.mean(values)),
        float(np.std(values, ddof=1)) if len(values) > 1 else 0.0,
        len(values),
    )


@dataclass
class PipelineReport:
    """Batch output: per-respondent results plus who was left out and why."""

    config_name: str
    results: dict[str, RespondentResult]
    skipped: dict[str, str] = field(default_factory=dict)
    extrapolated_prices: list[float] = field(default_factory=list)

    @property
    def completed(self) -> dict[str, RespondentResult]:
        """Respondents with a well-conditioned fit and every derived metric."""
        return {
            k: r for k, r in self.results.items()
            if not r.is_degenerate and r.market is not None
        }

    @property
    def degenerate(self) -> dict[str, list[str]]:
        """Respondents whose fit was kept but left out of the group results."""
        return {k: list(r.fit_warnings) for k, r in self.results.items() if r.is_degenerate}

    # ------------------------------------------------------------------
    # Group-level summary
    # ------------------------------------------------------------------

    def summary(self) -> dict[str, Any]:
        """
        Group-level means and standard deviations across completed respondents.

        Returns a dict with:
            - ``importance``: {family: (mean, std, n)}
            - ``wtp``: {attribute key: (mean, std, n)}
            - ``optimal_price``: (mean, std, n) or None
            - ``modal_optimal_price``: most frequent individual optimum
            - ``mean_profit_curve``: {price: mean profit across respondents}
            - ``group_optimal_price``: price maximizing the mean profit curve
        """
        importance: dict[str, list[float]] = defaultdict(list)
        wtp: dict[str, list[float]] = defaultdict(list)
        optimal_prices: list[float] = []
        profit_curves: dict[float, list[float]] = defaultdict(list)

        for result in self.completed.values():
            if result.importance is None or result.wtp is None or result.market is None:
                continue
            for fam, share in result.importance.shares.items():
                importance[fam.value].append(share)
            for key, value in result.wtp.values.items():
                wtp[key.value].append(value)
            optimal_prices.append(result.market.optimal_price)
            for outcome in result.market.outcomes:
                profit_curves[outcome.price].append(outcome.profit)

        mean_curve = {p: float(np.mean(v)) for p, v in sorted(profit_curves.items())}
        group_optimum = None
        for price, profit in mean_curve.items():
            if group_optimum is None or profit > mean_curve[group_optimum]:
                group_optimum = price

        return {
            "n_completed": len(optimal_prices),
            "importance": {k: _mean_std_n(v) for k, v in importance.items()},
            "wtp": {k: _mean_std_n(v) for k, v in wtp.items()},
            "optimal_price": _mean_std_n(optimal_prices) if optimal_prices else None,
            "modal_optimal_price": (
                Counter(optimal_prices).most_common(1)[0][0] if optimal_prices else None
            ),
            "mean_profit_curve": mean_curve,
            "group_optimal_price": group_optimum,
        }

    # ------------------------------------------------------------------
    # Export helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        summary = self.summary()
        summary["mean_profit_curve"] = [
            {"price": p, "profit": v} for p, v in summary["mean_profit_curve"].items()
        ]
        return {
            "config_name": self.config_name,
            "respondents": {k: r.to_dict() for k, r in self.results.items()},
            "skipped": dict(self.skipped),
            "degenerate": self.degenerate,
            "extrapolated_prices": list(self.extrapolated_prices),
            "summary": summary,
        }

    def to_json(self, indent: int = 2) -> str:
        # NaN marks undetermined coefficients; json writes it as NaN
        return json.dumps(self.to_dict(), indent=indent)

    def to_csv(self) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(["type", "respondent", "key", "value"])
        for pid, result in self.results.items():
            writer.writerow(["utility", pid, "intercept", f"{result.model.intercept:.6f}"])
            for key, coef in result.model.coefficients.items():
                writer.writerow(["utility", pid, key.value, f"{coef:.6f}"])
            if result.importance:
                for fam, share in result.importance.shares.items():
                    writer.writerow(["importance", pid, fam.value, f"{share:.6f}"])
            if result.wtp:
                for key, value in result.wtp.values.items():
                    writer.writerow(["wtp", pid, key.value, f"{value:.2f}"])
            if result.market:
                opt = result.market.optimum
                writer.writerow(["optimal_price", pid, "price", f"{opt.price:.2f}"])
                writer.writerow(["optimal_price", pid, "share", f"{opt.share:.6f}"])
                writer.writerow(["optimal_price", pid, "profit", f"{opt.profit:.2f}"])
            for message in result.fit_warnings:
                writer.writerow(["fit_warning", pid, "", message])
        for pid, reason in self.skipped.items():
            writer.writerow(["skipped", pid, "", reason])
        return buf.getvalue()


# =====================================================================
# Per-respondent work
# =====================================================================


def fit_respondent(
    data: pd.DataFrame,
    column: str,
    config: StudyConfig,
) -> tuple[UtilityModel, list[str]]:
    """Fit one respondent and collect the FitWarnings raised on the way."""
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", FitWarning)
        model = estimate_utilities(
            data, column, max_condition_number=config.max_condition_number,
        )
    fit_warnings: list[str] = []
    for w in caught:
        if issubclass(w.category, FitWarning):
            fit_warnings.append(str(w.message))
        else:
            warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)
    return model, fit_warnings


def analyze_respondent(
    data: pd.DataFrame,
    column: str,
    config: StudyConfig,
) -> RespondentResult:
    """
    Run every pipeline step for the respondent in *column*.

    A fit with undetermined coefficients is returned without downstream
    metrics.  A near-singular fit gets its metrics but stays flagged as
    degenerate, so it is kept out of the group results.  Errors
    (``DataError``, ``ConfigError``, ``ComputationError``) propagate to the
    caller.
    """
    model, fit_warnings = fit_respondent(data, column, config)
    if model.degenerate_terms:
        return RespondentResult(respondent=column, model=model, fit_warnings=fit_warnings)

    focal = config.focal_design
    return RespondentResult(
        respondent=column,
        model=model,
        importance=compute_importance(model),
        wtp=compute_wtp(model, config.reference_price_differential),
        market=simulate_market(
            model,
            focal=focal,
            competitors=config.competitors,
            market_size=config.market_size,
            unit_cost=config.unit_cost(focal),
            price_grid=config.price_grid,
        ),
        fit_warnings=fit_warnings,
    )


def _run_one(
    data: pd.DataFrame,
    column: str,
    config: StudyConfig,
) -> tuple[str, RespondentResult | None, str | None]:
    try:
        return column, analyze_respondent(data, column, config), None
    except ConjointError as exc:
        return column, None, f"{type(exc).__name__}: {exc}"


# =====================================================================
# Batch
# =====================================================================


def run_pipeline(
    data: pd.DataFrame,
    config: StudyConfig,
    *,
    max_workers: int | None = None,
) -> PipelineReport:
    """
    Analyze every respondent in *data*.

    Parameters
    ----------
    data : survey table with canonical attribute columns and one or more
        preference columns (matched by ``config.preference_marker``)
    config : study configuration
    max_workers : run respondents in that many worker processes; ``None``
        or 1 runs them in-process

    Raises ``ConfigError`` / ``DataError`` only for problems shared by all
    respondents; per-respondent failures end up in ``report.skipped``.
    """
    config.check()
    validate_attribute_data(data)
    columns = find_preference_columns(data, config.preference_marker)
    if not columns:
        raise DataError(
            f"No preference columns matching {config.preference_marker!r} found"
        )

    reference_low, reference_high = competitor_price_anchors(config.competitors)
    extrapolated = [
        float(p) for p in config.price_grid.prices()
        if p < reference_low or p > reference_high
    ]
    if extrapolated:
        logger.info(
            "%d focal price(s) lie outside the competitor price anchors "
            "[%g, %g]; price utility is extrapolated linearly there",
            len(extrapolated), reference_low, reference_high,
        )

    logger.info("Analyzing %d respondent(s) for %s", len(columns), config.name)
    if max_workers is not None and max_workers > 1 and len(columns) > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(_run_one, repeat(data), columns, repeat(config)))
    else:
        outcomes = [_run_one(data, column, config) for column in columns]

    results: dict[str, RespondentResult] = {}
    skipped: dict[str, str] = {}
    for column, result, reason in outcomes:
        if result is None:
            logger.warning("Skipping respondent %s: %s", column, reason)
            skipped[column] = reason or "unknown error"
            continue
        if result.is_degenerate:
            logger.warning(
                "Respondent %s has a degenerate fit; excluded from group results: %s",
                column, "; ".join(result.fit_warnings),
            )
        results[column] = result

    logger.info(
        "Completed %d, degenerate %d, skipped %d",
        len(results) - sum(r.is_degenerate for r in results.values()),
        sum(r.is_degenerate for r in results.values()),
        len(skipped),
    )
    return PipelineReport(
        config_name=config.name,
        results=results,
        skipped=skipped,
        extrapolated_prices=extrapolated,
    )
