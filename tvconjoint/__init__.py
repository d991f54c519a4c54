"""
tvconjoint - conjoint pricing analysis for a TV preference study.

Estimates individual part-worths by OLS, derives attribute importance and
willingness to pay, and sweeps a focal price against two competitors with a
multinomial logit share model to find the profit-maximizing price.
"""

from tvconjoint.analysis import (
    ImportanceVector,
    WTPVector,
    compute_importance,
    compute_wtp,
)
from tvconjoint.estimation import UtilityModel, estimate_utilities
from tvconjoint.exceptions import (
    ComputationError,
    ConfigError,
    ConjointError,
    DataError,
    FitWarning,
)
from tvconjoint.io import load_survey, save_report
from tvconjoint.models import (
    AttributeFamily,
    AttributeKey,
    PriceGrid,
    ProductDesign,
    StudyConfig,
)
from tvconjoint.pipeline import (
    PipelineReport,
    RespondentResult,
    analyze_respondent,
    run_pipeline,
)
from tvconjoint.simulation import MarketOutcome, MarketSimulation, simulate_market

__all__ = [
    "AttributeFamily",
    "AttributeKey",
    "PriceGrid",
    "ProductDesign",
    "StudyConfig",
    "UtilityModel",
    "estimate_utilities",
    "ImportanceVector",
    "WTPVector",
    "compute_importance",
    "compute_wtp",
    "MarketOutcome",
    "MarketSimulation",
    "simulate_market",
    "PipelineReport",
    "RespondentResult",
    "analyze_respondent",
    "run_pipeline",
    "load_survey",
    "save_report",
    "ConjointError",
    "DataError",
    "ConfigError",
    "ComputationError",
    "FitWarning",
]
