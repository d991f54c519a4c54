"""Exceptions and warnings raised by the conjoint pricing pipeline.

All errors inherit from ``ValueError`` through :class:`ConjointError`, so
callers that already catch ``ValueError`` keep working.

Exception Hierarchy:
    ConjointError (ValueError)
    ├── DataError
    ├── ConfigError
    └── ComputationError

Warning Classes:
    FitWarning (UserWarning)
"""

from __future__ import annotations


class ConjointError(ValueError):
    """Base exception for all pipeline errors."""

    pass


class DataError(ConjointError):
    """Raised when survey data cannot be used as given.

    Common causes:
        - A required attribute or preference column is missing
        - Non-numeric or missing preference scores
        - Indicator values other than 0/1, or both screen-size
          indicators set on the same profile
        - No variation at all in the attribute indicators
    """

    pass


class ConfigError(ConjointError):
    """Raised when the study configuration makes a result undefined.

    Common causes:
        - Empty or inverted price grid (``step <= 0`` or ``low > high``)
        - Competitor designs without a price, or with identical prices
        - A zero price coefficient, which leaves WTP undefined
    """

    pass


class ComputationError(ConjointError):
    """Raised when a derived metric would divide by zero.

    Example:
        A respondent whose part-worths are all zero has no utility range,
        so attribute importance cannot be normalized.
    """

    pass


class FitWarning(UserWarning):
    """Warning for a regression that ran but is not fully identified.

    Emitted when:
        - An attribute indicator is constant for a respondent
        - The design matrix is rank deficient or badly conditioned

    Affected coefficients are reported as NaN and listed in
    ``UtilityModel.degenerate_terms``.
    """

    pass
