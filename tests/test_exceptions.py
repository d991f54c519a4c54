"""Tests for the exception hierarchy."""

import pytest

from tvconjoint import (
    ComputationError,
    ConfigError,
    ConjointError,
    DataError,
    FitWarning,
    PriceGrid,
)


class TestExceptionHierarchy:

    def test_base_is_value_error(self):
        assert issubclass(ConjointError, ValueError)

    @pytest.mark.parametrize("exc", [DataError, ConfigError, ComputationError])
    def test_error_kinds(self, exc):
        assert issubclass(exc, ConjointError)

    def test_fit_warning_is_user_warning(self):
        assert issubclass(FitWarning, UserWarning)

    def test_catch_as_value_error(self):
        with pytest.raises(ValueError):
            PriceGrid(low=1.0, high=0.0, step=1.0).prices()
