"""
Exception hierarchy for the price-modelling pipeline.

Malformed individual fields never raise: they become nulls and are counted.
Only the classes below cross module boundaries.
"""


class CarPricesError(Exception):
    """Base class for pipeline errors."""


class FatalInputError(CarPricesError):
    """A required column is absent or an empty dataset reached a fitter."""


class NumericDegeneracyError(CarPricesError):
    """A single model cannot be fitted on this data (e.g. log of a non-positive price)."""


class RankDeficiencyError(NumericDegeneracyError):
    """The design matrix of a linear fit does not have full column rank."""


class DimensionMismatchError(CarPricesError, ValueError):
    """Actual and predicted sequences differ in length or are empty."""
