"""
Exception hierarchy for permutation pathway scoring.

Every error raised on purpose by the library derives from ProgenyPermError,
so callers can catch the whole family with one clause. Parameter problems
are also ValueErrors.
"""

from __future__ import annotations

__all__ = [
    'ProgenyPermError',
    'InvalidParameterError',
    'InvalidFeatureMatrixError',
    'InvalidWeightMatrixError',
    'NoCommonIdentifiersError',
    'DegenerateNullDistributionError',
    'ScoringCancelledError',
]


class ProgenyPermError(Exception):
    """Base class for all pathway scoring errors."""
    pass


class InvalidParameterError(ProgenyPermError, ValueError):
    """Raised for invalid run parameters or malformed input tables."""
    pass


class InvalidFeatureMatrixError(InvalidParameterError):
    """Raised when a sample column has duplicate feature identifiers."""
    pass


class InvalidWeightMatrixError(ProgenyPermError):
    """Raised when the weight matrix has duplicate or malformed identifiers or coefficients."""
    pass


class NoCommonIdentifiersError(ProgenyPermError):
    """Raised when a sample column shares no feature identifiers with the weight matrix."""

    def __init__(self, sample: str, n_data: int, n_weights: int):
        self.sample = sample
        self.n_data = n_data
        self.n_weights = n_weights
        super().__init__(
            f"Sample '{sample}' has no feature identifiers in common with the weight matrix "
            f"({n_data} complete-case features, {n_weights} weighted features)"
        )


class DegenerateNullDistributionError(ProgenyPermError):
    """Raised when a null distribution row has no spread, so its z-score is undefined."""

    def __init__(self, pathways: list[str], sample: str | None = None):
        self.pathways = list(pathways)
        self.sample = sample
        where = f" for sample '{sample}'" if sample is not None else ""
        super().__init__(
            f"Null distribution has zero standard deviation{where} "
            f"in pathway(s): {', '.join(self.pathways)}"
        )


class ScoringCancelledError(ProgenyPermError):
    """Raised when a scoring run is cancelled between sample columns."""
    pass
