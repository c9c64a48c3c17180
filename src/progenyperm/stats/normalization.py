"""
Normalization of observed pathway scores against their permutation null.

Two modes:

Z_SCORE:
    z = (score - mean(null)) / sd(null), with the sample standard deviation
    (ddof=1). Unbounded. A null row without spread makes z undefined; this
    raises DegenerateNullDistributionError instead of emitting inf/NaN.

QUANTILE:
    q = ECDF_null(score), the fraction of null scores <= score (ties count
    as <=, i.e. the right-continuous empirical CDF), reported as 2q - 1.
    Bounded in [-1, 1]: 0 at the null median, +1 above every null draw,
    -1 below every null draw. This reads as 1 - p of a two-sided empirical
    test with the sign giving the direction of regulation.
"""

from __future__ import annotations

from enum import Enum

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from progenyperm.exceptions import DegenerateNullDistributionError
from progenyperm.stats.null_distribution import NullDistribution

__all__ = [
    'NormalizationMode',
    'z_score_normalize',
    'quantile_normalize',
    'normalize_scores',
]

# Null sd below this fraction of the null's magnitude counts as zero spread;
# permuting a constant weight row leaves only rounding noise.
_RELATIVE_SD_TOLERANCE = 1e-12


class NormalizationMode(Enum):
    """How observed scores are expressed relative to the null."""

    Z_SCORE = "z_score"
    QUANTILE = "quantile"

    @classmethod
    def from_flag(cls, z_scores: bool) -> NormalizationMode:
        return cls.Z_SCORE if z_scores else cls.QUANTILE


def z_score_normalize(
    scores: NDArray[np.float64],
    null: NullDistribution,
) -> NDArray[np.float64]:
    """
    Standardize observed scores by the null mean and sample standard deviation.

    Args:
        scores: Observed scores (n_pathways,).
        null: Null distribution with matching pathway order.

    Returns:
        z-scores (n_pathways,).

    Raises:
        DegenerateNullDistributionError: If any pathway's null has zero
            spread, or k < 2 so the standard deviation is undefined.
    """
    null_mean = null.mean
    null_sd = null.std
    scale = np.abs(null.scores).max(axis=1)

    # NaN sd (k < 2) fails the comparison as well
    degenerate = ~(null_sd > _RELATIVE_SD_TOLERANCE * scale)
    if degenerate.any():
        raise DegenerateNullDistributionError(
            pathways=[str(p) for p in null.pathways[degenerate]],
            sample=null.sample,
        )

    return (np.asarray(scores, dtype=np.float64) - null_mean) / null_sd


def quantile_normalize(
    scores: NDArray[np.float64],
    null: NullDistribution,
) -> NDArray[np.float64]:
    """
    Signed empirical quantile of each observed score within its null row.

    Returns:
        Values in [-1, 1] (n_pathways,).
    """
    scores = np.asarray(scores, dtype=np.float64)
    quantiles = np.empty(len(scores), dtype=np.float64)
    for i, row in enumerate(null.scores):
        quantiles[i] = stats.ecdf(row).cdf.evaluate(scores[i])
    return quantiles * 2 - 1


def normalize_scores(
    scores: NDArray[np.float64],
    null: NullDistribution,
    mode: NormalizationMode = NormalizationMode.Z_SCORE,
) -> NDArray[np.float64]:
    """Dispatch to the z-score or quantile normalizer."""
    if mode is NormalizationMode.Z_SCORE:
        return z_score_normalize(scores, null)
    return quantile_normalize(scores, null)
