"""Weighted-sum pathway scores for an aligned sample."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from progenyperm.stats.alignment import AlignedPair

__all__ = ['compute_scores', 'score_matrix']


def score_matrix(
    weights: NDArray[np.float64],
    values: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Multiply pathways × features weights by features × m values.

    Works for a single vector (m = 1, passed 1D) and for a stack of
    permuted vectors (features × k) alike.
    """
    return weights @ values


def compute_scores(aligned: AlignedPair) -> NDArray[np.float64]:
    """
    Raw pathway scores ``W · v`` for the observed values.

    Returns:
        Array (n_pathways,) ordered like ``aligned.pathways``.
    """
    return score_matrix(aligned.weights, aligned.values)
