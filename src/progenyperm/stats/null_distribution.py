"""
Permutation null distributions for weighted pathway scores.

The null keeps the weight matrix fixed and shuffles the observed values
across features. Each shuffle is a permutation without replacement, so
every trial uses the same multiset of values in a new order. Applying
the real weights to k shuffles estimates, for every pathway at once, the
scores reachable when the value assignment carries no information about
the weights.

All k shuffles are stacked into a features × k matrix and scored with a
single matrix product, which is both faster and exactly equivalent to k
separate products.

Randomness is injected through the PermutationSource protocol:

- RandomPermutationSource: uniform shuffles from a numpy Generator
- FixedPermutationSource: replays given index orders (deterministic tests)

References:
    - Schubert et al. (2018) "Perturbation-response genes reveal signaling
      footprints in cancer gene expression", Nat Commun 9:20.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence, runtime_checkable

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from progenyperm._validators import _positive_int
from progenyperm.stats.alignment import AlignedPair
from progenyperm.stats.scoring import score_matrix

__all__ = [
    'PermutationSource',
    'RandomPermutationSource',
    'FixedPermutationSource',
    'NullDistribution',
    'generate_null_distribution',
    'DEFAULT_PERMUTATIONS',
]

DEFAULT_PERMUTATIONS = 10000


# =============================================================================
# Permutation sources
# =============================================================================

@runtime_checkable
class PermutationSource(Protocol):
    """Protocol for anything that can shuffle a value vector k times."""

    def permutation_matrix(
        self,
        values: NDArray[np.float64],
        k: int,
    ) -> NDArray[np.float64]:
        """Return a (len(values), k) matrix whose columns are reorderings of values."""
        ...


@dataclass
class RandomPermutationSource:
    """Uniform random permutations drawn from a numpy Generator.

    One source should serve one sample column; the engine spawns an
    independent generator per column so columns never share a stream.
    """

    rng: np.random.Generator = field(default_factory=lambda: np.random.default_rng())

    @classmethod
    def from_seed(cls, seed: int | np.random.SeedSequence | None) -> RandomPermutationSource:
        return cls(np.random.Generator(np.random.PCG64(seed)))

    def permutation_matrix(
        self,
        values: NDArray[np.float64],
        k: int,
    ) -> NDArray[np.float64]:
        tiled = np.tile(np.asarray(values, dtype=np.float64)[:, np.newaxis], (1, k))
        # permuted() shuffles each column independently along axis 0
        return self.rng.permuted(tiled, axis=0)


@dataclass
class FixedPermutationSource:
    """Replays caller-supplied permutation orders.

    Each order is a sequence of 0-based positions into the aligned value
    vector; order j produces column j. Asking for more trials than orders
    supplied, or for orders that are not permutations, is an error.

    Example:
        >>> source = FixedPermutationSource([[2, 1, 0], [1, 0, 2], [0, 2, 1]])
        >>> source.permutation_matrix(np.array([1.0, 2.0, 3.0]), k=3)[:, 0]
        array([3., 2., 1.])
    """

    orders: Sequence[Sequence[int]]

    def permutation_matrix(
        self,
        values: NDArray[np.float64],
        k: int,
    ) -> NDArray[np.float64]:
        values = np.asarray(values, dtype=np.float64)
        if k > len(self.orders):
            raise ValueError(f"Requested {k} permutations but only {len(self.orders)} orders supplied")

        n = len(values)
        orders = np.asarray([list(order) for order in self.orders[:k]], dtype=np.intp)
        if orders.shape != (k, n):
            raise ValueError(f"Each order must have length {n}, got shape {orders.shape}")
        expected = np.arange(n)
        for order in orders:
            if not np.array_equal(np.sort(order), expected):
                raise ValueError(f"Order {order.tolist()} is not a permutation of 0..{n - 1}")

        return values[orders].T


# =============================================================================
# Null distribution
# =============================================================================

@dataclass(frozen=True)
class NullDistribution:
    """Null scores of one sample: pathways × k.

    Attributes:
        sample: Sample/contrast label.
        scores: Null scores (n_pathways, k); column j scores permutation j.
        pathways: Pathway names labelling the rows.
    """

    sample: str
    scores: NDArray[np.float64]
    pathways: pd.Index

    @property
    def k(self) -> int:
        return self.scores.shape[1]

    @property
    def mean(self) -> NDArray[np.float64]:
        return self.scores.mean(axis=1)

    @property
    def std(self) -> NDArray[np.float64]:
        """Per-pathway sample standard deviation (ddof=1)."""
        if self.k < 2:
            return np.full(self.scores.shape[0], np.nan)
        return self.scores.std(axis=1, ddof=1)

    def to_frame(self) -> pd.DataFrame:
        """Labelled pathways × k table, columns numbered from 1."""
        return pd.DataFrame(
            self.scores,
            index=self.pathways,
            columns=pd.RangeIndex(1, self.k + 1, name="permutation"),
        )


def generate_null_distribution(
    aligned: AlignedPair,
    k: int = DEFAULT_PERMUTATIONS,
    source: PermutationSource | None = None,
) -> NullDistribution:
    """
    Score k permutations of the aligned values with the aligned weights.

    Args:
        aligned: Aligned values and weights of one sample.
        k: Number of permutations (positive integer).
        source: Permutation source. Defaults to an unseeded
            RandomPermutationSource.

    Returns:
        NullDistribution with scores of shape (n_pathways, k).

    Raises:
        InvalidParameterError: If k is not a positive integer.
    """
    k = _positive_int(k, "k")
    if source is None:
        source = RandomPermutationSource()

    permuted = source.permutation_matrix(aligned.values, k)
    null_scores = score_matrix(aligned.weights, permuted)

    return NullDistribution(
        sample=aligned.sample,
        scores=np.asarray(null_scores, dtype=np.float64),
        pathways=aligned.pathways,
    )
