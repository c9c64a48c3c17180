"""
Identifier alignment between one sample column and the weight matrix.

Each sample is scored on its own complete-case subset: rows missing in that
sample are dropped (not imputed), the remaining identifiers are inner-joined
with the weight matrix, and both sides are subset to the shared identifiers
in one sorted order. Scoring relies on index j of the value vector and
column j of the aligned weights naming the same feature.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from progenyperm.core.matrices import WeightMatrix, _missing_identifiers
from progenyperm.exceptions import InvalidFeatureMatrixError, NoCommonIdentifiersError

logger = logging.getLogger(__name__)

__all__ = ['AlignedPair', 'align_column']


@dataclass(frozen=True)
class AlignedPair:
    """Values and weights of one sample restricted to their shared features.

    Attributes:
        sample: Sample/contrast label.
        identifiers: Shared feature identifiers, sorted.
        values: Feature values in identifier order (n_features,).
        weights: Coefficients, pathways × n_features, in identifier order.
        pathways: Pathway names labelling the rows of ``weights``.
        n_missing: Rows dropped from the sample for a missing value or
            identifier.
        n_unmatched: Complete rows dropped for having no weights.
    """

    sample: str
    identifiers: pd.Index
    values: NDArray[np.float64]
    weights: NDArray[np.float64]
    pathways: pd.Index
    n_missing: int = 0
    n_unmatched: int = 0

    def __post_init__(self) -> None:
        n = len(self.identifiers)
        if self.values.shape != (n,) or self.weights.shape[1] != n:
            raise ValueError(
                f"Misaligned pair for '{self.sample}': {n} identifiers, "
                f"values {self.values.shape}, weights {self.weights.shape}"
            )
        if self.weights.shape[0] != len(self.pathways):
            raise ValueError(
                f"weights rows ({self.weights.shape[0]}) must match pathways ({len(self.pathways)})"
            )

    @property
    def n_features(self) -> int:
        return len(self.identifiers)


def align_column(values: pd.Series, weights: WeightMatrix) -> AlignedPair:
    """
    Align one sample column with the weight matrix.

    Args:
        values: Sample values indexed by feature identifier. Missing values
            and missing or blank identifiers are allowed and those rows are
            dropped here. The Series name is used as the sample label.
        weights: Validated weight matrix (unique identifiers).

    Returns:
        AlignedPair whose values and weight columns follow the same sorted
        identifier order.

    Raises:
        NoCommonIdentifiersError: If no complete-case identifier of the
            sample is present in the weight matrix.
        InvalidFeatureMatrixError: If an identifier repeats among the
            complete-case rows.
    """
    sample = values.name
    keep = values.notna().to_numpy() & ~_missing_identifiers(values.index)
    complete = values[keep]
    n_missing = len(values) - len(complete)
    if complete.index.has_duplicates:
        dupes = complete.index[complete.index.duplicated()].unique().tolist()
        raise InvalidFeatureMatrixError(
            f"Sample '{sample}' has duplicate feature identifiers: {dupes[:10]}"
        )

    common = complete.index.intersection(weights.feature_ids).unique()
    try:
        common = common.sort_values()
    except TypeError:
        # mixed identifier types (e.g. "A" and 7) have no natural order
        common = common.sort_values(key=lambda idx: idx.map(repr))
    if len(common) == 0:
        raise NoCommonIdentifiersError(
            sample=str(sample),
            n_data=len(complete),
            n_weights=weights.shape[0],
        )

    aligned_values = complete.loc[common].to_numpy(dtype=np.float64)
    aligned_weights = weights.rows_for(common)

    n_unmatched = len(complete) - len(common)
    logger.debug(
        f"Sample {sample}: {len(common)} features aligned "
        f"({n_missing} missing, {n_unmatched} without weights)"
    )

    return AlignedPair(
        sample=sample,
        identifiers=common,
        values=aligned_values,
        weights=aligned_weights,
        pathways=weights.pathways,
        n_missing=n_missing,
        n_unmatched=n_unmatched,
    )
