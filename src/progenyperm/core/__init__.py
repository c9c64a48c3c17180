"""
Core data structures for permutation pathway scoring.

1. FeatureMatrix: feature × sample values with identifiers, missing values allowed
2. WeightMatrix: feature × pathway coefficients with unique identifiers

Design Philosophy:
    - Immutability: inputs are copied once and exposed read-only
    - Validation at the boundary: malformed tables fail on construction,
      before any scoring work is done

Examples:
    >>> from progenyperm.core import FeatureMatrix, WeightMatrix
    >>>
    >>> data = FeatureMatrix.from_frame(expression_df)
    >>> weights = WeightMatrix.from_frame(model_df)
"""

from progenyperm.core.matrices import FeatureMatrix, WeightMatrix, split_identifier_column

__all__ = [
    'FeatureMatrix',
    'WeightMatrix',
    'split_identifier_column',
]
