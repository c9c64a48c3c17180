"""
progenyperm - Permutation significance for weighted pathway activity scores

Scores pathway activities as weighted sums of omic feature values
(PROGENy-style footprint weights) and judges each score against a null
distribution built by permuting the feature values.
"""

__version__ = "0.1.0"

from progenyperm.core.matrices import FeatureMatrix, WeightMatrix
from progenyperm.exceptions import (
    DegenerateNullDistributionError,
    InvalidFeatureMatrixError,
    InvalidParameterError,
    InvalidWeightMatrixError,
    NoCommonIdentifiersError,
    ProgenyPermError,
    ScoringCancelledError,
)
from progenyperm.stats.engine import (
    ErrorPolicy,
    PathwayScores,
    PathwayScoresWithNull,
    run_from_config,
    run_permutation_scoring,
    score_pathways,
    score_pathways_with_null,
)
from progenyperm.config import PermutationConfig, load_config

__all__ = [
    "FeatureMatrix",
    "WeightMatrix",
    "ProgenyPermError",
    "InvalidParameterError",
    "InvalidFeatureMatrixError",
    "InvalidWeightMatrixError",
    "NoCommonIdentifiersError",
    "DegenerateNullDistributionError",
    "ScoringCancelledError",
    "ErrorPolicy",
    "PathwayScores",
    "PathwayScoresWithNull",
    "run_permutation_scoring",
    "score_pathways",
    "score_pathways_with_null",
    "run_from_config",
    "PermutationConfig",
    "load_config",
]
