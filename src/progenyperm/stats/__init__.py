"""
Permutation scoring of weighted pathway activities.

Exports the pipeline stages and the engine:
- Identifier alignment of a sample column with the weight matrix
- Weighted-sum scoring (W · v)
- Permutation null distributions with injectable randomness
- z-score and empirical-quantile normalization
- The per-sample scoring engine and its result types
"""

from .alignment import AlignedPair, align_column
from .scoring import compute_scores, score_matrix
from .null_distribution import (
    DEFAULT_PERMUTATIONS,
    FixedPermutationSource,
    NullDistribution,
    PermutationSource,
    RandomPermutationSource,
    generate_null_distribution,
)
from .normalization import (
    NormalizationMode,
    normalize_scores,
    quantile_normalize,
    z_score_normalize,
)
from .engine import (
    ErrorPolicy,
    PathwayScores,
    PathwayScoresWithNull,
    PermutationScoreResult,
    run_from_config,
    run_permutation_scoring,
    score_pathways,
    score_pathways_with_null,
)

__all__ = [
    "AlignedPair",
    "align_column",
    "compute_scores",
    "score_matrix",
    "DEFAULT_PERMUTATIONS",
    "FixedPermutationSource",
    "NullDistribution",
    "PermutationSource",
    "RandomPermutationSource",
    "generate_null_distribution",
    "NormalizationMode",
    "normalize_scores",
    "quantile_normalize",
    "z_score_normalize",
    "ErrorPolicy",
    "PathwayScores",
    "PathwayScoresWithNull",
    "PermutationScoreResult",
    "run_from_config",
    "run_permutation_scoring",
    "score_pathways",
    "score_pathways_with_null",
]
