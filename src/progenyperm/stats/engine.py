"""
Permutation scoring engine for weighted pathway activities.

For every sample/contrast column of the data:
    1. Align the column with the weight matrix (drop missing rows, inner join)
    2. Compute the observed scores W · v
    3. Score k permutations of v to build the null distribution
    4. Normalize the observed scores against the null (z-score or quantile)

Columns are independent units of work. Each one draws its permutations
from its own random stream, spawned from the run seed, so a fixed seed
gives identical results whether columns run serially or on a thread pool.
Per-column results are kept in a mapping keyed by sample name and
assembled into a samples × pathways table once all columns are done.

The call returns one of two result types:
    - PathwayScores: the normalized score table
    - PathwayScoresWithNull: the same table plus the per-sample null
      distributions (pathways × k)

Example:
    >>> result = score_pathways(expression_df, progeny_weights, k=10000, seed=0)
    >>> result.scores.loc["treated_vs_ctrl", "EGFR"]
"""

from __future__ import annotations

import logging
import threading
import time
import warnings
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Union

import numpy as np
import pandas as pd

from progenyperm._validators import _flag, _optional_seed, _positive_int
from progenyperm.core.matrices import FeatureMatrix, WeightMatrix
from progenyperm.exceptions import (
    InvalidParameterError,
    ProgenyPermError,
    ScoringCancelledError,
)
from progenyperm.stats.alignment import align_column
from progenyperm.stats.normalization import NormalizationMode, normalize_scores
from progenyperm.stats.null_distribution import (
    DEFAULT_PERMUTATIONS,
    NullDistribution,
    PermutationSource,
    RandomPermutationSource,
    generate_null_distribution,
)
from progenyperm.stats.scoring import compute_scores

if TYPE_CHECKING:
    from progenyperm.config import PermutationConfig

logger = logging.getLogger(__name__)

__all__ = [
    'ErrorPolicy',
    'PathwayScores',
    'PathwayScoresWithNull',
    'PermutationScoreResult',
    'run_permutation_scoring',
    'score_pathways',
    'score_pathways_with_null',
    'run_from_config',
]

# Fewer shared features than this makes the null too coarse to be useful
_MIN_RECOMMENDED_FEATURES = 10


class ErrorPolicy(Enum):
    """What to do when one sample column fails.

    RAISE: abort the whole call with the first column error.
    COLLECT: record the error, fill that sample's row with NaN, warn, and
        keep scoring the other columns.
    """

    RAISE = "raise"
    COLLECT = "collect"

    @classmethod
    def parse(cls, value: ErrorPolicy | str) -> ErrorPolicy:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = [p.value for p in cls]
            raise InvalidParameterError(
                f"error_policy must be one of {valid}, got {value!r}"
            ) from None


# =============================================================================
# Result types
# =============================================================================

@dataclass(frozen=True)
class PathwayScores:
    """Normalized pathway scores for every sample.

    Attributes:
        scores: Samples × pathways table. z-scores or significance in [-1, 1]
            depending on ``mode``. Rows of failed samples (collect policy
            only) are NaN.
        mode: Normalization used.
        k: Permutations per sample.
        n_features: Features used per sample after alignment (0 if failed).
        failures: Sample → error message for columns that failed under the
            collect policy. Always empty under the raise policy.
    """

    scores: pd.DataFrame
    mode: NormalizationMode
    k: int
    n_features: pd.Series
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def samples(self) -> pd.Index:
        return self.scores.index

    @property
    def pathways(self) -> pd.Index:
        return self.scores.columns

    @property
    def succeeded(self) -> pd.Index:
        """Samples whose scores were computed."""
        return self.scores.index[~self.scores.index.isin(list(self.failures))]

    def to_pathway_frame(self) -> pd.DataFrame:
        """Pathways × samples orientation of the score table."""
        return self.scores.T.copy()


@dataclass(frozen=True)
class PathwayScoresWithNull(PathwayScores):
    """Pathway scores plus the null distribution behind every sample.

    Attributes:
        null_distributions: Sample → pathways × k null score table, in sample
            order. Failed samples have no entry.
    """

    null_distributions: dict[str, pd.DataFrame] = field(default_factory=dict)


PermutationScoreResult = Union[PathwayScores, PathwayScoresWithNull]


# =============================================================================
# Per-column work
# =============================================================================

@dataclass
class _ColumnOutcome:
    sample: str
    normalized: np.ndarray | None = None
    n_features: int = 0
    null: NullDistribution | None = None
    error: ProgenyPermError | None = None


def _score_column(
    data: FeatureMatrix,
    weights: WeightMatrix,
    sample: str,
    k: int,
    mode: NormalizationMode,
    source: PermutationSource,
    keep_null: bool,
    policy: ErrorPolicy,
    cancel_event: threading.Event | None,
) -> _ColumnOutcome:
    """Align, score, permute, and normalize one sample column."""
    if cancel_event is not None and cancel_event.is_set():
        raise ScoringCancelledError(f"Scoring cancelled before sample '{sample}'")

    try:
        aligned = align_column(data.column(sample), weights)
        if aligned.n_features < _MIN_RECOMMENDED_FEATURES:
            logger.warning(
                f"Sample {sample}: only {aligned.n_features} features shared with the "
                f"weight matrix; null distribution will be coarse"
            )

        observed = compute_scores(aligned)
        null = generate_null_distribution(aligned, k=k, source=source)
        normalized = normalize_scores(observed, null, mode)
    except ScoringCancelledError:
        raise
    except ProgenyPermError as e:
        if policy is ErrorPolicy.RAISE:
            raise
        logger.warning(f"Sample {sample}: scoring failed - {type(e).__name__}: {e}")
        return _ColumnOutcome(sample=sample, error=e)

    return _ColumnOutcome(
        sample=sample,
        normalized=normalized,
        n_features=aligned.n_features,
        null=null if keep_null else None,
    )


def _column_sources(
    n_columns: int,
    seed: int | None,
    permutation_source: PermutationSource | None,
) -> list[PermutationSource]:
    if permutation_source is not None:
        return [permutation_source] * n_columns
    children = np.random.SeedSequence(seed).spawn(n_columns)
    return [RandomPermutationSource.from_seed(child) for child in children]


def _coerce_inputs(
    data: FeatureMatrix | pd.DataFrame,
    weights: WeightMatrix | pd.DataFrame,
    data_id_column: str | None,
    weights_id_column: str | None,
) -> tuple[FeatureMatrix, WeightMatrix]:
    if isinstance(data, FeatureMatrix):
        feature_matrix = data
    elif isinstance(data, pd.DataFrame):
        feature_matrix = FeatureMatrix.from_frame(data, id_column=data_id_column)
    else:
        raise InvalidParameterError(
            f"data must be a DataFrame or FeatureMatrix, got {type(data).__name__}"
        )

    if isinstance(weights, WeightMatrix):
        weight_matrix = weights
    elif isinstance(weights, pd.DataFrame):
        weight_matrix = WeightMatrix.from_frame(weights, id_column=weights_id_column)
    else:
        raise InvalidParameterError(
            f"weights must be a DataFrame or WeightMatrix, got {type(weights).__name__}"
        )

    return feature_matrix, weight_matrix


def _run(
    data: FeatureMatrix | pd.DataFrame,
    weights: WeightMatrix | pd.DataFrame,
    k: int,
    z_scores: bool,
    keep_null: bool,
    seed: int | None,
    permutation_source: PermutationSource | None,
    error_policy: ErrorPolicy | str,
    n_workers: int,
    cancel_event: threading.Event | None,
    data_id_column: str | None,
    weights_id_column: str | None,
) -> PermutationScoreResult:
    k = _positive_int(k, "k")
    mode = NormalizationMode.from_flag(_flag(z_scores, "z_scores"))
    seed = _optional_seed(seed)
    policy = ErrorPolicy.parse(error_policy)
    n_workers = _positive_int(n_workers, "n_workers")
    if permutation_source is not None:
        if not isinstance(permutation_source, PermutationSource):
            raise InvalidParameterError(
                "permutation_source must provide permutation_matrix(values, k)"
            )
        if n_workers > 1:
            raise InvalidParameterError(
                "A shared permutation_source cannot be used with n_workers > 1; "
                "pass a seed instead so each column gets its own stream"
            )

    feature_matrix, weight_matrix = _coerce_inputs(
        data, weights, data_id_column, weights_id_column
    )
    samples = list(feature_matrix.sample_ids)
    sources = _column_sources(len(samples), seed, permutation_source)

    logger.info(
        f"Scoring {len(samples)} samples against {weight_matrix.n_pathways} pathways "
        f"({mode.value}, k={k}, workers={n_workers})"
    )
    start = time.time()

    def submit_args(i: int) -> tuple:
        return (
            feature_matrix, weight_matrix, samples[i], k, mode, sources[i],
            keep_null, policy, cancel_event,
        )

    outcomes: dict[str, _ColumnOutcome] = {}
    if n_workers > 1 and len(samples) > 1:
        with ThreadPoolExecutor(max_workers=min(n_workers, len(samples))) as executor:
            future_to_sample = {
                executor.submit(_score_column, *submit_args(i)): samples[i]
                for i in range(len(samples))
            }
            try:
                for future in as_completed(future_to_sample):
                    outcomes[future_to_sample[future]] = future.result()
            except BaseException:
                for future in future_to_sample:
                    future.cancel()
                raise
    else:
        for i in range(len(samples)):
            outcomes[samples[i]] = _score_column(*submit_args(i))

    result = _assemble(samples, weight_matrix.pathways, outcomes, mode, k, keep_null)
    logger.info(
        f"Scored {len(result.succeeded)}/{len(samples)} samples in {time.time() - start:.2f}s"
    )
    return result


def _assemble(
    samples: list[str],
    pathways: pd.Index,
    outcomes: dict[str, _ColumnOutcome],
    mode: NormalizationMode,
    k: int,
    keep_null: bool,
) -> PermutationScoreResult:
    table = np.full((len(samples), len(pathways)), np.nan)
    n_features = np.zeros(len(samples), dtype=int)
    failures: dict[str, str] = {}
    null_distributions: dict[str, pd.DataFrame] = {}

    for i, sample in enumerate(samples):
        outcome = outcomes[sample]
        if outcome.error is not None:
            failures[sample] = f"{type(outcome.error).__name__}: {outcome.error}"
            continue
        table[i, :] = outcome.normalized
        n_features[i] = outcome.n_features
        if keep_null and outcome.null is not None:
            null_distributions[sample] = outcome.null.to_frame()

    if failures:
        warnings.warn(
            f"{len(failures)} of {len(samples)} samples failed and are reported as NaN: "
            f"{sorted(map(str, failures))}",
            RuntimeWarning,
            stacklevel=4,
        )

    sample_index = pd.Index(samples)
    scores = pd.DataFrame(table, index=sample_index, columns=pathways.copy())
    used = pd.Series(n_features, index=sample_index, name="n_features")

    if keep_null:
        return PathwayScoresWithNull(
            scores=scores,
            mode=mode,
            k=k,
            n_features=used,
            failures=failures,
            null_distributions=null_distributions,
        )
    return PathwayScores(scores=scores, mode=mode, k=k, n_features=used, failures=failures)


# =============================================================================
# Public entry points
# =============================================================================

def run_permutation_scoring(
    data: FeatureMatrix | pd.DataFrame,
    weights: WeightMatrix | pd.DataFrame,
    k: int = DEFAULT_PERMUTATIONS,
    z_scores: bool = True,
    get_nulldist: bool = False,
    *,
    seed: int | None = None,
    permutation_source: PermutationSource | None = None,
    error_policy: ErrorPolicy | str = ErrorPolicy.RAISE,
    n_workers: int = 1,
    cancel_event: threading.Event | None = None,
    data_id_column: str | None = None,
    weights_id_column: str | None = None,
) -> PermutationScoreResult:
    """
    Score pathway activities and their permutation significance for every sample.

    Args:
        data: Feature × sample table (identifier column first, or named by
            ``data_id_column``) or a FeatureMatrix. Missing values are
            dropped per sample.
        weights: Feature × pathway coefficient table (identifier column
            first, or named by ``weights_id_column``) or a WeightMatrix.
        k: Permutations per sample (default: 10000).
        z_scores: If True, report (score - null mean) / null sd. Otherwise
            report 2 * ECDF_null(score) - 1 in [-1, 1].
        get_nulldist: If True, return PathwayScoresWithNull carrying the
            pathways × k null table of every sample.
        seed: Run seed. Each sample gets an independent stream spawned from
            it, so results are reproducible and independent of n_workers.
        permutation_source: Shared permutation source overriding the seeded
            generators (deterministic tests). Serial runs only.
        error_policy: "raise" (default) or "collect"; see ErrorPolicy.
        n_workers: Threads used across sample columns (default: 1).
        cancel_event: If set, stops the run before the next sample starts.
        data_id_column: Identifier column of ``data`` when not the first.
        weights_id_column: Identifier column of ``weights`` when not the first.

    Returns:
        PathwayScores, or PathwayScoresWithNull when ``get_nulldist`` is True.

    Raises:
        InvalidParameterError: Invalid k, flags, seed, workers, policy, or
            malformed data table.
        InvalidWeightMatrixError: Malformed weight table.
        NoCommonIdentifiersError: A sample shares no identifiers with the
            weights (raise policy).
        DegenerateNullDistributionError: A null row has no spread in z-score
            mode (raise policy).
        ScoringCancelledError: ``cancel_event`` was set.
    """
    return _run(
        data, weights, k, z_scores, _flag(get_nulldist, "get_nulldist"),
        seed, permutation_source, error_policy, n_workers, cancel_event,
        data_id_column, weights_id_column,
    )


def score_pathways(
    data: FeatureMatrix | pd.DataFrame,
    weights: WeightMatrix | pd.DataFrame,
    k: int = DEFAULT_PERMUTATIONS,
    z_scores: bool = True,
    *,
    seed: int | None = None,
    permutation_source: PermutationSource | None = None,
    error_policy: ErrorPolicy | str = ErrorPolicy.RAISE,
    n_workers: int = 1,
    cancel_event: threading.Event | None = None,
    data_id_column: str | None = None,
    weights_id_column: str | None = None,
) -> PathwayScores:
    """Score pathways without keeping null distributions.

    See :func:`run_permutation_scoring` for the arguments.
    """
    return _run(
        data, weights, k, z_scores, False,
        seed, permutation_source, error_policy, n_workers, cancel_event,
        data_id_column, weights_id_column,
    )


def score_pathways_with_null(
    data: FeatureMatrix | pd.DataFrame,
    weights: WeightMatrix | pd.DataFrame,
    k: int = DEFAULT_PERMUTATIONS,
    z_scores: bool = True,
    *,
    seed: int | None = None,
    permutation_source: PermutationSource | None = None,
    error_policy: ErrorPolicy | str = ErrorPolicy.RAISE,
    n_workers: int = 1,
    cancel_event: threading.Event | None = None,
    data_id_column: str | None = None,
    weights_id_column: str | None = None,
) -> PathwayScoresWithNull:
    """Score pathways and return the null distribution of every sample.

    See :func:`run_permutation_scoring` for the arguments.
    """
    return _run(
        data, weights, k, z_scores, True,
        seed, permutation_source, error_policy, n_workers, cancel_event,
        data_id_column, weights_id_column,
    )


def run_from_config(
    data: FeatureMatrix | pd.DataFrame,
    weights: WeightMatrix | pd.DataFrame,
    config: PermutationConfig,
    *,
    permutation_source: PermutationSource | None = None,
    cancel_event: threading.Event | None = None,
) -> PermutationScoreResult:
    """
    Run the scoring engine with settings from a PermutationConfig.

    Example:
        >>> config = PermutationConfig.from_file(Path("scoring.yaml"))
        >>> result = run_from_config(expression_df, progeny_weights, config)
    """
    return _run(
        data, weights, config.k, config.z_scores, config.get_nulldist,
        config.seed, permutation_source, config.error_policy, config.n_workers,
        cancel_event, config.data_id_column, config.weights_id_column,
    )
