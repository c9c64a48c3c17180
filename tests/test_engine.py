"""Tests for the permutation scoring engine."""

import logging
import threading

import numpy as np
import pandas as pd
import pytest

from progenyperm import (
    DegenerateNullDistributionError,
    ErrorPolicy,
    FeatureMatrix,
    InvalidParameterError,
    InvalidWeightMatrixError,
    NoCommonIdentifiersError,
    PathwayScores,
    PathwayScoresWithNull,
    ScoringCancelledError,
    WeightMatrix,
    run_permutation_scoring,
    score_pathways,
    score_pathways_with_null,
)
from progenyperm.stats.normalization import NormalizationMode
from progenyperm.stats.null_distribution import FixedPermutationSource, RandomPermutationSource


class TestToyScenario:
    """Hand-computed three-feature example."""

    def test_z_score(self, toy_data, toy_weights, toy_orders):
        """Score -2 against null [2, -1, -1] gives z ~ -1.155."""
        result = score_pathways(
            toy_data, toy_weights, k=3,
            permutation_source=FixedPermutationSource(toy_orders),
        )
        assert result.scores.loc["contrast", "P1"] == pytest.approx(-2.0 / np.sqrt(3.0))
        assert result.mode is NormalizationMode.Z_SCORE
        assert result.n_features["contrast"] == 3

    def test_quantile(self, toy_data, toy_weights, toy_orders):
        """Score below every null draw gives -1."""
        result = score_pathways(
            toy_data, toy_weights, k=3, z_scores=False,
            permutation_source=FixedPermutationSource(toy_orders),
        )
        assert result.scores.loc["contrast", "P1"] == pytest.approx(-1.0)
        assert result.mode is NormalizationMode.QUANTILE

    def test_null_distribution_returned(self, toy_data, toy_weights, toy_orders):
        """get_nulldist returns the pathways × k null per sample."""
        result = run_permutation_scoring(
            toy_data, toy_weights, k=3, get_nulldist=True,
            permutation_source=FixedPermutationSource(toy_orders),
        )
        assert isinstance(result, PathwayScoresWithNull)
        null = result.null_distributions["contrast"]
        assert null.index.tolist() == ["P1"]
        np.testing.assert_allclose(null.to_numpy(), [[2.0, -1.0, -1.0]])

    def test_missing_value_drops_feature(self, toy_weights):
        """A missing B is dropped; only A and C are scored."""
        data = pd.DataFrame({"gene": ["A", "B", "C"], "contrast": [1.0, np.nan, 3.0]})
        # Orders over the aligned pair (A, C): swap, then identity
        result = score_pathways_with_null(
            data, toy_weights, k=2, z_scores=False,
            permutation_source=FixedPermutationSource([[1, 0], [0, 1]]),
        )
        assert result.n_features["contrast"] == 2
        # Observed 1 - 3 = -2; null [3 - 1, 1 - 3] = [2, -2]; ECDF(-2) = 0.5
        np.testing.assert_allclose(result.null_distributions["contrast"].to_numpy(), [[2.0, -2.0]])
        assert result.scores.loc["contrast", "P1"] == pytest.approx(0.0)

    def test_disjoint_identifiers_raise(self, toy_weights):
        """Data identifiers {X, Y} vs weights {A, B, C} raise NoCommonIdentifiersError."""
        data = pd.DataFrame({"gene": ["X", "Y"], "contrast": [1.0, 2.0]})
        with pytest.raises(NoCommonIdentifiersError):
            score_pathways(data, toy_weights, k=10, seed=0)

    def test_missing_identifiers_dropped(self, toy_weights):
        """Rows without an identifier are dropped like rows without a value."""
        data = pd.DataFrame({
            "gene": ["A", None, None, "C", "B"],
            "contrast": [1.0, 5.0, 6.0, 3.0, 2.0],
        })
        result = score_pathways(data, toy_weights, k=50, seed=0)
        assert result.n_features["contrast"] == 3
        assert np.isfinite(result.scores.to_numpy()).all()

    def test_mixed_identifier_types(self):
        """Identifiers mixing strings and integers still align and score."""
        data = pd.DataFrame({"gene": ["A", 7, "C"], "contrast": [1.0, 2.0, 3.0]})
        weights = pd.DataFrame({"gene": ["C", "A", 7], "P1": [-1.0, 1.0, 0.0]})
        result = score_pathways_with_null(data, weights, k=50, seed=0)
        assert result.n_features["contrast"] == 3
        assert np.isfinite(result.scores.to_numpy()).all()


class TestResultShape:
    """Dimensions, labels, and result variants."""

    def test_dimensions_and_labels(self, small_tables):
        """Result is samples × pathways with both label sets preserved in order."""
        data, weights = small_tables
        result = score_pathways(data, weights, k=200, seed=1)

        assert isinstance(result, PathwayScores)
        assert not isinstance(result, PathwayScoresWithNull)
        assert result.scores.shape == (4, 5)
        assert result.scores.index.tolist() == list(data.columns[1:])
        assert result.scores.columns.tolist() == list(weights.columns[1:])
        assert np.isfinite(result.scores.to_numpy()).all()
        assert result.failures == {}

    def test_pathway_frame_orientation(self, small_tables):
        """to_pathway_frame() is the transpose of the score table."""
        data, weights = small_tables
        result = score_pathways(data, weights, k=50, seed=1)
        pd.testing.assert_frame_equal(result.to_pathway_frame(), result.scores.T)

    def test_null_shapes(self, small_tables):
        """Every sample has a pathways × k null table."""
        data, weights = small_tables
        result = score_pathways_with_null(data, weights, k=75, seed=1)

        assert list(result.null_distributions) == list(data.columns[1:])
        for null in result.null_distributions.values():
            assert null.shape == (5, 75)
            assert null.index.tolist() == list(weights.columns[1:])

    def test_flag_selects_variant(self, small_tables):
        """run_permutation_scoring returns the variant matching get_nulldist."""
        data, weights = small_tables
        plain = run_permutation_scoring(data, weights, k=20, seed=0)
        with_null = run_permutation_scoring(data, weights, k=20, seed=0, get_nulldist=True)
        assert type(plain) is PathwayScores
        assert type(with_null) is PathwayScoresWithNull
        pd.testing.assert_frame_equal(plain.scores, with_null.scores)

    def test_prebuilt_matrices_accepted(self, small_tables):
        """FeatureMatrix / WeightMatrix inputs give the same result as frames."""
        data, weights = small_tables
        from_frames = score_pathways(data, weights, k=30, seed=4)
        from_matrices = score_pathways(
            FeatureMatrix.from_frame(data), WeightMatrix.from_frame(weights), k=30, seed=4
        )
        pd.testing.assert_frame_equal(from_frames.scores, from_matrices.scores)

    def test_inputs_not_mutated(self, sparse_tables):
        """Input tables are unchanged after scoring."""
        data, weights = sparse_tables
        data_before, weights_before = data.copy(), weights.copy()
        score_pathways(data, weights, k=20, seed=0)
        pd.testing.assert_frame_equal(data, data_before)
        pd.testing.assert_frame_equal(weights, weights_before)


class TestStatisticalProperties:
    """Reproducibility, stability, bounds, and permutation content."""

    def test_fixed_seed_is_bit_identical(self, sparse_tables):
        """Two runs with the same seed and k give identical results."""
        data, weights = sparse_tables
        a = score_pathways_with_null(data, weights, k=300, seed=99)
        b = score_pathways_with_null(data, weights, k=300, seed=99)

        np.testing.assert_array_equal(a.scores.to_numpy(), b.scores.to_numpy())
        for sample in a.null_distributions:
            np.testing.assert_array_equal(
                a.null_distributions[sample].to_numpy(),
                b.null_distributions[sample].to_numpy(),
            )

    def test_different_seeds_differ(self, small_tables):
        """Different seeds give different (but close) nulls."""
        data, weights = small_tables
        a = score_pathways(data, weights, k=100, seed=1)
        b = score_pathways(data, weights, k=100, seed=2)
        assert not np.array_equal(a.scores.to_numpy(), b.scores.to_numpy())

    def test_z_scores_stable_for_large_k(self, small_tables):
        """With k = 10000, z-scores agree across seeds within a tolerance."""
        data, weights = small_tables
        runs = [score_pathways(data, weights, k=10000, seed=s).scores for s in (10, 20, 30)]
        for other in runs[1:]:
            np.testing.assert_allclose(other.to_numpy(), runs[0].to_numpy(), rtol=0.05, atol=0.1)

    def test_planted_signal_detected(self, small_tables):
        """The planted pathway scores far above its null in the first contrast."""
        data, weights = small_tables
        z = score_pathways(data, weights, k=2000, seed=3).scores
        q = score_pathways(data, weights, k=2000, seed=3, z_scores=False).scores
        assert z.loc["contrast_0", "PATHWAY_0"] > 5
        assert q.loc["contrast_0", "PATHWAY_0"] == pytest.approx(1.0)

    def test_quantile_bounds(self, sparse_tables):
        """Every quantile-mode value lies in [-1, 1]."""
        data, weights = sparse_tables
        result = score_pathways(data, weights, k=500, z_scores=False, seed=8)
        values = result.scores.to_numpy()
        assert np.all(values >= -1.0) and np.all(values <= 1.0)

    def test_each_trial_rearranges_aligned_values(self, sparse_tables):
        """Null scores equal W applied to a rearrangement of the aligned values."""
        data, weights = sparse_tables
        # Identity weights over a handful of genes expose the permuted vectors directly
        genes = data["gene"].iloc[:6].tolist()
        identity = pd.DataFrame(np.eye(6), columns=[f"E{i}" for i in range(6)])
        identity.insert(0, "gene", genes)

        result = score_pathways_with_null(
            data, identity, k=50, seed=5, z_scores=False
        )
        feature_matrix = FeatureMatrix.from_frame(data)
        for sample, null in result.null_distributions.items():
            column = feature_matrix.column(sample)
            aligned_values = np.sort(column.loc[genes].dropna().to_numpy())
            n = len(aligned_values)
            # Rows for genes missing in this sample are zero-weighted in every trial
            present = [i for i, g in enumerate(genes) if not np.isnan(column[g])]
            trials = null.to_numpy()[present, :]
            assert trials.shape[0] == n
            for j in range(trials.shape[1]):
                np.testing.assert_array_equal(np.sort(trials[:, j]), aligned_values)

    def test_missing_values_use_complete_cases(self, sparse_tables):
        """n_features counts only complete rows shared with the weights."""
        data, weights = sparse_tables
        result = score_pathways(data, weights, k=20, seed=0)
        expected = data.iloc[:, 1:].notna().sum()
        pd.testing.assert_series_equal(
            result.n_features, expected.rename("n_features"), check_dtype=False
        )


class TestParallelAndCancellation:
    """Thread-pool execution and cancellation between columns."""

    def test_parallel_equals_serial(self, sparse_tables):
        """Worker count does not change results under a fixed seed."""
        data, weights = sparse_tables
        serial = score_pathways(data, weights, k=200, seed=12)
        parallel = score_pathways(data, weights, k=200, seed=12, n_workers=3)
        pd.testing.assert_frame_equal(serial.scores, parallel.scores)

    def test_cancelled_before_start(self, small_tables):
        """A set cancel event stops the run with ScoringCancelledError."""
        data, weights = small_tables
        event = threading.Event()
        event.set()
        with pytest.raises(ScoringCancelledError):
            score_pathways(data, weights, k=10, seed=0, cancel_event=event)
        with pytest.raises(ScoringCancelledError):
            score_pathways(data, weights, k=10, seed=0, cancel_event=event, n_workers=2)

    def test_cancelled_between_columns(self, small_tables):
        """Setting the event mid-run lets the current column finish and stops the next."""
        data, weights = small_tables
        event = threading.Event()
        scored = []

        class CancellingSource:
            def __init__(self):
                self._inner = RandomPermutationSource.from_seed(0)

            def permutation_matrix(self, values, k):
                scored.append(len(values))
                event.set()
                return self._inner.permutation_matrix(values, k)

        with pytest.raises(ScoringCancelledError, match="contrast_1"):
            score_pathways(
                data, weights, k=10, cancel_event=event,
                permutation_source=CancellingSource(),
            )
        assert len(scored) == 1

    def test_shared_source_rejected_with_workers(self, toy_data, toy_weights, toy_orders):
        """A shared permutation source cannot be used across threads."""
        with pytest.raises(InvalidParameterError, match="n_workers"):
            score_pathways(
                toy_data, toy_weights, k=3, n_workers=2,
                permutation_source=FixedPermutationSource(toy_orders),
            )


class TestErrorPolicy:
    """Raise vs collect handling of per-column failures."""

    @pytest.fixture
    def mixed_data(self):
        """contrast 'good' aligns; contrast 'empty' is missing on every weighted gene."""
        return pd.DataFrame({
            "gene": ["A", "B", "C", "X"],
            "good": [1.0, 2.0, 3.0, 4.0],
            "empty": [np.nan, np.nan, np.nan, 1.0],
        })

    def test_raise_is_default(self, mixed_data, toy_weights):
        """The first failing column aborts the call."""
        with pytest.raises(NoCommonIdentifiersError):
            score_pathways(mixed_data, toy_weights, k=10, seed=0)

    def test_collect_records_failure(self, mixed_data, toy_weights, caplog):
        """Collect fills the failed row with NaN, warns, logs, and keeps going."""
        with caplog.at_level(logging.WARNING, logger="progenyperm"):
            with pytest.warns(RuntimeWarning, match="1 of 2 samples failed"):
                result = score_pathways_with_null(
                    mixed_data, toy_weights, k=10, seed=0, error_policy="collect"
                )

        assert list(result.failures) == ["empty"]
        assert "NoCommonIdentifiersError" in result.failures["empty"]
        assert result.scores.loc["empty"].isna().all()
        assert np.isfinite(result.scores.loc["good"]).all()
        assert result.succeeded.tolist() == ["good"]
        assert list(result.null_distributions) == ["good"]
        assert result.n_features["empty"] == 0
        assert "scoring failed" in caplog.text

    def test_collect_degenerate_null(self):
        """A zero-weight pathway fails under z-scores; collect reports it."""
        data = pd.DataFrame({"gene": ["A", "B", "C"], "s1": [1.0, 2.0, 3.0]})
        weights = pd.DataFrame({"gene": ["A", "B", "C"], "P1": [0.0, 0.0, 0.0]})

        with pytest.raises(DegenerateNullDistributionError):
            score_pathways(data, weights, k=20, seed=0)

        with pytest.warns(RuntimeWarning):
            result = score_pathways(data, weights, k=20, seed=0, error_policy=ErrorPolicy.COLLECT)
        assert "DegenerateNullDistributionError" in result.failures["s1"]

    def test_unknown_policy(self, toy_data, toy_weights):
        """An unknown policy name raises InvalidParameterError."""
        with pytest.raises(InvalidParameterError, match="error_policy"):
            score_pathways(toy_data, toy_weights, k=3, error_policy="ignore")


class TestParameterValidation:
    """Invalid parameters and inputs fail before any scoring."""

    @pytest.mark.parametrize("k", [0, -1, 1.5])
    def test_invalid_k(self, toy_data, toy_weights, k):
        with pytest.raises(InvalidParameterError, match="k must be"):
            score_pathways(toy_data, toy_weights, k=k)

    def test_invalid_workers(self, toy_data, toy_weights):
        with pytest.raises(InvalidParameterError, match="n_workers"):
            score_pathways(toy_data, toy_weights, k=3, n_workers=0)

    def test_invalid_seed(self, toy_data, toy_weights):
        with pytest.raises(InvalidParameterError, match="seed"):
            score_pathways(toy_data, toy_weights, k=3, seed=-1)

    def test_missing_identifier_column(self, toy_data, toy_weights):
        """A named identifier column that does not exist is rejected."""
        with pytest.raises(InvalidParameterError, match="identifier column"):
            score_pathways(toy_data, toy_weights, k=3, data_id_column="symbol")

    def test_duplicate_weight_identifiers(self, toy_data):
        """Duplicate weight identifiers raise InvalidWeightMatrixError."""
        weights = pd.DataFrame({"gene": ["A", "A", "C"], "P1": [1.0, 0.0, -1.0]})
        with pytest.raises(InvalidWeightMatrixError):
            score_pathways(toy_data, weights, k=3)

    def test_wrong_input_type(self, toy_weights):
        with pytest.raises(InvalidParameterError, match="data must be"):
            score_pathways(np.ones((3, 2)), toy_weights, k=3)
