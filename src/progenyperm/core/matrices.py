"""
Validated input containers for pathway scoring.

FeatureMatrix couples a feature × sample value table with its feature
identifiers; WeightMatrix couples a feature × pathway coefficient table with
its feature identifiers. Both are built from the tabular layout used by
footprint-model tools such as PROGENy: the first column of the table holds
the identifiers, the remaining columns hold numbers.

Biological Context:
    - FeatureMatrix rows are omic features (genes, proteins, phosphosites)
      and columns are samples or contrasts. Values are usually
      per-contrast statistics (t-values, log fold changes) or normalized
      expression. Missing values are expected: a feature not quantified in
      one contrast is simply skipped for that contrast.
    - WeightMatrix rows are the footprint features of the model and columns
      are pathways. Coefficients are opaque: they come from the model
      provider and are never edited here.

Engineering Design:
    - Immutable: data is copied on construction and exposed read-only
    - Validated: constructor checks identifiers, labels, and dtypes so the
      engine never sees a malformed table
    - Per-column access: FeatureMatrix.column() returns one sample as a
      Series indexed by identifier, missing values included; filtering is
      left to the aligner

Examples:
    >>> import pandas as pd
    >>> from progenyperm.core import FeatureMatrix, WeightMatrix
    >>>
    >>> data = FeatureMatrix.from_frame(pd.DataFrame({
    ...     'gene': ['A', 'B', 'C'],
    ...     'treated_vs_ctrl': [1.0, 2.0, 3.0],
    ... }))
    >>> weights = WeightMatrix.from_frame(pd.DataFrame({
    ...     'gene': ['A', 'B', 'C'],
    ...     'EGFR': [1.0, 0.0, -1.0],
    ... }))
    >>> data.sample_ids.tolist(), weights.pathways.tolist()
    (['treated_vs_ctrl'], ['EGFR'])
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from progenyperm.exceptions import (
    InvalidParameterError,
    InvalidWeightMatrixError,
)

__all__ = ['FeatureMatrix', 'WeightMatrix', 'split_identifier_column']


def split_identifier_column(
    frame: pd.DataFrame,
    id_column: str | None,
    role: str,
) -> tuple[pd.Index, pd.DataFrame]:
    """
    Separate the identifier column from the value columns of a table.

    Args:
        frame: Input table
        id_column: Name of the identifier column. None means the first column.
        role: Name of the table for error messages ("data" or "weights")

    Returns:
        (identifiers, values) where identifiers is an object Index and values
        holds the remaining columns with a fresh RangeIndex

    Raises:
        InvalidParameterError: If frame is not a DataFrame, the identifier
            column is missing, or there are no value columns
    """
    if not isinstance(frame, pd.DataFrame):
        raise InvalidParameterError(f"{role} must be a pandas DataFrame, got {type(frame).__name__}")

    if id_column is None:
        if frame.shape[1] == 0:
            raise InvalidParameterError(f"{role} has no identifier column")
        id_column = frame.columns[0]
    elif id_column not in frame.columns:
        raise InvalidParameterError(
            f"{role} is missing identifier column '{id_column}'. "
            f"Available columns: {list(frame.columns)}"
        )

    if frame.shape[1] < 2:
        raise InvalidParameterError(
            f"{role} needs an identifier column and at least one value column, "
            f"got columns {list(frame.columns)}"
        )

    ids = frame[id_column]
    if isinstance(ids, pd.DataFrame):
        raise InvalidParameterError(f"{role} has more than one column named '{id_column}'")

    values = frame.drop(columns=[id_column]).reset_index(drop=True)
    identifiers = pd.Index(ids.to_numpy(dtype=object), dtype=object, name=id_column)
    return identifiers, values


def _check_numeric(values: pd.DataFrame, error: type[Exception], role: str) -> None:
    non_numeric = [
        str(col) for col in values.columns
        if not pd.api.types.is_numeric_dtype(values[col])
        or pd.api.types.is_bool_dtype(values[col])
    ]
    if non_numeric:
        raise error(f"{role} has non-numeric columns: {non_numeric}")


def _missing_identifiers(identifiers: pd.Index) -> np.ndarray:
    missing = pd.isna(identifiers)
    empty = np.array([isinstance(x, str) and x.strip() == "" for x in identifiers], dtype=bool)
    return missing | empty


class FeatureMatrix:
    """
    Immutable feature × sample value table.

    Attributes:
        values: Numeric matrix (features × samples), NaN marks missing values
        feature_ids: Row identifiers
        sample_ids: Column labels (samples or contrasts)

    Shape Invariants:
        - values.shape == (len(feature_ids), len(sample_ids))
        - sample_ids are unique
        - values contain no infinities
    """

    def __init__(
        self,
        values: np.ndarray,
        feature_ids: pd.Index,
        sample_ids: pd.Index,
    ):
        """
        Initialize FeatureMatrix with validation.

        Args:
            values: Numeric matrix (features × samples)
            feature_ids: Row identifiers
            sample_ids: Sample/contrast labels

        Raises:
            InvalidParameterError: If shapes disagree, labels repeat,
                or values are infinite
        """
        values = np.array(values, dtype=np.float64)
        if values.ndim != 2:
            raise InvalidParameterError(f"data values must be 2D, got shape {values.shape}")

        feature_ids = pd.Index(feature_ids, dtype=object)
        sample_ids = pd.Index(sample_ids)

        n_features, n_samples = values.shape
        if len(feature_ids) != n_features:
            raise InvalidParameterError(
                f"feature_ids length ({len(feature_ids)}) must match data rows ({n_features})"
            )
        if len(sample_ids) != n_samples:
            raise InvalidParameterError(
                f"sample_ids length ({len(sample_ids)}) must match data columns ({n_samples})"
            )
        if n_samples == 0:
            raise InvalidParameterError("data has no sample columns")
        if sample_ids.has_duplicates:
            dupes = sample_ids[sample_ids.duplicated()].unique().tolist()
            raise InvalidParameterError(f"data has duplicate sample columns: {dupes}")
        if np.isinf(values).any():
            raise InvalidParameterError("data contains infinite values")

        values.setflags(write=False)
        self._values = values
        self._feature_ids = feature_ids
        self._sample_ids = sample_ids

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, id_column: str | None = None) -> FeatureMatrix:
        """
        Build from a table whose identifier column is followed by sample columns.

        Args:
            frame: Table with one identifier column and numeric sample columns
            id_column: Identifier column name (default: first column)

        Returns:
            New FeatureMatrix. The input frame is not modified.
        """
        identifiers, values = split_identifier_column(frame, id_column, "data")
        _check_numeric(values, InvalidParameterError, "data")
        return cls(
            values=values.to_numpy(dtype=np.float64),
            feature_ids=identifiers,
            sample_ids=pd.Index(values.columns),
        )

    @property
    def values(self) -> np.ndarray:
        """Read-only value matrix (features × samples)."""
        return self._values

    @property
    def feature_ids(self) -> pd.Index:
        """Row identifiers."""
        return self._feature_ids

    @property
    def sample_ids(self) -> pd.Index:
        """Sample/contrast labels."""
        return self._sample_ids

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_features, n_samples)."""
        return self._values.shape

    @property
    def n_samples(self) -> int:
        return self._values.shape[1]

    def column(self, sample: object) -> pd.Series:
        """
        Values of one sample indexed by feature identifier, missing values included.

        Raises:
            KeyError: If sample is not a column of this matrix
        """
        position = self._sample_ids.get_loc(sample)
        return pd.Series(
            self._values[:, position].copy(),
            index=self._feature_ids,
            name=sample,
        )

    def __repr__(self) -> str:
        return f"FeatureMatrix({self.shape[0]} features × {self.n_samples} samples)"


class WeightMatrix:
    """
    Immutable feature × pathway coefficient table.

    Attributes:
        coefficients: Numeric matrix (features × pathways)
        feature_ids: Unique row identifiers
        pathways: Pathway names in model order

    Shape Invariants:
        - coefficients.shape == (len(feature_ids), len(pathways))
        - feature_ids are unique, non-missing, non-empty
        - pathways are unique
        - coefficients are finite
    """

    def __init__(
        self,
        coefficients: np.ndarray,
        feature_ids: pd.Index,
        pathways: pd.Index,
    ):
        """
        Initialize WeightMatrix with validation.

        Raises:
            InvalidWeightMatrixError: On duplicate or missing identifiers,
                duplicate pathway names, or non-finite coefficients
        """
        coefficients = np.array(coefficients, dtype=np.float64)
        if coefficients.ndim != 2:
            raise InvalidWeightMatrixError(
                f"weight coefficients must be 2D, got shape {coefficients.shape}"
            )

        feature_ids = pd.Index(feature_ids, dtype=object)
        pathways = pd.Index(pathways)

        n_features, n_pathways = coefficients.shape
        if len(feature_ids) != n_features:
            raise InvalidWeightMatrixError(
                f"feature_ids length ({len(feature_ids)}) must match weight rows ({n_features})"
            )
        if len(pathways) != n_pathways:
            raise InvalidWeightMatrixError(
                f"pathways length ({len(pathways)}) must match weight columns ({n_pathways})"
            )
        if n_features == 0:
            raise InvalidWeightMatrixError("weight matrix has no features")
        if n_pathways == 0:
            raise InvalidWeightMatrixError("weight matrix has no pathway columns")

        bad_ids = _missing_identifiers(feature_ids)
        if bad_ids.any():
            raise InvalidWeightMatrixError(
                f"weight matrix has {int(bad_ids.sum())} missing or empty feature identifiers"
            )
        if feature_ids.has_duplicates:
            dupes = feature_ids[feature_ids.duplicated()].unique().tolist()
            raise InvalidWeightMatrixError(
                f"weight matrix has duplicate feature identifiers: {dupes[:10]}"
            )
        if pathways.has_duplicates:
            dupes = pathways[pathways.duplicated()].unique().tolist()
            raise InvalidWeightMatrixError(f"weight matrix has duplicate pathway names: {dupes}")
        if not np.isfinite(coefficients).all():
            raise InvalidWeightMatrixError("weight matrix contains missing or infinite coefficients")

        coefficients.setflags(write=False)
        self._coefficients = coefficients
        self._feature_ids = feature_ids
        self._pathways = pathways
        self._positions = pd.Series(np.arange(n_features), index=feature_ids)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, id_column: str | None = None) -> WeightMatrix:
        """
        Build from a table whose identifier column is followed by pathway columns.

        Raises:
            InvalidParameterError: If the identifier column is missing
            InvalidWeightMatrixError: If the table content is malformed
        """
        identifiers, values = split_identifier_column(frame, id_column, "weights")
        _check_numeric(values, InvalidWeightMatrixError, "weights")
        return cls(
            coefficients=values.to_numpy(dtype=np.float64),
            feature_ids=identifiers,
            pathways=pd.Index(values.columns),
        )

    @property
    def coefficients(self) -> np.ndarray:
        """Read-only coefficient matrix (features × pathways)."""
        return self._coefficients

    @property
    def feature_ids(self) -> pd.Index:
        """Unique row identifiers."""
        return self._feature_ids

    @property
    def pathways(self) -> pd.Index:
        """Pathway names in model order."""
        return self._pathways

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_features, n_pathways)."""
        return self._coefficients.shape

    @property
    def n_pathways(self) -> int:
        return self._coefficients.shape[1]

    def rows_for(self, identifiers: pd.Index) -> np.ndarray:
        """
        Coefficients transposed to pathways × features for the given identifiers.

        Column j of the result belongs to identifiers[j].

        Raises:
            KeyError: If an identifier is not in this matrix
        """
        positions = self._positions.loc[identifiers].to_numpy()
        return self._coefficients[positions, :].T.copy()

    def __repr__(self) -> str:
        return f"WeightMatrix({self.shape[0]} features × {self.n_pathways} pathways)"
