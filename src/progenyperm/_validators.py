"""Shared parameter validators for run settings.

These produce clear error messages when callers pass invalid values
(e.g., ``k=0``, ``n_workers=-2``). Used by the scoring engine and by
``PermutationConfig``.
"""

from __future__ import annotations

import numbers

import numpy as np

from progenyperm.exceptions import InvalidParameterError


def _positive_int(value: object, name: str) -> int:
    """Validate a positive integer (> 0). Booleans are rejected."""
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidParameterError(f"{name} must be a positive integer, got {value!r}")
    ivalue = int(value)
    if ivalue <= 0:
        raise InvalidParameterError(f"{name} must be a positive integer, got {ivalue}")
    return ivalue


def _optional_seed(value: object) -> int | None:
    """Validate a random seed: None or a non-negative integer."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or int(value) < 0:
        raise InvalidParameterError(f"seed must be None or a non-negative integer, got {value!r}")
    return int(value)


def _flag(value: object, name: str) -> bool:
    """Validate a boolean switch."""
    if not isinstance(value, (bool, np.bool_)):
        raise InvalidParameterError(f"{name} must be a boolean, got {value!r}")
    return bool(value)
