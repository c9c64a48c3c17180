"""
Configuration file support for permutation scoring runs.

Supports YAML and JSON config files. Explicit keyword overrides take
precedence over file values, which take precedence over defaults.

Example config (scoring.yaml):

    k: 10000
    z_scores: true
    get_nulldist: false
    seed: 42
    error_policy: collect
    n_workers: 4
    data_id_column: gene
"""

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml

from progenyperm._validators import _flag, _optional_seed, _positive_int
from progenyperm.exceptions import InvalidParameterError
from progenyperm.stats.engine import ErrorPolicy
from progenyperm.stats.null_distribution import DEFAULT_PERMUTATIONS


@dataclass(frozen=True)
class PermutationConfig:
    """
    Settings of one scoring run.

    Mirrors the keyword arguments of run_permutation_scoring().
    Validated on construction.
    """
    k: int = DEFAULT_PERMUTATIONS
    z_scores: bool = True
    get_nulldist: bool = False
    seed: Optional[int] = None
    error_policy: str = ErrorPolicy.RAISE.value
    n_workers: int = 1
    data_id_column: Optional[str] = None
    weights_id_column: Optional[str] = None

    def __post_init__(self):
        _positive_int(self.k, "k")
        _flag(self.z_scores, "z_scores")
        _flag(self.get_nulldist, "get_nulldist")
        _optional_seed(self.seed)
        # Normalize enum/mixed-case input to the canonical string
        object.__setattr__(self, "error_policy", ErrorPolicy.parse(self.error_policy).value)
        _positive_int(self.n_workers, "n_workers")
        for name in ("data_id_column", "weights_id_column"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise InvalidParameterError(f"{name} must be a string, got {value!r}")

    @classmethod
    def from_mapping(cls, config: Dict[str, Any]) -> "PermutationConfig":
        """
        Build from a plain mapping, rejecting unknown keys.

        Raises:
            InvalidParameterError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise InvalidParameterError(
                f"Unknown config keys: {unknown}. Valid keys: {sorted(known)}"
            )
        return cls(**config)

    @classmethod
    def from_file(cls, config_path: Union[str, Path], **overrides: Any) -> "PermutationConfig":
        """Load a config file and apply explicit overrides (None overrides are ignored)."""
        config = cls.from_mapping(load_config(config_path))
        return config.with_overrides(**overrides)

    def with_overrides(self, **overrides: Any) -> "PermutationConfig":
        """
        Return a copy with explicitly set values replaced.

        Rules:
        - An override that is not None always wins
        - A None override keeps the current value
        """
        explicit = {key: value for key, value in overrides.items() if value is not None}
        known = {f.name for f in fields(self)}
        unknown = sorted(set(explicit) - known)
        if unknown:
            raise InvalidParameterError(f"Unknown config keys: {unknown}")
        return replace(self, **explicit)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _parse_yaml(text: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidParameterError(f"Invalid YAML in config file: {e}") from e


def _parse_json(text: str) -> Any:
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidParameterError(f"Invalid JSON in config file: {e}") from e


_PARSERS: Dict[str, Callable[[str], Any]] = {
    '.yaml': _parse_yaml,
    '.yml': _parse_yaml,
    '.json': _parse_json,
}


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read the raw settings mapping of a scoring run from disk.

    The parser is chosen by suffix (.yaml, .yml or .json). An empty file
    yields an empty mapping, so every setting falls back to its default.
    Keys are not checked here; PermutationConfig.from_mapping() does that.

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidParameterError: Unknown suffix, unparsable content, or a
            top level that is not a mapping

    Examples:
        >>> load_config("collect_policy.yml")
        {'k': 2000, 'error_policy': 'collect', 'seed': 7}
    """
    path = Path(config_path)
    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        raise InvalidParameterError(
            f"Unsupported config format '{path.suffix}' for {path.name}; "
            f"expected one of {sorted(_PARSERS)}"
        )
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    settings = parser(path.read_text())
    if settings is None:
        return {}
    if not isinstance(settings, dict):
        raise InvalidParameterError(
            f"{path.name} must hold a mapping of setting names at top level, "
            f"got {type(settings).__name__}"
        )
    return settings
