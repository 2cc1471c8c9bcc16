"""Configuration for the custmerge duplicate detection system."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any

from custmerge.errors import ConfigError


@dataclass
class ScoringWeights:
    edit: float = 0.10
    prefix: float = 0.10
    token_set: float = 0.15
    suffix_stripped: float = 0.08
    ngram_prefix: float = 0.23
    core_brand: float = 0.22
    phonetic: float = 0.12

    def total(self) -> float:
        return math.fsum(getattr(self, f.name) for f in fields(self))


@dataclass
class Penalties:
    """Multiplicative calibration penalties, each in (0, 1]."""

    single_word: float = 0.85
    short_name: float = 0.90
    length_mismatch: float = 0.85
    numeric_variance: float = 0.80


@dataclass
class Thresholds:
    min_confidence: float = 0.65
    high_confidence: float = 0.90  # informational only
    replacement_floor: float = 0.70


@dataclass
class GroupingConfig:
    max_group_size: int = 5


@dataclass
class BlockingConfig:
    """Prefix blocking for large name lists.

    With more than one worker, candidate pairs are scored block by block on a
    thread pool before the greedy pass. A scan budget turns that off: the
    budget counts pairs in greedy order, which eager scoring would overrun.
    """

    enabled: bool = True
    activation_threshold: int = 100  # blocking kicks in above this many names
    prefix_length: int = 3
    max_workers: int = 4


@dataclass
class ScanBudget:
    max_pairs: int | None = None
    max_seconds: float | None = None


@dataclass
class NormalizationConfig:
    strip_address_noise: bool = False
    strip_locations: bool = False


@dataclass
class MatchConfig:
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    penalties: Penalties = field(default_factory=Penalties)
    thresholds: Thresholds = field(default_factory=Thresholds)
    grouping: GroupingConfig = field(default_factory=GroupingConfig)
    blocking: BlockingConfig = field(default_factory=BlockingConfig)
    budget: ScanBudget = field(default_factory=ScanBudget)
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    cache_enabled: bool = True

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError if the configuration would skew confidence values."""
        for f in fields(self.weights):
            if getattr(self.weights, f.name) < 0:
                raise ConfigError(f"weight {f.name} must be non-negative")
        total = self.weights.total()
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ConfigError(f"scoring weights must sum to 1.0, got {total:.6f}")

        for f in fields(self.penalties):
            value = getattr(self.penalties, f.name)
            if not 0.0 < value <= 1.0:
                raise ConfigError(f"penalty {f.name} must be in (0, 1], got {value}")

        for f in fields(self.thresholds):
            value = getattr(self.thresholds, f.name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"threshold {f.name} must be in [0, 1], got {value}")

        if self.grouping.max_group_size < 2:
            raise ConfigError("grouping.max_group_size must be at least 2")
        if self.blocking.prefix_length < 1:
            raise ConfigError("blocking.prefix_length must be at least 1")
        if self.blocking.max_workers < 1:
            raise ConfigError("blocking.max_workers must be at least 1")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MatchConfig:
        """Build a config from nested overrides, e.g. {"weights": {"edit": 0.2}}."""
        config = cls()
        _apply_overrides(config, data, path="")
        config.validate()
        return config


def _apply_overrides(target: Any, data: dict[str, Any], path: str) -> None:
    known = {f.name for f in fields(target)}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"unknown config key: {path}{key}")
        current = getattr(target, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ConfigError(f"config section {path}{key} must be an object")
            _apply_overrides(current, value, path=f"{path}{key}.")
        else:
            setattr(target, key, value)


def load_config(path: str | Path | None) -> MatchConfig:
    """Load a MatchConfig from a JSON override file (defaults when path is None)."""
    if path is None:
        return MatchConfig()
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a JSON object")
    return MatchConfig.from_dict(data)
