"""Core types for the custmerge duplicate detection system."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal


@dataclass
class NormalizedName:
    original: str
    normalized: str
    tokens: list[str]
    without_suffix: str
    suffix_stripped: str
    core_brand: str
    numeric_tokens: list[str]


class Signal(str, Enum):
    """The seven independent similarity signals combined by the calibrator."""

    EDIT = "edit"
    PREFIX = "prefix"
    TOKEN_SET = "token_set"
    SUFFIX_STRIPPED = "suffix_stripped"
    NGRAM_PREFIX = "ngram_prefix"
    CORE_BRAND = "core_brand"
    PHONETIC = "phonetic"


@dataclass(frozen=True)
class Adjustment:
    name: str
    factor: float
    reason: str


@dataclass(frozen=True)
class NumericVariance:
    tokens_a: tuple[str, ...]
    tokens_b: tuple[str, ...]


@dataclass
class SimilarityResult:
    score: float
    base_score: float
    exact_match: bool = False
    signals: dict[Signal, float] = field(default_factory=dict)
    adjustments: list[Adjustment] = field(default_factory=list)
    numeric_variance: NumericVariance | None = None
    errors: dict[Signal, str] = field(default_factory=dict)

    def breakdown(self) -> dict:
        """Flat, JSON-friendly view used in match details."""
        data: dict = {"score": round(self.score, 4), "base_score": round(self.base_score, 4)}
        if self.exact_match:
            data["exact_match"] = True
        data.update({s.value: round(v, 3) for s, v in self.signals.items()})
        if self.adjustments:
            data["adjustments"] = [a.name for a in self.adjustments]
        if self.errors:
            data["errors"] = {s.value: msg for s, msg in self.errors.items()}
        return data


@dataclass(frozen=True)
class PairDetail:
    name_a: str
    name_b: str
    result: SimilarityResult


@dataclass(frozen=True)
class MergeGroupCandidate:
    members: tuple[str, ...]
    confidence: float
    suggested_name: str
    match_details: tuple[PairDetail, ...] = ()

    @property
    def key(self) -> tuple[str, ...]:
        """Order-insensitive identity used for idempotent persistence."""
        return tuple(sorted(m.casefold() for m in self.members))


# ERROR marks a rule whose validation raised; its partition may be partial
ValidationStatus = Literal["VALID", "NEEDS_UPDATE", "ORPHANED", "ERROR"]


@dataclass
class MergeRule:
    id: int | str
    canonical_name: str
    members: list[str]
    active: bool = True
    validation_status: ValidationStatus | None = None
    validation_notes: dict | None = None
    last_validated_at: datetime | None = None


@dataclass(frozen=True)
class ReplacementCandidate:
    name: str
    confidence: float


@dataclass
class ReplacementSuggestion:
    missing_name: str
    best_replacement: str
    confidence: float
    alternatives: list[ReplacementCandidate] = field(default_factory=list)


@dataclass
class ValidationResult:
    rule_id: int | str
    rule_name: str
    status: ValidationStatus
    found: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    suggestions: list[ReplacementSuggestion] = field(default_factory=list)
    error: str | None = None


@dataclass
class ScanStats:
    """Statistics collected during one scan."""

    name_count: int = 0
    rejected_names: int = 0
    duplicate_names: int = 0
    blocking_active: bool = False
    block_count: int = 0
    comparisons: int = 0
    cache_hits: int = 0
    rejected_pairs_skipped: int = 0
    groups: int = 0
    filtered_existing: int = 0
    filtered_low_confidence: int = 0
    truncated: bool = False
    elapsed_seconds: float = 0.0


@dataclass
class ScanResult:
    groups: list[MergeGroupCandidate]
    stats: ScanStats
    truncated: bool = False
