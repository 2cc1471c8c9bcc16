"""Deterministic multi-signal scoring of customer name pairs."""

from __future__ import annotations

from collections import Counter
from typing import Callable

import jellyfish
import structlog
from rapidfuzz import fuzz

from custmerge.calibration import calibrate
from custmerge.config import MatchConfig
from custmerge.lexicon import Lexicon, default_lexicon
from custmerge.normalize import prepare_name
from custmerge.types import NormalizedName, NumericVariance, Signal, SimilarityResult

log = structlog.get_logger()

PREFIX_MAX_LEN = 4
PREFIX_SCALE = 0.1
POSITIONAL_SLOTS = 3
POSITIONAL_STEP = 0.05
NGRAM_TOKENS = 2
METAPHONE_WEIGHT = 0.6
SOUNDEX_WEIGHT = 0.4


def edit_similarity(a: str, b: str) -> float:
    """Character overlap 2*LCS / (len(a) + len(b)) (normalized Indel similarity)."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return fuzz.ratio(a, b) / 100.0


def _common_prefix_len(a: str, b: str, limit: int) -> int:
    n = 0
    for ca, cb in zip(a[:limit], b[:limit]):
        if ca != cb:
            break
        n += 1
    return n


def prefix_similarity(a: NormalizedName, b: NormalizedName) -> float:
    base = edit_similarity(a.normalized, b.normalized)
    prefix_len = _common_prefix_len(a.normalized, b.normalized, PREFIX_MAX_LEN)
    return min(1.0, base + PREFIX_SCALE * prefix_len * (1.0 - base))


def token_set_similarity(a: NormalizedName, b: NormalizedName) -> float:
    """Jaccard of word sets plus a bonus for shared leading word positions."""
    a_set, b_set = set(a.tokens), set(b.tokens)
    union = a_set | b_set
    if not union:
        return 0.0
    score = len(a_set & b_set) / len(union)

    for pos in range(min(POSITIONAL_SLOTS, len(a.tokens), len(b.tokens))):
        if a.tokens[pos] == b.tokens[pos]:
            score += (POSITIONAL_SLOTS - pos) * POSITIONAL_STEP
    return min(1.0, score)


def _edit_on_normalized(a: NormalizedName, b: NormalizedName) -> float:
    return edit_similarity(a.normalized, b.normalized)


def suffix_stripped_similarity(a: NormalizedName, b: NormalizedName) -> float:
    return edit_similarity(a.suffix_stripped, b.suffix_stripped)


def ngram_prefix_similarity(a: NormalizedName, b: NormalizedName) -> float:
    return edit_similarity(
        " ".join(a.tokens[:NGRAM_TOKENS]),
        " ".join(b.tokens[:NGRAM_TOKENS]),
    )


def core_brand_similarity(a: NormalizedName, b: NormalizedName) -> float:
    if not a.core_brand or not b.core_brand:
        return 0.0
    return edit_similarity(a.core_brand, b.core_brand)


def _encode(token: str, encoder: Callable[[str], str]) -> str:
    # Digits and mixed tokens have no meaningful phonetic code
    if not token.isalpha():
        return token
    return encoder(token) or token


def _code_overlap(codes_a: list[str], codes_b: list[str]) -> float:
    if not codes_a or not codes_b:
        return 0.0
    # Greedy one-to-one matching on equal codes is a multiset intersection
    matched = sum((Counter(codes_a) & Counter(codes_b)).values())
    return matched / max(len(codes_a), len(codes_b))


def phonetic_similarity(a: NormalizedName, b: NormalizedName) -> float:
    """Blend of Metaphone (consonant skeleton) and Soundex (sound groups) token matches."""
    metaphone = _code_overlap(
        [_encode(t, jellyfish.metaphone) for t in a.tokens],
        [_encode(t, jellyfish.metaphone) for t in b.tokens],
    )
    soundex = _code_overlap(
        [_encode(t, jellyfish.soundex) for t in a.tokens],
        [_encode(t, jellyfish.soundex) for t in b.tokens],
    )
    return METAPHONE_WEIGHT * metaphone + SOUNDEX_WEIGHT * soundex


SIGNAL_FUNCTIONS: dict[Signal, Callable[[NormalizedName, NormalizedName], float]] = {
    Signal.EDIT: _edit_on_normalized,
    Signal.PREFIX: prefix_similarity,
    Signal.TOKEN_SET: token_set_similarity,
    Signal.SUFFIX_STRIPPED: suffix_stripped_similarity,
    Signal.NGRAM_PREFIX: ngram_prefix_similarity,
    Signal.CORE_BRAND: core_brand_similarity,
    Signal.PHONETIC: phonetic_similarity,
}

_missing = set(Signal) - set(SIGNAL_FUNCTIONS)
if _missing:
    raise RuntimeError(f"no scoring function for signals: {sorted(s.value for s in _missing)}")


def detect_numeric_variance(a: NormalizedName, b: NormalizedName) -> NumericVariance | None:
    """Branch numbers / ordinals present on one side only, or differing on both."""
    tokens_a = tuple(a.numeric_tokens)
    tokens_b = tuple(b.numeric_tokens)
    if tokens_a == tokens_b:
        return None
    return NumericVariance(tokens_a=tokens_a, tokens_b=tokens_b)


def score_pair(a: NormalizedName, b: NormalizedName, config: MatchConfig) -> SimilarityResult:
    """Score a pair of prepared names.

    Identical normalized forms short-circuit to 1.0. Otherwise every signal is
    computed independently; a signal that raises contributes 0 and its error
    is kept on the result.
    """
    if a.normalized == b.normalized:
        return SimilarityResult(score=1.0, base_score=1.0, exact_match=True)

    signals: dict[Signal, float] = {}
    errors: dict[Signal, str] = {}
    for signal, fn in SIGNAL_FUNCTIONS.items():
        try:
            value = fn(a, b)
        except Exception as e:
            log.warning(
                "signal_failed",
                signal=signal.value,
                name_a=a.original,
                name_b=b.original,
                error=str(e),
            )
            errors[signal] = f"{type(e).__name__}: {e}"
            value = 0.0
        signals[signal] = max(0.0, min(1.0, value))

    result = calibrate(signals, a, b, detect_numeric_variance(a, b), config)
    result.errors = errors
    return result


class PairScorer:
    """Scan-scoped scorer: memoises prepared names and pair scores.

    One instance belongs to one scan; nothing here is shared between scans.
    """

    def __init__(self, config: MatchConfig | None = None, lexicon: Lexicon | None = None) -> None:
        self.config = config or MatchConfig()
        self.config.validate()
        self.lexicon = lexicon or default_lexicon()
        self._prepared: dict[str, NormalizedName] = {}
        self._cache: dict[frozenset[str], SimilarityResult] = {}
        self.comparisons = 0
        self.cache_hits = 0

    def prepare(self, name: str) -> NormalizedName:
        """Prepared form of a raw name; raises EmptyNameError for empty names."""
        prepared = self._prepared.get(name)
        if prepared is None:
            prepared = prepare_name(name, self.lexicon, self.config.normalization)
            self._prepared[name] = prepared
        return prepared

    def score(self, name_a: str, name_b: str) -> SimilarityResult:
        key = frozenset((name_a, name_b))
        if self.config.cache_enabled:
            cached = self._cache.get(key)
            if cached is not None:
                self.cache_hits += 1
                return cached

        result = score_pair(self.prepare(name_a), self.prepare(name_b), self.config)
        self.comparisons += 1
        if self.config.cache_enabled:
            self._cache[key] = result
        return result

    def seed(self, name_a: str, name_b: str, result: SimilarityResult) -> None:
        """Store a score computed elsewhere (e.g. by a worker thread)."""
        self.comparisons += 1
        self._cache[frozenset((name_a, name_b))] = result

    def is_cached(self, name_a: str, name_b: str) -> bool:
        return frozenset((name_a, name_b)) in self._cache

    def clear(self) -> None:
        self._prepared.clear()
        self._cache.clear()
