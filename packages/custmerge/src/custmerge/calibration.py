"""Confidence calibration: weighted signal sum plus edge-case penalties."""

from __future__ import annotations

from custmerge.config import MatchConfig, ScoringWeights
from custmerge.types import (
    Adjustment,
    NormalizedName,
    NumericVariance,
    Signal,
    SimilarityResult,
)

SHORT_NAME_LEN = 4
LENGTH_RATIO_FLOOR = 0.5


def weighted_sum(signals: dict[Signal, float], weights: ScoringWeights) -> float:
    return sum(getattr(weights, signal.value) * signals.get(signal, 0.0) for signal in Signal)


def detect_adjustments(
    a: NormalizedName,
    b: NormalizedName,
    numeric_variance: NumericVariance | None,
    config: MatchConfig,
) -> list[Adjustment]:
    """Penalties whose trigger conditions hold for this pair."""
    p = config.penalties
    adjustments: list[Adjustment] = []

    single = [n.original for n in (a, b) if len(n.tokens) == 1]
    if single:
        adjustments.append(Adjustment(
            "single_word", p.single_word, f"single-word name: {', '.join(single)}",
        ))

    short = [n.original for n in (a, b) if len(n.normalized) < SHORT_NAME_LEN]
    if short:
        adjustments.append(Adjustment(
            "short_name", p.short_name,
            f"name shorter than {SHORT_NAME_LEN} characters: {', '.join(short)}",
        ))

    len_a, len_b = len(a.normalized), len(b.normalized)
    longest = max(len_a, len_b)
    if longest > 0 and min(len_a, len_b) / longest < LENGTH_RATIO_FLOOR:
        adjustments.append(Adjustment(
            "length_mismatch", p.length_mismatch,
            f"normalized lengths differ by more than half ({len_a} vs {len_b})",
        ))

    if numeric_variance is not None:
        shown_a = " ".join(numeric_variance.tokens_a) or "none"
        shown_b = " ".join(numeric_variance.tokens_b) or "none"
        adjustments.append(Adjustment(
            "numeric_variance", p.numeric_variance,
            f"branch/number tokens differ ({shown_a} vs {shown_b})",
        ))

    return adjustments


def calibrate(
    signals: dict[Signal, float],
    a: NormalizedName,
    b: NormalizedName,
    numeric_variance: NumericVariance | None,
    config: MatchConfig,
) -> SimilarityResult:
    """Combine signals and apply multiplicative penalties.

    Every multiplier is in (0, 1], so the result never exceeds the
    pre-penalty score.
    """
    raw = weighted_sum(signals, config.weights)
    adjustments = detect_adjustments(a, b, numeric_variance, config)

    score = raw
    for adjustment in adjustments:
        score *= adjustment.factor

    return SimilarityResult(
        score=max(0.0, min(1.0, score)),
        base_score=max(0.0, min(1.0, raw)),
        signals=dict(signals),
        adjustments=adjustments,
        numeric_variance=numeric_variance,
    )
