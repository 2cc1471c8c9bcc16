"""Labeled-pair accuracy harness for calibrating weights and thresholds."""

from __future__ import annotations

import csv
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from custmerge.config import MatchConfig
from custmerge.errors import EmptyNameError
from custmerge.lexicon import Lexicon
from custmerge.scoring import PairScorer

_TRUE = {"1", "true", "yes", "y", "t"}
_FALSE = {"0", "false", "no", "n", "f"}


@dataclass
class LabeledPair:
    name_1: str
    name_2: str
    expected_match: bool


@dataclass
class CaseResult:
    pair: LabeledPair
    score: float
    predicted_match: bool
    correct: bool
    adjustments: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class EvalMetrics:
    precision: float = 0.0
    recall: float = 0.0
    f1: float = 0.0
    accuracy: float = 0.0
    total_pairs: int = 0
    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    true_negatives: int = 0
    errors: int = 0
    fp_reasons: dict[str, int] = field(default_factory=dict)
    cases: list[CaseResult] = field(default_factory=list)


def _parse_label(value: str) -> bool:
    v = value.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"unrecognised expected_match value: {value!r}")


def load_labeled_pairs(path: str | Path) -> list[LabeledPair]:
    """Load labeled pairs from CSV (name_1, name_2, expected_match)."""
    path = Path(path)
    pairs: list[LabeledPair] = []
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            pairs.append(LabeledPair(
                name_1=row["name_1"].strip(),
                name_2=row["name_2"].strip(),
                expected_match=_parse_label(row["expected_match"]),
            ))
    return pairs


def evaluate(
    pairs: list[LabeledPair],
    config: MatchConfig | None = None,
    lexicon: Lexicon | None = None,
) -> EvalMetrics:
    """Score every pair and compare ``score >= min_confidence`` with its label.

    A pair with an empty name cannot be scored; it counts as predicted
    no-match and is recorded with its error.
    """
    config = config or MatchConfig()
    scorer = PairScorer(config, lexicon)
    threshold = config.thresholds.min_confidence
    metrics = EvalMetrics(total_pairs=len(pairs))
    fp_reasons: Counter[str] = Counter()

    for pair in pairs:
        score = 0.0
        adjustments: list[str] = []
        error = None
        try:
            result = scorer.score(pair.name_1, pair.name_2)
            score = result.score
            adjustments = [a.name for a in result.adjustments]
        except EmptyNameError as e:
            error = str(e)
            metrics.errors += 1

        predicted = error is None and score >= threshold
        actual = pair.expected_match

        if predicted and actual:
            metrics.true_positives += 1
        elif predicted and not actual:
            metrics.false_positives += 1
            fp_reasons.update(adjustments or ["no_penalty"])
        elif not predicted and actual:
            metrics.false_negatives += 1
        else:
            metrics.true_negatives += 1

        metrics.cases.append(CaseResult(
            pair=pair,
            score=score,
            predicted_match=predicted,
            correct=predicted == actual,
            adjustments=adjustments,
            error=error,
        ))

    if metrics.true_positives + metrics.false_positives > 0:
        metrics.precision = metrics.true_positives / (
            metrics.true_positives + metrics.false_positives
        )
    if metrics.true_positives + metrics.false_negatives > 0:
        metrics.recall = metrics.true_positives / (
            metrics.true_positives + metrics.false_negatives
        )
    if metrics.precision + metrics.recall > 0:
        metrics.f1 = (
            2 * metrics.precision * metrics.recall
            / (metrics.precision + metrics.recall)
        )
    if metrics.total_pairs:
        metrics.accuracy = (metrics.true_positives + metrics.true_negatives) / metrics.total_pairs

    metrics.fp_reasons = dict(fp_reasons)
    return metrics
