"""Tests for confidence calibration."""

import pytest

from custmerge.calibration import calibrate, detect_adjustments, weighted_sum
from custmerge.config import MatchConfig, Penalties, ScoringWeights
from custmerge.normalize import prepare_name
from custmerge.scoring import detect_numeric_variance
from custmerge.types import Signal


def _adjustments(a: str, b: str, config: MatchConfig | None = None) -> list[str]:
    pa, pb = prepare_name(a), prepare_name(b)
    config = config or MatchConfig()
    return [adj.name for adj in detect_adjustments(pa, pb, detect_numeric_variance(pa, pb), config)]


def test_weighted_sum_of_perfect_signals():
    signals = {s: 1.0 for s in Signal}
    assert weighted_sum(signals, ScoringWeights()) == pytest.approx(1.0)


def test_weighted_sum_single_signal():
    signals = {Signal.NGRAM_PREFIX: 1.0}
    assert weighted_sum(signals, ScoringWeights()) == pytest.approx(0.23)


def test_single_word_and_length_mismatch():
    assert _adjustments("Nike", "Nike Store Dubai") == ["single_word", "length_mismatch"]


def test_short_name():
    assert "short_name" in _adjustments("ABC", "ABC Trading")


def test_numeric_variance_one_side():
    assert _adjustments("Lulu Branch", "Lulu Trading") == ["numeric_variance"]


def test_no_adjustments():
    assert _adjustments("Al Futtaim Trading LLC", "Al Futtaim Trading") == []


def test_reasons_are_readable():
    pa, pb = prepare_name("City Mart Branch 1"), prepare_name("City Mart Branch 2")
    (adj,) = detect_adjustments(pa, pb, detect_numeric_variance(pa, pb), MatchConfig())
    assert adj.factor == 0.80
    assert "branch 1" in adj.reason
    assert "branch 2" in adj.reason


class TestCalibrate:
    def test_penalties_multiply(self):
        pa, pb = prepare_name("Nike"), prepare_name("Nike Store Dubai")
        signals = {s: 1.0 for s in Signal}
        result = calibrate(signals, pa, pb, None, MatchConfig())
        assert result.base_score == pytest.approx(1.0)
        assert result.score == pytest.approx(0.85 * 0.85)

    def test_neutral_penalties(self):
        config = MatchConfig(penalties=Penalties(1.0, 1.0, 1.0, 1.0))
        pa, pb = prepare_name("Nike"), prepare_name("Nike Store Dubai")
        signals = {s: 0.5 for s in Signal}
        result = calibrate(signals, pa, pb, None, config)
        assert result.score == pytest.approx(result.base_score)

    def test_never_above_base(self):
        pa, pb = prepare_name("ABC"), prepare_name("ABC Trading Branch 2")
        signals = {s: 0.9 for s in Signal}
        result = calibrate(signals, pa, pb, detect_numeric_variance(pa, pb), MatchConfig())
        assert result.score < result.base_score
        assert result.score >= 0.0
