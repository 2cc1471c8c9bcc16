"""Tests for the persistence contract and the JSON file store."""

import json
from pathlib import Path

import pytest

from custmerge.store import (
    JsonMergeStore,
    division_code,
    publish_suggestions,
    record_validations,
)
from custmerge.types import MergeGroupCandidate, ValidationResult


def _group(*members: str, confidence: float = 0.9) -> MergeGroupCandidate:
    return MergeGroupCandidate(members=members, confidence=confidence, suggested_name=members[0])


class RecordingSink:
    """Sink whose bulk and single writes can be made to fail."""

    def __init__(self, bulk_fails: bool = False, failing: set[str] | None = None) -> None:
        self.bulk_fails = bulk_fails
        self.failing = failing or set()
        self.bulk_calls = 0
        self.saved: list[MergeGroupCandidate] = []
        self.validations: list = []

    def save_suggestions(self, division, groups):
        self.bulk_calls += 1
        if self.bulk_fails:
            raise ConnectionError("bulk insert failed")
        self.saved.extend(groups)

    def save_suggestion(self, division, group):
        if group.members[0] in self.failing:
            raise ConnectionError("row rejected")
        self.saved.append(group)

    def update_rule_validation(self, division, rule_id, result):
        if rule_id in self.failing:
            raise ConnectionError("update failed")
        self.validations.append((rule_id, result.status))


@pytest.mark.parametrize(
    "division, code",
    [("FP-UAE", "fp"), ("retail", "retail"), ("  HORECA-KSA ", "horeca")],
)
def test_division_code(division, code):
    assert division_code(division) == code


def test_division_code_rejects_blank():
    with pytest.raises(ValueError):
        division_code("-UAE")


class TestPublishSuggestions:
    def test_bulk_write(self):
        sink = RecordingSink()
        groups = [_group("A", "B"), _group("C", "D")]
        assert publish_suggestions(sink, "FP-UAE", groups) == 2
        assert sink.bulk_calls == 1
        assert sink.saved == groups

    def test_falls_back_to_single_writes(self):
        sink = RecordingSink(bulk_fails=True, failing={"C"})
        groups = [_group("A", "B"), _group("C", "D"), _group("E", "F")]
        assert publish_suggestions(sink, "FP-UAE", groups) == 2
        assert [g.members[0] for g in sink.saved] == ["A", "E"]

    def test_nothing_to_publish(self):
        sink = RecordingSink()
        assert publish_suggestions(sink, "FP-UAE", []) == 0
        assert sink.bulk_calls == 0


def test_record_validations_isolated():
    sink = RecordingSink(failing={2})
    results = [
        ValidationResult(rule_id=1, rule_name="a", status="VALID"),
        ValidationResult(rule_id=2, rule_name="b", status="ORPHANED"),
        ValidationResult(rule_id=3, rule_name="c", status="NEEDS_UPDATE"),
    ]
    assert record_validations(sink, "FP-UAE", results) == 2
    assert sink.validations == [(1, "VALID"), (3, "NEEDS_UPDATE")]


class TestJsonMergeStore:
    def test_file_naming(self, tmp_path: Path):
        store = JsonMergeStore(tmp_path)
        store.save_suggestions("FP-UAE", [_group("A", "B")])
        assert (tmp_path / "fp_merge_rule_suggestions.json").exists()
        assert not list(tmp_path.glob("*.tmp"))

    def test_suggestions_upsert_is_idempotent(self, tmp_path: Path):
        store = JsonMergeStore(tmp_path)
        store.save_suggestions("FP-UAE", [_group("Acme Co", "Acme LLC", confidence=0.8)])
        store.save_suggestions("FP-UAE", [_group("acme llc", "ACME CO", confidence=0.85)])
        store.save_suggestion("FP-UAE", _group("Acme Co", "Acme LLC", confidence=0.9))

        (record,) = store.get_suggestions("FP-UAE")
        assert record["confidence_score"] == 0.9
        assert record["key"] == ["acme co", "acme llc"]
        assert record["created_at"] <= record["updated_at"]

    def test_names_deduplicated_and_trimmed(self, tmp_path: Path):
        store = JsonMergeStore(tmp_path)
        store.save_names("FP-UAE", ["Acme Co", "  Acme Co ", "", "Beta"])
        assert store.get_all_names("FP-UAE") == ["Acme Co", "Beta"]

    def test_missing_files_are_empty(self, tmp_path: Path):
        store = JsonMergeStore(tmp_path)
        assert store.get_all_names("FP-UAE") == []
        assert store.get_active_rules("FP-UAE") == []
        assert store.get_rejected_pairs("FP-UAE") == set()

    def test_rules_and_validation(self, tmp_path: Path):
        store = JsonMergeStore(tmp_path)
        first = store.add_rule("FP-UAE", "Acme", ["Acme Co", "Acme LLC"])
        second = store.add_rule("FP-UAE", "Beta", ["Beta"])
        assert (first.id, second.id) == (1, 2)

        result = ValidationResult(
            rule_id=1, rule_name="Acme", status="NEEDS_UPDATE", found=["Acme Co"], missing=["Acme LLC"]
        )
        store.update_rule_validation("FP-UAE", 1, result)

        rule = store.get_active_rules("FP-UAE")[0]
        assert rule.active
        assert rule.validation_status == "NEEDS_UPDATE"
        assert rule.validation_notes["missing"] == ["Acme LLC"]
        assert rule.last_validated_at is not None

    def test_inactive_rules_not_returned(self, tmp_path: Path):
        path = tmp_path / "fp_merge_rules.json"
        path.write_text(json.dumps({"rules": [
            {"id": 1, "canonical_name": "Old", "members": ["Old"], "active": False},
            {"id": 2, "canonical_name": "New", "members": ["New"]},
        ]}))
        store = JsonMergeStore(tmp_path)
        assert [r.id for r in store.get_active_rules("FP-UAE")] == [2]
        assert len(store.get_rules("FP-UAE")) == 2

    def test_update_unknown_rule(self, tmp_path: Path):
        store = JsonMergeStore(tmp_path)
        with pytest.raises(KeyError):
            store.update_rule_validation(
                "FP-UAE", 99, ValidationResult(rule_id=99, rule_name="x", status="VALID")
            )

    def test_rejections(self, tmp_path: Path):
        store = JsonMergeStore(tmp_path)
        store.add_rejection("FP-UAE", "Acme Co", "Acme Trading")
        store.add_rejection("FP-UAE", "ACME TRADING", "acme co")
        assert store.get_rejected_pairs("FP-UAE") == {frozenset(("acme co", "acme trading"))}
        data = json.loads((tmp_path / "fp_merge_rule_rejections.json").read_text())
        assert len(data["rejections"]) == 1
