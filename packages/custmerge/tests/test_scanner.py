"""End-to-end tests for the scanner and the division workflow."""

from pathlib import Path

from custmerge.config import MatchConfig, ScanBudget
from custmerge.scanner import MergeScanner, MergeService
from custmerge.store import JsonMergeStore
from custmerge.types import MergeRule


def test_suffix_variants_grouped_unrelated_left_out():
    result = MergeScanner().scan(["Al Futtaim Trading LLC", "Al Futtaim Trading", "ABC Corp"])
    assert len(result.groups) == 1
    group = result.groups[0]
    assert set(group.members) == {"Al Futtaim Trading LLC", "Al Futtaim Trading"}
    assert group.confidence >= 0.65
    assert "ABC Corp" not in group.members
    assert result.stats.name_count == 3
    assert not result.truncated


def test_branch_variants_grouped_despite_penalty():
    result = MergeScanner().scan(["City Mart Branch 1", "City Mart Branch 2"])
    (group,) = result.groups
    (detail,) = group.match_details
    assert [a.name for a in detail.result.adjustments] == ["numeric_variance"]
    assert group.confidence >= 0.65


def test_case_and_whitespace_duplicates():
    result = MergeScanner().scan(["Acme Co", "  acme co  "])
    (group,) = result.groups
    assert group.confidence == 1.0
    assert group.match_details[0].result.exact_match


def test_empty_and_repeated_names_rejected():
    scanner = MergeScanner()
    result = scanner.scan(["", "   ", None, "Acme Co", "Acme Co", "!!!"])
    assert result.groups == []
    assert result.stats.rejected_names == 4
    assert result.stats.duplicate_names == 1
    assert result.stats.name_count == 1


def test_deterministic():
    names = [
        "Al Futtaim Trading LLC", "Golden Star Trdg", "Al Futtaim Trading",
        "Golden Star Trading Co", "City Mart Branch 1", "City Mart Branch 2",
    ]
    first = MergeScanner().scan(names)
    second = MergeScanner().scan(names)
    assert [(g.members, g.suggested_name) for g in first.groups] == [
        (g.members, g.suggested_name) for g in second.groups
    ]


def test_groups_covered_by_active_rules_dropped():
    rules = [MergeRule(id=1, canonical_name="Al Futtaim", members=["al futtaim trading"])]
    result = MergeScanner().scan(
        ["Al Futtaim Trading LLC", "Al Futtaim Trading", "Acme Co", "ACME CO"], rules
    )
    assert [g.members for g in result.groups] == [("Acme Co", "ACME CO")]
    assert result.stats.filtered_existing == 1


def test_inactive_rules_do_not_filter():
    rules = [MergeRule(id=1, canonical_name="x", members=["Al Futtaim Trading"], active=False)]
    result = MergeScanner().scan(["Al Futtaim Trading LLC", "Al Futtaim Trading"], rules)
    assert len(result.groups) == 1


def test_rejected_pairs_respected():
    rejected = {frozenset(("al futtaim trading llc", "al futtaim trading"))}
    result = MergeScanner().scan(["Al Futtaim Trading LLC", "Al Futtaim Trading"], rejected_pairs=rejected)
    assert result.groups == []
    assert result.stats.rejected_pairs_skipped == 1


def test_truncation_flag():
    config = MatchConfig(budget=ScanBudget(max_pairs=0))
    result = MergeScanner(config).scan(["Acme Co", "ACME CO"])
    assert result.truncated
    assert result.groups == []


def test_cache_scoped_to_scan():
    scanner = MergeScanner()
    scanner.scan(["Acme Co", "ACME CO"])
    first = scanner.scorer
    assert first.is_cached("Acme Co", "ACME CO")
    scanner.clear_cache()
    assert not first.is_cached("Acme Co", "ACME CO")
    scanner.scan(["Beta", "Gamma"])
    assert scanner.scorer is not first


class TestMergeService:
    def _store(self, tmp_path: Path) -> JsonMergeStore:
        store = JsonMergeStore(tmp_path)
        store.save_names("FP-UAE", [
            "Al Futtaim Trading LLC",
            "Al Futtaim Trading",
            "Golden Star Trading LLC",
            "Golden Star Trading Co",
            "Zebra Logistics",
        ])
        store.add_rule("FP-UAE", "Golden Star", ["Golden Star Trading LLC", "Golden Star Trdg"])
        return store

    def test_scan_division_persists_idempotently(self, tmp_path: Path):
        store = self._store(tmp_path)
        service = MergeService(store, store)

        first = service.scan_division("FP-UAE")
        service.scan_division("FP-UAE")

        # Golden Star is covered by the active rule
        assert [set(g.members) for g in first.groups] == [{"Al Futtaim Trading LLC", "Al Futtaim Trading"}]
        assert len(store.get_suggestions("FP-UAE")) == 1

    def test_dry_run_writes_nothing(self, tmp_path: Path):
        store = self._store(tmp_path)
        MergeService(store, store).scan_division("FP-UAE", persist=False)
        assert store.get_suggestions("FP-UAE") == []

    def test_validate_division_records_status(self, tmp_path: Path):
        store = self._store(tmp_path)
        (result,) = MergeService(store, store).validate_division("FP-UAE")

        assert result.status == "NEEDS_UPDATE"
        assert result.suggestions[0].best_replacement == "Golden Star Trading Co"
        rule = store.get_active_rules("FP-UAE")[0]
        assert rule.validation_status == "NEEDS_UPDATE"
        assert rule.active
