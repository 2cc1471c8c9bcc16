"""Persistence contract for names, rules and merge suggestions, plus a JSON file store."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import structlog

from custmerge.io import group_to_record, rule_from_record, rule_to_record, validation_to_record
from custmerge.types import MergeGroupCandidate, MergeRule, ValidationResult

log = structlog.get_logger()


class NameSource(Protocol):
    """Read side: the names and rules of one division."""

    def get_all_names(self, division: str) -> list[str]:
        """Distinct, non-empty, trimmed names."""
        ...

    def get_active_rules(self, division: str) -> list[MergeRule]:
        ...

    def get_rejected_pairs(self, division: str) -> set[frozenset[str]]:
        """Reviewer-rejected pairs as case-folded frozensets."""
        ...


class SuggestionSink(Protocol):
    """Write side. Every call must be idempotent."""

    def save_suggestions(self, division: str, groups: list[MergeGroupCandidate]) -> None:
        ...

    def save_suggestion(self, division: str, group: MergeGroupCandidate) -> None:
        ...

    def update_rule_validation(
        self, division: str, rule_id: int | str, result: ValidationResult
    ) -> None:
        ...


def division_code(division: str) -> str:
    """Storage prefix for a division key: ``"FP-UAE"`` -> ``"fp"``."""
    code = division.strip().split("-")[0].strip().lower()
    if not code:
        raise ValueError(f"invalid division key: {division!r}")
    return code


def publish_suggestions(
    sink: SuggestionSink, division: str, groups: list[MergeGroupCandidate]
) -> int:
    """Bulk-save groups, falling back to one write per group.

    A group that still fails is logged and dropped. Returns the number saved.
    """
    if not groups:
        return 0
    try:
        sink.save_suggestions(division, groups)
        log.info("suggestions_saved", division=division, count=len(groups))
        return len(groups)
    except Exception as e:
        log.warning("bulk_save_failed", division=division, count=len(groups), error=str(e))

    saved = 0
    for group in groups:
        try:
            sink.save_suggestion(division, group)
            saved += 1
        except Exception as e:
            log.error(
                "suggestion_save_failed",
                division=division,
                members=list(group.members),
                error=str(e),
            )
    log.info("suggestions_saved_individually", division=division, saved=saved, failed=len(groups) - saved)
    return saved


def record_validations(
    sink: SuggestionSink, division: str, results: list[ValidationResult]
) -> int:
    """One update per rule; a failed update does not stop the rest."""
    recorded = 0
    for result in results:
        try:
            sink.update_rule_validation(division, result.rule_id, result)
            recorded += 1
        except Exception as e:
            log.error("rule_validation_update_failed", rule_id=result.rule_id, error=str(e))
    return recorded


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonMergeStore:
    """File-backed NameSource and SuggestionSink.

    One JSON file per division code and kind, e.g. ``fp_merge_rules.json``.
    Writes go to a temporary file that then replaces the target.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path(self, division: str, kind: str) -> Path:
        return self.root / f"{division_code(division)}_{kind}.json"

    def _load(self, path: Path, key: str) -> list[dict[str, Any]]:
        if not path.exists():
            log.debug("store_file_not_found", path=str(path))
            return []
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return list(data.get(key, []))

    def _save(self, path: Path, key: str, records: list[dict[str, Any]]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump({key: records}, f, indent=2)
        os.replace(tmp, path)

    # --- names ---

    def get_all_names(self, division: str) -> list[str]:
        names = self._load(self.path(division, "names"), "names")
        cleaned = (str(n).strip() for n in names if n is not None)
        return list(dict.fromkeys(n for n in cleaned if n))

    def save_names(self, division: str, names: list[str]) -> None:
        self._save(self.path(division, "names"), "names", list(names))
        log.info("names_saved", division=division, count=len(names))

    # --- rules ---

    def get_rules(self, division: str) -> list[MergeRule]:
        return [rule_from_record(r) for r in self._load(self.path(division, "merge_rules"), "rules")]

    def get_active_rules(self, division: str) -> list[MergeRule]:
        return [r for r in self.get_rules(division) if r.active]

    def add_rule(self, division: str, canonical_name: str, members: list[str]) -> MergeRule:
        path = self.path(division, "merge_rules")
        records = self._load(path, "rules")
        next_id = max((int(r["id"]) for r in records), default=0) + 1
        rule = MergeRule(id=next_id, canonical_name=canonical_name, members=list(members))
        records.append(rule_to_record(rule))
        self._save(path, "rules", records)
        log.info("merge_rule_added", division=division, rule_id=next_id, members=len(members))
        return rule

    def update_rule_validation(
        self, division: str, rule_id: int | str, result: ValidationResult
    ) -> None:
        """Store status and notes on the rule; ``active`` is never touched."""
        path = self.path(division, "merge_rules")
        records = self._load(path, "rules")
        for record in records:
            if record["id"] == rule_id:
                notes = validation_to_record(result)
                record["validation_status"] = result.status
                record["validation_notes"] = {
                    k: notes[k] for k in ("found", "missing", "suggestions", "error")
                }
                record["last_validated_at"] = _now()
                break
        else:
            raise KeyError(f"merge rule {rule_id!r} not found for division {division!r}")
        self._save(path, "rules", records)

    # --- rejections ---

    def get_rejected_pairs(self, division: str) -> set[frozenset[str]]:
        records = self._load(self.path(division, "merge_rule_rejections"), "rejections")
        return {frozenset((r["name_a"].casefold(), r["name_b"].casefold())) for r in records}

    def add_rejection(self, division: str, name_a: str, name_b: str) -> None:
        path = self.path(division, "merge_rule_rejections")
        records = self._load(path, "rejections")
        key = frozenset((name_a.casefold(), name_b.casefold()))
        if any(frozenset((r["name_a"].casefold(), r["name_b"].casefold())) == key for r in records):
            return
        records.append({"name_a": name_a, "name_b": name_b, "rejected_at": _now()})
        self._save(path, "rejections", records)
        log.info("merge_rejection_added", division=division, name_a=name_a, name_b=name_b)

    # --- suggestions ---

    def get_suggestions(self, division: str) -> list[dict[str, Any]]:
        return self._load(self.path(division, "merge_rule_suggestions"), "suggestions")

    def save_suggestions(self, division: str, groups: list[MergeGroupCandidate]) -> None:
        path = self.path(division, "merge_rule_suggestions")
        records = self._load(path, "suggestions")
        for group in groups:
            self._upsert(records, group)
        self._save(path, "suggestions", records)

    def save_suggestion(self, division: str, group: MergeGroupCandidate) -> None:
        self.save_suggestions(division, [group])

    @staticmethod
    def _upsert(records: list[dict[str, Any]], group: MergeGroupCandidate) -> None:
        key = list(group.key)
        now = _now()
        record = group_to_record(group)
        record["key"] = key
        for existing in records:
            if existing.get("key") == key:
                record["created_at"] = existing.get("created_at", now)
                record["updated_at"] = now
                existing.clear()
                existing.update(record)
                return
        record["created_at"] = now
        record["updated_at"] = now
        records.append(record)
