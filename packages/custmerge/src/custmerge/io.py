"""CSV/JSONL/XLSX input and output for names, rules and scan results."""

from __future__ import annotations

import csv
import json
from datetime import datetime
from pathlib import Path

import pandas as pd

from custmerge.types import MergeGroupCandidate, MergeRule, ValidationResult


def read_names(path: str | Path, name_column: str = "name") -> list[str]:
    """Read customer names from CSV, JSONL, XLSX or plain text (one per line).

    Blank names are skipped and surrounding whitespace is trimmed; duplicates
    are kept (the scanner counts and drops them).
    """
    path = Path(path)

    if path.suffix == ".jsonl":
        return _read_jsonl(path, name_column)
    if path.suffix in (".xlsx", ".xls"):
        return _read_excel(path, name_column)
    if path.suffix == ".txt":
        with path.open(encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip()]
    return _read_csv(path, name_column)


def _read_csv(path: Path, name_column: str) -> list[str]:
    names: list[str] = []
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            name = (row.get(name_column) or "").strip()
            if name:
                names.append(name)
    return names


def _read_jsonl(path: Path, name_column: str) -> list[str]:
    names: list[str] = []
    with path.open(encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            row = json.loads(line)
            name = (row.get(name_column) or "").strip()
            if name:
                names.append(name)
    return names


def _read_excel(path: Path, name_column: str) -> list[str]:
    df = pd.read_excel(path)
    return [str(v).strip() for v in df[name_column].dropna().tolist() if str(v).strip()]


def rule_from_record(record: dict) -> MergeRule:
    validated = record.get("last_validated_at")
    return MergeRule(
        id=record["id"],
        canonical_name=record["canonical_name"],
        members=list(record.get("members", [])),
        active=bool(record.get("active", True)),
        validation_status=record.get("validation_status"),
        validation_notes=record.get("validation_notes"),
        last_validated_at=datetime.fromisoformat(validated) if validated else None,
    )


def rule_to_record(rule: MergeRule) -> dict:
    return {
        "id": rule.id,
        "canonical_name": rule.canonical_name,
        "members": list(rule.members),
        "active": rule.active,
        "validation_status": rule.validation_status,
        "validation_notes": rule.validation_notes,
        "last_validated_at": rule.last_validated_at.isoformat() if rule.last_validated_at else None,
    }


def read_rules(path: str | Path) -> list[MergeRule]:
    """Read merge rules from a JSON file: either a list or ``{"rules": [...]}``."""
    with Path(path).open(encoding="utf-8") as f:
        data = json.load(f)
    records = data.get("rules", []) if isinstance(data, dict) else data
    return [rule_from_record(r) for r in records]


def read_rejections(path: str | Path) -> set[frozenset[str]]:
    """Read reviewer-rejected pairs: a list of ``[name_a, name_b]`` or ``{"name_a", "name_b"}``."""
    with Path(path).open(encoding="utf-8") as f:
        data = json.load(f)
    records = data.get("rejections", []) if isinstance(data, dict) else data
    pairs: set[frozenset[str]] = set()
    for r in records:
        a, b = (r["name_a"], r["name_b"]) if isinstance(r, dict) else r
        pairs.add(frozenset((a.casefold(), b.casefold())))
    return pairs


def group_to_record(group: MergeGroupCandidate) -> dict:
    return {
        "suggested_merge_name": group.suggested_name,
        "customer_group": list(group.members),
        "confidence_score": round(group.confidence, 4),
        "matching_algorithm": "MULTI_SIGNAL",
        "match_details": [
            {"pair": [d.name_a, d.name_b], **d.result.breakdown()}
            for d in group.match_details
        ],
    }


def validation_to_record(result: ValidationResult) -> dict:
    return {
        "rule_id": result.rule_id,
        "rule_name": result.rule_name,
        "status": result.status,
        "found": result.found,
        "missing": result.missing,
        "suggestions": [
            {
                "missing_name": s.missing_name,
                "best_replacement": s.best_replacement,
                "confidence": round(s.confidence, 4),
                "alternatives": [
                    {"name": a.name, "confidence": round(a.confidence, 4)} for a in s.alternatives
                ],
            }
            for s in result.suggestions
        ],
        "error": result.error,
    }


def groups_frame(groups: list[MergeGroupCandidate]) -> pd.DataFrame:
    """One row per group, members joined with ``|``."""
    rows = [
        {
            "suggested_name": g.suggested_name,
            "confidence": round(g.confidence, 4),
            "size": len(g.members),
            "members": " | ".join(g.members),
        }
        for g in groups
    ]
    return pd.DataFrame(rows, columns=["suggested_name", "confidence", "size", "members"])


def validation_frame(results: list[ValidationResult]) -> pd.DataFrame:
    rows = []
    for r in results:
        rows.append({
            "rule_id": r.rule_id,
            "rule_name": r.rule_name,
            "status": r.status,
            "found": " | ".join(r.found),
            "missing": " | ".join(r.missing),
            "replacements": " | ".join(
                f"{s.missing_name} -> {s.best_replacement} ({s.confidence:.2f})" for s in r.suggestions
            ),
            "error": r.error or "",
        })
    return pd.DataFrame(
        rows,
        columns=["rule_id", "rule_name", "status", "found", "missing", "replacements", "error"],
    )


def write_groups(groups: list[MergeGroupCandidate], path: str | Path) -> None:
    """Write merge groups to JSONL (full detail), XLSX or CSV."""
    path = Path(path)

    if path.suffix == ".jsonl":
        _write_jsonl([group_to_record(g) for g in groups], path)
    elif path.suffix == ".xlsx":
        groups_frame(groups).to_excel(path, index=False)
    else:
        groups_frame(groups).to_csv(path, index=False)


def write_validation(results: list[ValidationResult], path: str | Path) -> None:
    """Write validation results to JSONL (full detail), XLSX or CSV."""
    path = Path(path)

    if path.suffix == ".jsonl":
        _write_jsonl([validation_to_record(r) for r in results], path)
    elif path.suffix == ".xlsx":
        validation_frame(results).to_excel(path, index=False)
    else:
        validation_frame(results).to_csv(path, index=False)


def _write_jsonl(records: list[dict], path: Path) -> None:
    with path.open("w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record) + "\n")
