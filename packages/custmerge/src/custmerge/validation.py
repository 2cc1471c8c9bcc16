"""Re-check accepted merge rules against a fresh name list."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

import structlog

from custmerge.config import MatchConfig
from custmerge.errors import EmptyNameError
from custmerge.lexicon import Lexicon
from custmerge.scoring import PairScorer
from custmerge.types import (
    MergeRule,
    ReplacementCandidate,
    ReplacementSuggestion,
    ValidationResult,
    ValidationStatus,
)

log = structlog.get_logger()

MAX_ALTERNATIVES = 2


def partition_members(members: Sequence[str], fresh: set[str]) -> tuple[list[str], list[str]]:
    """Split rule members into (found, missing) by exact string match, keeping order."""
    found = [m for m in members if m in fresh]
    missing = [m for m in members if m not in fresh]
    return found, missing


def rule_status(found: Sequence[str], missing: Sequence[str]) -> ValidationStatus:
    if not missing:
        return "VALID"
    if not found:
        return "ORPHANED"
    return "NEEDS_UPDATE"


class RuleValidator:
    """Validates active rules; one rule's failure never stops the others."""

    def __init__(
        self,
        config: MatchConfig | None = None,
        lexicon: Lexicon | None = None,
        scorer: PairScorer | None = None,
    ) -> None:
        self.config = config or MatchConfig()
        self.config.validate()
        self.lexicon = lexicon
        self.scorer = scorer

    def validate_rules(
        self, rules: Iterable[MergeRule], fresh_names: Sequence[str]
    ) -> list[ValidationResult]:
        scorer = self.scorer or PairScorer(self.config, self.lexicon)
        fresh_set = set(fresh_names)
        active = [r for r in rules if r.active]
        log.info("validation_start", rules=len(active), fresh_names=len(fresh_set))

        results: list[ValidationResult] = []
        for rule in active:
            try:
                result = self._validate(rule, fresh_names, fresh_set, scorer)
            except Exception as e:
                log.exception("rule_validation_failed", rule_id=rule.id, rule_name=rule.canonical_name)
                result = self._failed(rule, fresh_set, e)
            results.append(result)

        summary = Counter(r.status for r in results)
        log.info(
            "validation_done",
            total=len(results),
            valid=summary["VALID"],
            needs_update=summary["NEEDS_UPDATE"],
            orphaned=summary["ORPHANED"],
            errors=sum(1 for r in results if r.error),
        )
        return results

    def validate_rule(self, rule: MergeRule, fresh_names: Sequence[str]) -> ValidationResult:
        scorer = self.scorer or PairScorer(self.config, self.lexicon)
        return self._validate(rule, fresh_names, set(fresh_names), scorer)

    def _validate(
        self,
        rule: MergeRule,
        fresh_names: Sequence[str],
        fresh_set: set[str],
        scorer: PairScorer,
    ) -> ValidationResult:
        found, missing = partition_members(rule.members, fresh_set)
        status = rule_status(found, missing)
        suggestions: list[ReplacementSuggestion] = []
        if missing and fresh_set:
            suggestions = self.find_replacements(rule, missing, fresh_names, scorer)

        log.debug(
            "rule_validated",
            rule_id=rule.id,
            status=status,
            found=len(found),
            missing=len(missing),
            suggestions=len(suggestions),
        )
        return ValidationResult(
            rule_id=rule.id,
            rule_name=rule.canonical_name,
            status=status,
            found=found,
            missing=missing,
            suggestions=suggestions,
        )

    def find_replacements(
        self,
        rule: MergeRule,
        missing: Sequence[str],
        fresh_names: Sequence[str],
        scorer: PairScorer,
    ) -> list[ReplacementSuggestion]:
        """Best fresh-list stand-in for each missing member, if one clears the floor."""
        floor = self.config.thresholds.replacement_floor
        own = set(rule.members)
        pool = [n for n in dict.fromkeys(fresh_names) if n and n not in own]

        suggestions: list[ReplacementSuggestion] = []
        for missing_name in missing:
            try:
                scorer.prepare(missing_name)
            except EmptyNameError:
                log.warning("missing_member_unscorable", rule_id=rule.id, name=missing_name)
                continue

            matches: list[ReplacementCandidate] = []
            for candidate in pool:
                try:
                    score = scorer.score(missing_name, candidate).score
                except EmptyNameError:
                    continue
                if score >= floor:
                    matches.append(ReplacementCandidate(candidate, score))

            if not matches:
                continue
            # Stable: equal scores keep fresh-list order
            matches.sort(key=lambda c: c.confidence, reverse=True)
            best, rest = matches[0], matches[1:1 + MAX_ALTERNATIVES]
            suggestions.append(ReplacementSuggestion(
                missing_name=missing_name,
                best_replacement=best.name,
                confidence=best.confidence,
                alternatives=rest,
            ))
        return suggestions

    def _failed(self, rule: MergeRule, fresh_set: set[str], error: Exception) -> ValidationResult:
        try:
            found, missing = partition_members(list(rule.members or []), fresh_set)
        except Exception:
            # Malformed members (unhashable, non-iterable) cannot be partitioned
            found, missing = [], []
        return ValidationResult(
            rule_id=rule.id,
            rule_name=rule.canonical_name,
            status="ERROR",
            found=found,
            missing=missing,
            error=f"{type(error).__name__}: {error}",
        )
