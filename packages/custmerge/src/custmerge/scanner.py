"""Main orchestration: admit names, group, filter, persist, validate."""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence

import structlog

from custmerge.config import MatchConfig
from custmerge.errors import EmptyNameError
from custmerge.grouping import GroupBuilder
from custmerge.index import BlockingIndex
from custmerge.lexicon import Lexicon, default_lexicon
from custmerge.scoring import PairScorer
from custmerge.store import NameSource, SuggestionSink, publish_suggestions, record_validations
from custmerge.types import MergeGroupCandidate, MergeRule, ScanResult, ScanStats, ValidationResult
from custmerge.validation import RuleValidator

log = structlog.get_logger()


class MergeScanner:
    """Duplicate-name scanner.

    Every call to ``scan`` builds a fresh ``PairScorer``; its cache lives
    until the next scan or an explicit ``clear_cache``.
    """

    def __init__(self, config: MatchConfig | None = None, lexicon: Lexicon | None = None) -> None:
        self.config = config or MatchConfig()
        self.config.validate()
        self.lexicon = lexicon or default_lexicon()
        self.scorer: PairScorer | None = None
        self.stats = ScanStats()

    def clear_cache(self) -> None:
        if self.scorer is not None:
            self.scorer.clear()

    def scan(
        self,
        names: Iterable[str | None],
        active_rules: Sequence[MergeRule] = (),
        rejected_pairs: set[frozenset[str]] | None = None,
    ) -> ScanResult:
        start = time.monotonic()
        self.stats = ScanStats()
        self.scorer = PairScorer(self.config, self.lexicon)

        admitted = self._admit(names)
        self.stats.name_count = len(admitted)
        log.info(
            "scan_start",
            names=len(admitted),
            rejected_names=self.stats.rejected_names,
            duplicate_names=self.stats.duplicate_names,
            active_rules=len(active_rules),
            rejected_pairs=len(rejected_pairs or ()),
        )

        groups: list[MergeGroupCandidate] = []
        truncated = False
        if len(admitted) >= 2:
            builder = GroupBuilder(self.scorer, self.config, BlockingIndex(self.config.blocking))
            groups, truncated = builder.build(admitted, rejected_pairs, self.stats)
            groups = self._drop_low_confidence(groups)
            groups = self._drop_covered(groups, active_rules)

        self.stats.groups = len(groups)
        self.stats.elapsed_seconds = time.monotonic() - start
        log.info(
            "scan_done",
            groups=len(groups),
            comparisons=self.stats.comparisons,
            cache_hits=self.stats.cache_hits,
            blocking=self.stats.blocking_active,
            blocks=self.stats.block_count,
            filtered_existing=self.stats.filtered_existing,
            filtered_low_confidence=self.stats.filtered_low_confidence,
            truncated=truncated,
            elapsed=round(self.stats.elapsed_seconds, 3),
        )
        return ScanResult(groups=groups, stats=self.stats, truncated=truncated)

    def _admit(self, names: Iterable[str | None]) -> list[str]:
        """Drop empty and repeated names; scoring only ever sees valid input."""
        admitted: list[str] = []
        seen: set[str] = set()
        for name in names:
            if name in seen:
                self.stats.duplicate_names += 1
                continue
            try:
                self.scorer.prepare(name)
            except EmptyNameError as e:
                log.warning("name_rejected", code=e.code, name=name)
                self.stats.rejected_names += 1
                continue
            seen.add(name)
            admitted.append(name)
        return admitted

    def _drop_low_confidence(self, groups: list[MergeGroupCandidate]) -> list[MergeGroupCandidate]:
        threshold = self.config.thresholds.min_confidence
        kept = [g for g in groups if g.confidence >= threshold]
        self.stats.filtered_low_confidence = len(groups) - len(kept)
        return kept

    def _drop_covered(
        self, groups: list[MergeGroupCandidate], active_rules: Sequence[MergeRule]
    ) -> list[MergeGroupCandidate]:
        """Remove groups that share a member with an active rule (case-insensitive)."""
        covered = {
            m.casefold() for rule in active_rules if rule.active for m in rule.members if m
        }
        if not covered:
            return groups
        kept = [g for g in groups if not any(m.casefold() in covered for m in g.members)]
        self.stats.filtered_existing = len(groups) - len(kept)
        if self.stats.filtered_existing:
            log.info("groups_filtered_existing_rules", removed=self.stats.filtered_existing)
        return kept


class MergeService:
    """Division-level workflow over a name source and a suggestion sink.

    The in-memory scan and validation finish before anything is written.
    """

    def __init__(
        self,
        source: NameSource,
        sink: SuggestionSink,
        config: MatchConfig | None = None,
        lexicon: Lexicon | None = None,
    ) -> None:
        self.source = source
        self.sink = sink
        self.config = config or MatchConfig()
        self.config.validate()
        self.lexicon = lexicon or default_lexicon()

    def scan_division(self, division: str, persist: bool = True) -> ScanResult:
        names = self.source.get_all_names(division)
        rules = self.source.get_active_rules(division)
        rejected = self.source.get_rejected_pairs(division)

        result = MergeScanner(self.config, self.lexicon).scan(names, rules, rejected)
        if persist:
            publish_suggestions(self.sink, division, result.groups)
        return result

    def validate_division(self, division: str, persist: bool = True) -> list[ValidationResult]:
        names = self.source.get_all_names(division)
        rules = self.source.get_active_rules(division)

        results = RuleValidator(self.config, self.lexicon).validate_rules(rules, names)
        if persist:
            record_validations(self.sink, division, results)
        return results
