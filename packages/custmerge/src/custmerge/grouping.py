"""Greedy anchor-based grouping of similar customer names."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from itertools import combinations

import structlog

from custmerge.config import MatchConfig
from custmerge.index import BlockingIndex
from custmerge.naming import suggest_merged_name
from custmerge.scoring import PairScorer, score_pair
from custmerge.types import MergeGroupCandidate, NormalizedName, PairDetail, ScanStats, SimilarityResult

log = structlog.get_logger()


def rejection_key(name_a: str, name_b: str) -> frozenset[str]:
    """Order- and case-insensitive key for a reviewer-rejected pair."""
    return frozenset((name_a.casefold(), name_b.casefold()))


class GroupBuilder:
    """Single greedy pass over names in input order.

    Each unassigned name anchors a group and absorbs later unassigned names
    whose score against the anchor reaches the threshold. The outcome depends
    on input order; it is not canonicalised.
    """

    def __init__(
        self,
        scorer: PairScorer,
        config: MatchConfig | None = None,
        index: BlockingIndex | None = None,
    ) -> None:
        self.scorer = scorer
        self.config = config or scorer.config
        self.config.validate()
        self.index = index or BlockingIndex(self.config.blocking)
        self._requested = 0
        self._deadline: float | None = None

    def build(
        self,
        names: list[str],
        rejected_pairs: set[frozenset[str]] | None = None,
        stats: ScanStats | None = None,
    ) -> tuple[list[MergeGroupCandidate], bool]:
        """Group names. Returns (groups ranked by confidence, truncated flag).

        ``names`` must be distinct and non-empty.
        """
        stats = stats if stats is not None else ScanStats()
        rejected = rejected_pairs or set()
        budget = self.config.budget
        self._requested = 0
        self._deadline = (
            time.monotonic() + budget.max_seconds if budget.max_seconds is not None else None
        )

        prepared = [self.scorer.prepare(n) for n in names]
        position = {n: i for i, n in enumerate(names)}

        blocking = self.index.is_active_for(len(names))
        stats.blocking_active = blocking
        if blocking:
            self.index.build(prepared)
            stats.block_count = self.index.block_count
            log.info(
                "blocking_index_built",
                names=len(names),
                blocks=self.index.block_count,
                prefix_length=self.config.blocking.prefix_length,
            )
            if self._can_prefetch():
                self._prefetch(prepared, rejected)

        threshold = self.config.thresholds.min_confidence
        max_size = self.config.grouping.max_group_size
        assigned: set[str] = set()
        groups: list[MergeGroupCandidate] = []
        truncated = False

        for i, anchor in enumerate(names):
            if anchor in assigned:
                continue
            assigned.add(anchor)
            members = [anchor]

            if blocking:
                later = sorted(
                    position[c] for c in self.index.candidate_pool(anchor) if position[c] > i
                )
                candidates = [names[p] for p in later]
            else:
                candidates = names[i + 1:]

            for other in candidates:
                if len(members) >= max_size:
                    break
                if other in assigned:
                    continue
                if rejection_key(anchor, other) in rejected:
                    stats.rejected_pairs_skipped += 1
                    continue
                if self._budget_exhausted():
                    truncated = True
                    break
                self._requested += 1
                if self.scorer.score(anchor, other).score >= threshold:
                    members.append(other)
                    assigned.add(other)

            if len(members) >= 2:
                group = self._make_group(members)
                groups.append(group)
                log.debug(
                    "group_formed",
                    anchor=anchor,
                    size=len(members),
                    confidence=round(group.confidence, 4),
                )
            if truncated:
                log.warning(
                    "scan_truncated",
                    processed_anchors=i + 1,
                    total=len(names),
                    pairs=self._requested,
                    max_pairs=budget.max_pairs,
                    max_seconds=budget.max_seconds,
                )
                break

        stats.comparisons = self.scorer.comparisons
        stats.cache_hits = self.scorer.cache_hits
        stats.truncated = truncated
        groups.sort(key=lambda g: g.confidence, reverse=True)
        return groups, truncated

    def _budget_exhausted(self) -> bool:
        max_pairs = self.config.budget.max_pairs
        if max_pairs is not None and self._requested >= max_pairs:
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def _make_group(self, members: list[str]) -> MergeGroupCandidate:
        details = [
            PairDetail(a, b, self.scorer.score(a, b)) for a, b in combinations(members, 2)
        ]
        if len(details) == 1:
            confidence = details[0].result.score
        else:
            confidence = sum(d.result.score for d in details) / len(details)
        return MergeGroupCandidate(
            members=tuple(members),
            confidence=max(0.0, min(1.0, confidence)),
            suggested_name=suggest_merged_name(members),
            match_details=tuple(details),
        )

    def _can_prefetch(self) -> bool:
        budget = self.config.budget
        return (
            self.config.blocking.max_workers > 1
            and self.config.cache_enabled
            # A budget is enforced on the lazy path only
            and budget.max_pairs is None
            and budget.max_seconds is None
        )

    def _prefetch(self, prepared: list[NormalizedName], rejected: set[frozenset[str]]) -> None:
        """Score every candidate pair block by block on a thread pool.

        Blocks are independent once the index is built; results are merged
        into the scan cache on this thread, so grouping afterwards sees exactly
        the scores the sequential path would compute.
        """
        by_name = {p.original: p for p in prepared}
        keys = self.index.keys()
        log.info("block_scoring_start", blocks=len(keys), workers=self.config.blocking.max_workers)

        def score_block(key: str) -> list[tuple[str, str, SimilarityResult]]:
            scored = []
            for a, b in self.index.candidate_pairs(key):
                if rejection_key(a, b) in rejected:
                    continue
                scored.append((a, b, score_pair(by_name[a], by_name[b], self.config)))
            return scored

        with ThreadPoolExecutor(max_workers=self.config.blocking.max_workers) as pool:
            future_to_key = {pool.submit(score_block, key): key for key in keys}
            for future in as_completed(future_to_key):
                key = future_to_key[future]
                try:
                    scored = future.result()
                except Exception:
                    # Pairs of this block fall back to lazy scoring
                    log.exception("block_scoring_failed", block=key)
                    continue
                for a, b, result in scored:
                    self.scorer.seed(a, b, result)

        log.info("block_scoring_done", comparisons=self.scorer.comparisons)
