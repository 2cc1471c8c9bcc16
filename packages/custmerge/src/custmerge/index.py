"""Prefix blocking index bounding pairwise comparisons on large name lists."""

from __future__ import annotations

from bisect import bisect_left
from collections import defaultdict

from custmerge.config import BlockingConfig
from custmerge.types import NormalizedName


class BlockingIndex:
    """Maps the first ``prefix_length`` characters of each normalized name to
    the raw names sharing that prefix (input order preserved).

    A block is compared together with its lexicographic neighbours, so names
    whose prefixes are more than one sorted block apart are never compared.
    A leading-character typo can therefore hide a true duplicate; that is the
    price of near-linear comparison counts.
    """

    def __init__(self, config: BlockingConfig | None = None) -> None:
        self.config = config or BlockingConfig()
        self._blocks: dict[str, list[str]] = defaultdict(list)
        self._key_of: dict[str, str] = {}
        self._sorted_keys: list[str] = []
        self._pools: dict[str, frozenset[str]] = {}

    def is_active_for(self, name_count: int) -> bool:
        return self.config.enabled and name_count > self.config.activation_threshold

    def blocking_key(self, name: NormalizedName) -> str:
        return name.normalized[: self.config.prefix_length]

    def build(self, names: list[NormalizedName]) -> None:
        """Build the index from prepared names (input order is kept within blocks)."""
        self._blocks.clear()
        self._key_of.clear()
        self._pools.clear()
        for name in names:
            key = self.blocking_key(name)
            self._blocks[key].append(name.original)
            self._key_of[name.original] = key
        self._sorted_keys = sorted(self._blocks)

    @property
    def block_count(self) -> int:
        return len(self._blocks)

    def keys(self) -> list[str]:
        return list(self._sorted_keys)

    def block(self, key: str) -> list[str]:
        return list(self._blocks.get(key, []))

    def key_for(self, raw_name: str) -> str:
        return self._key_of[raw_name]

    def neighbour_keys(self, key: str) -> list[str]:
        """The key itself plus its previous and next keys in sort order."""
        pos = bisect_left(self._sorted_keys, key)
        if pos >= len(self._sorted_keys) or self._sorted_keys[pos] != key:
            return []
        return self._sorted_keys[max(0, pos - 1): pos + 2]

    def candidate_pool(self, raw_name: str) -> frozenset[str]:
        """All names comparable with ``raw_name``: its block unioned with the adjacent blocks."""
        key = self._key_of[raw_name]
        pool = self._pools.get(key)
        if pool is None:
            members: set[str] = set()
            for k in self.neighbour_keys(key):
                members.update(self._blocks[k])
            pool = frozenset(members)
            self._pools[key] = pool
        return pool

    def candidate_pairs(self, key: str) -> list[tuple[str, str]]:
        """Pairs owned by one block: each of its names against every later-sorted pool member.

        Across all blocks every comparable pair appears exactly once, so
        blocks can be scored independently.
        """
        own = self._blocks.get(key, [])
        pairs: list[tuple[str, str]] = []
        for i, a in enumerate(own):
            for b in own[i + 1:]:
                pairs.append((a, b))
        pos = bisect_left(self._sorted_keys, key)
        if pos + 1 < len(self._sorted_keys):
            for b in self._blocks[self._sorted_keys[pos + 1]]:
                for a in own:
                    pairs.append((a, b))
        return pairs
