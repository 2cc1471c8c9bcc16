"""Lookup tables for name normalization: abbreviations, legal suffixes,
brand stop-words and location keywords.

Tables are loaded from the package ``data/`` directory (or ``CUSTMERGE_DATA``)
into an immutable ``Lexicon`` that is passed explicitly to the normalizer and
reducer, so tests can substitute their own fixtures.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from functools import cached_property, lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

DATA_DIR = Path(os.environ.get("CUSTMERGE_DATA") or Path(__file__).resolve().parent / "data")


def _load_word_list(data_dir: Path, filename: str) -> tuple[str, ...]:
    path = data_dir / filename
    if not path.exists():
        return ()
    words: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        word = line.strip().lower()
        if word and not word.startswith("#") and word not in words:
            words.append(word)
    return tuple(words)


def _load_abbreviations(data_dir: Path) -> dict[str, str]:
    path = data_dir / "abbreviations.json"
    if not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    return {str(k).lower(): str(v).lower() for k, v in data.items()}


@dataclass(frozen=True)
class Lexicon:
    abbreviations: Mapping[str, str] = field(default_factory=dict)
    legal_suffixes: tuple[str, ...] = ()
    brand_stopwords: frozenset[str] = frozenset()
    locations: tuple[str, ...] = ()

    def expand(self, token: str) -> str:
        return self.abbreviations.get(token, token)

    def is_brand_stopword(self, token: str) -> bool:
        return token in self.brand_stopwords

    @cached_property
    def suffix_pattern(self) -> re.Pattern[str] | None:
        """Regex matching one trailing legal suffix, e.g. ' LLC', ', Ltd.', ' (L.L.C.)'."""
        if not self.legal_suffixes:
            return None
        # Longest first so "l.l.c." wins over "llc" and "co." over "co"
        alternatives = sorted(self.legal_suffixes, key=len, reverse=True)
        body = "|".join(re.escape(s) for s in alternatives)
        return re.compile(rf"[\s,(\-]+(?:{body})[\s.,)]*$", re.IGNORECASE)

    @cached_property
    def location_pattern(self) -> re.Pattern[str] | None:
        if not self.locations:
            return None
        alternatives = sorted(self.locations, key=len, reverse=True)
        body = "|".join(re.escape(s) for s in alternatives)
        return re.compile(rf"\b(?:{body})\b")


def load_lexicon(data_dir: str | Path | None = None) -> Lexicon:
    """Load all lookup tables from a data directory."""
    data_dir = Path(data_dir) if data_dir is not None else DATA_DIR
    return Lexicon(
        abbreviations=MappingProxyType(_load_abbreviations(data_dir)),
        legal_suffixes=_load_word_list(data_dir, "legal_suffixes.txt"),
        brand_stopwords=frozenset(_load_word_list(data_dir, "brand_stopwords.txt")),
        locations=_load_word_list(data_dir, "locations.txt"),
    )


@lru_cache(maxsize=1)
def default_lexicon() -> Lexicon:
    """The packaged lexicon, loaded once (it is immutable)."""
    return load_lexicon()
