"""Customer name normalization pipeline."""

from __future__ import annotations

import re
import unicodedata

from custmerge.config import NormalizationConfig
from custmerge.designators import strip_legal_suffix, trim_brand_tokens
from custmerge.errors import EmptyNameError
from custmerge.lexicon import Lexicon, default_lexicon
from custmerge.types import NormalizedName

_NON_ALNUM = re.compile(r"[^\w\s]|_")

_NUMERIC = re.compile(
    r"\b(?:\d+|one|two|three|four|five|six|seven|eight|nine|ten"
    r"|first|second|third|branch)\b|\bbr\.",
    re.IGNORECASE,
)

# Applied in order to the case-folded name when address noise stripping is on
_ADDRESS_NOISE: list[re.Pattern[str]] = [
    re.compile(r"\b(?:po|p\.o\.?)\s*box[:\s]*\d+"),
    re.compile(r"\bpobox\s*\d+"),
    re.compile(r"\b(?:tel|phone|mob|mobile|fax)[:\s]*[\d\s\-+()]+"),
    re.compile(r"\S+@\S+\.\S+"),
    re.compile(r"\b(?:shop|office|unit|suite|room)\s*(?:no\.?|number|#)?\s*:?\s*\d+"),
    re.compile(r"\bstore\s*(?:no\.?|number|#)\s*:?\s*\d+"),
    re.compile(r"\b(?:building|floor|level|block)\s*:?\s*\d+"),
    re.compile(r"\b(?:street|st\.?)\s*\d+"),
    re.compile(r"\b(?:no\.?|number)\s*:?\s*\d+"),
    re.compile(r"#\s*\d+"),
    re.compile(r"\b\d{3,}\b"),
]


def fold_diacritics(text: str) -> str:
    """Drop combining marks: 'Café' -> 'Cafe'."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def strip_address_noise(text: str) -> str:
    """Remove PO boxes, shop/office numbers, phones and e-mails from a case-folded name."""
    cleaned = text
    for pattern in _ADDRESS_NOISE:
        cleaned = pattern.sub(" ", cleaned)
    cleaned = re.sub(r"[,;]+", " ", cleaned).strip()
    # Everything was noise: keep the input rather than lose the name
    return cleaned if _NON_ALNUM.sub(" ", cleaned).strip() else text


def normalize_name(
    name: str | None,
    lexicon: Lexicon | None = None,
    config: NormalizationConfig | None = None,
) -> str:
    """Canonicalize a raw customer name.

    Case-fold, replace punctuation with spaces, collapse whitespace, expand
    abbreviations token by token, collapse whitespace again.

    Raises:
        EmptyNameError: if the name is empty, whitespace, or has no
            alphanumeric content.
    """
    if name is None or not str(name).strip():
        raise EmptyNameError(name)
    lexicon = lexicon or default_lexicon()
    config = config or NormalizationConfig()

    s = fold_diacritics(str(name)).casefold()
    if config.strip_address_noise:
        s = strip_address_noise(s)

    s = _NON_ALNUM.sub(" ", s)
    tokens = s.split()

    # Expansions may introduce spaces ("auh" -> "abu dhabi"), so re-split
    tokens = " ".join(lexicon.expand(t) for t in tokens).split()

    if config.strip_locations and lexicon.location_pattern is not None:
        remaining = lexicon.location_pattern.sub(" ", " ".join(tokens)).split()
        if remaining:
            tokens = remaining

    if not tokens:
        raise EmptyNameError(name)
    return " ".join(tokens)


def extract_numeric_tokens(name: str) -> list[str]:
    """Number-like tokens in order of appearance; 'br.' is read as 'branch'."""
    tokens: list[str] = []
    for match in _NUMERIC.finditer(name):
        token = match.group(0).lower()
        tokens.append("branch" if token == "br." else token)
    return tokens


def prepare_name(
    name: str,
    lexicon: Lexicon | None = None,
    config: NormalizationConfig | None = None,
) -> NormalizedName:
    """Compute every derived form of a raw name used by the scorer."""
    lexicon = lexicon or default_lexicon()
    normalized = normalize_name(name, lexicon, config)

    without_suffix = strip_legal_suffix(name, lexicon)
    try:
        suffix_stripped = normalize_name(without_suffix, lexicon, config)
    except EmptyNameError:
        suffix_stripped = normalized

    core_tokens = trim_brand_tokens(suffix_stripped.split(), lexicon)

    return NormalizedName(
        original=name,
        normalized=normalized,
        tokens=normalized.split(),
        without_suffix=without_suffix,
        suffix_stripped=suffix_stripped,
        core_brand=" ".join(core_tokens),
        numeric_tokens=extract_numeric_tokens(name),
    )
