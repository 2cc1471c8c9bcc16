"""Legal suffix and brand descriptor handling for customer names."""

from __future__ import annotations

from custmerge.config import NormalizationConfig
from custmerge.errors import EmptyNameError
from custmerge.lexicon import Lexicon, default_lexicon


def strip_legal_suffix(name: str, lexicon: Lexicon | None = None) -> str:
    """Strip one trailing legal-entity suffix.

    Matches case-insensitively at the end of the name, tolerating trailing
    punctuation and a wrapping parenthesis:

        "Al Futtaim Trading LLC"       -> "Al Futtaim Trading"
        "Gulf Foods Co."               -> "Gulf Foods"
        "Ajmal Perfumes (L.L.C.)"      -> "Ajmal Perfumes"

    A name that is nothing but a suffix is returned unchanged (trimmed).
    """
    lexicon = lexicon or default_lexicon()
    stripped = name.strip()
    pattern = lexicon.suffix_pattern
    if pattern is None:
        return stripped
    candidate = pattern.sub("", stripped).strip()
    return candidate or stripped


def trim_brand_tokens(tokens: list[str], lexicon: Lexicon | None = None) -> list[str]:
    """Drop trailing descriptive words ("trading", "holdings", ...) but keep at least one token."""
    lexicon = lexicon or default_lexicon()
    core = list(tokens)
    while len(core) > 1 and lexicon.is_brand_stopword(core[-1]):
        core.pop()
    return core


def core_brand(
    name: str,
    lexicon: Lexicon | None = None,
    config: NormalizationConfig | None = None,
) -> str:
    """Core brand of a raw name: suffix stripped, normalized, descriptors trimmed.

    Returns "" for names with no usable content.
    """
    # Deferred: normalize imports this module
    from custmerge.normalize import normalize_name

    lexicon = lexicon or default_lexicon()
    try:
        normalized = normalize_name(strip_legal_suffix(name, lexicon), lexicon, config)
    except EmptyNameError:
        return ""
    return " ".join(trim_brand_tokens(normalized.split(), lexicon))
