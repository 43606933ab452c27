"""Text normalization shared by reconciliation and the lookup index.

Both functions are pure; every normalized or slug key stored anywhere in the
system is derived through them.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Final

_WORD_JOINERS: Final[frozenset[str]] = frozenset("-‐‑‒–—'’ʼ`")
_SLUG_SEPARATOR_RE: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9]+")


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return unicodedata.normalize("NFKC", stripped)


def normalize_text(value: str | None) -> str | None:
    """Matching key for a name: accent-free, case-folded, punctuation-free.

    Hyphens and apostrophes separate words (``Saint-Étienne`` and
    ``saint etienne`` share a key); all other punctuation is dropped. Returns
    ``None`` when nothing matchable remains.
    """

    if value is None:
        return None
    text = strip_diacritics(value).casefold()
    chars: list[str] = []
    for ch in text:
        if ch in _WORD_JOINERS:
            chars.append(" ")
        elif not unicodedata.category(ch).startswith("P"):
            chars.append(ch)
    text = " ".join("".join(chars).split())
    return text or None


def to_slug(text: str) -> str:
    """URL-segment form: ``[a-z0-9]`` runs joined by single hyphens.

    Idempotent; characters without an ASCII decomposition are dropped.
    """

    folded = strip_diacritics(text).casefold()
    # casefold can reintroduce decomposable characters
    folded = strip_diacritics(folded)
    return _SLUG_SEPARATOR_RE.sub("-", folded).strip("-")
