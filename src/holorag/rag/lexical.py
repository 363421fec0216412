"""Keyword-overlap scoring used where no embeddings are available.

score = Σ over (query token, candidate token) pairs of
          2  exact match
          1  one token contains the other
        / number of query tokens

A candidate is relevant when its normalised score is at least 1.0, i.e. on
average every query token found one exact match or two partial ones.
"""

from __future__ import annotations

import re
import unicodedata

MIN_RELEVANT_SCORE = 1.0

# \w is Unicode-aware, so accented Latin letters (á, ñ, ü …) survive.
_PUNCT_RE = re.compile(r"[^\w\s]")
_MIN_TOKEN_LEN = 3


def tokenize(text: str) -> list[str]:
    """Lowercase, blank out punctuation, split on whitespace, drop tokens ≤ 2 chars."""
    cleaned = _PUNCT_RE.sub(" ", text.lower())
    return [t for t in cleaned.split() if len(t) >= _MIN_TOKEN_LEN]


def score(query_tokens: list[str], candidate_tokens: list[str]) -> float:
    """Return the normalised keyword-overlap score of a candidate against a query."""
    if not query_tokens:
        return 0.0

    total = 0
    for qt in query_tokens:
        for ct in candidate_tokens:
            if ct == qt:
                total += 2
            elif qt in ct or ct in qt:
                total += 1
    return total / len(query_tokens)


def is_relevant(value: float) -> bool:
    return value >= MIN_RELEVANT_SCORE


def strip_accents(text: str) -> str:
    """Drop combining marks after NFD decomposition ("depósito" → "deposito")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))
