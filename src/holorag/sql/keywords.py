"""Keyword extraction for schema filtering.

ERP-style schemas abbreviate aggressively ("vend", "depo", "fact"), so each
query word is expanded into suffix-stripped stems and prefix truncations:

  "vendedores" → vendedores, vende, vended, vendedor, vendedore, vendedo, vend
  "facturas"   → facturas, factur, factura, factu, fact

All output is accent-free and lowercase so it can be matched with ``in``
against names and descriptions normalised the same way.
"""

from __future__ import annotations

import re

from holorag.rag.lexical import strip_accents

MIN_STEM_LENGTH = 4

STOP_WORDS: frozenset[str] = frozenset(
    [
        # Spanish
        "el", "la", "los", "las", "un", "una", "unos", "unas",
        "de", "del", "en", "con", "por", "para", "al", "a",
        "y", "o", "que", "se", "es", "son", "hay", "fue",
        "como", "mas", "pero", "si", "no", "me", "te", "le",
        "lo", "su", "sus", "mi", "mis", "tu", "tus",
        "este", "esta", "estos", "estas", "ese", "esa",
        "cual", "cuales", "cuanto", "cuantos", "cuantas",
        "quiero", "saber", "decime", "mostrame", "dame",
        "tiene", "tienen", "tener", "hacer", "hizo",
        "todos", "todas", "todo", "toda", "cada", "otro",
        # English
        "the", "and", "for", "with", "from", "that", "this", "these", "those",
        "what", "which", "who", "how", "many", "much", "are", "was", "were",
        "show", "list", "give", "tell", "want", "know", "all", "each", "any",
        "have", "has", "had", "does", "did", "get", "about",
    ]
)

# Ordered: longer, more specific endings first.
SUFFIXES: tuple[str, ...] = (
    "iones", "cion", "dores", "doras", "ores", "oras",
    "eros", "eras", "ajes", "ados", "adas",
    "idos", "idas", "bles", "mente", "ando", "endo",
    "ies", "es", "os", "as",
    "or", "er", "ar", "ir", "al", "on", "a", "o", "s",
)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")


def normalize(text: str) -> str:
    """Strip accents and lowercase."""
    return strip_accents(text).lower()


def stems(word: str) -> list[str]:
    """Suffix-stripped stems and prefix truncations of *word*, longest-suffix first."""
    out: list[str] = []
    for suffix in SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) >= MIN_STEM_LENGTH:
            out.append(word[: -len(suffix)])

    if len(word) > 5:
        for length in range(len(word) - 1, MIN_STEM_LENGTH - 1, -1):
            out.append(word[:length])
    return out


def extract_keywords(message: str) -> list[str]:
    """Return de-duplicated search keywords for *message*, in discovery order."""
    words = [
        w for w in _NON_ALNUM_RE.sub(" ", normalize(message)).split()
        if len(w) > 2 and w not in STOP_WORDS
    ]

    keywords: dict[str, None] = {}
    for word in words:
        keywords.setdefault(word)
        for stem in stems(word):
            if len(stem) >= MIN_STEM_LENGTH:
                keywords.setdefault(stem)
    return list(keywords)
