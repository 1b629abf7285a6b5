from __future__ import annotations

"""
Lexical overlap scoring shared by every evidence linker.

Design intent:
- Keep similarity cheap, deterministic, and explainable to a reviewer.
- Ignore case and punctuation so formatting drift never changes a verdict.
"""

import re

SIGNIFICANT_WORD_MIN_CHARS = 4

# Anything that is not a Unicode letter, digit, or whitespace.
_NON_WORD_RE = re.compile(r"[^\w\s]|_")


def tokenize(text: str) -> list[str]:
    lowered = str(text or "").lower()
    return _NON_WORD_RE.sub(" ", lowered).split()


def significant_words(text: str, *, min_chars: int = SIGNIFICANT_WORD_MIN_CHARS) -> list[str]:
    return [word for word in tokenize(text) if len(word) >= min_chars]


def score_overlap(a: str, b: str) -> int:
    """
    Count significant words of `a` that also occur anywhere in `b`.

    Repeated words in `a` count once per occurrence; `b` is treated as a set.
    """
    vocabulary = set(tokenize(b))
    return sum(1 for word in significant_words(a) if word in vocabulary)
