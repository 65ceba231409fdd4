"""Bag-of-words similarity between free-text strings."""

from __future__ import annotations


def tokenize(text: str) -> set[str]:
    """Lower-case ``text`` and split it on whitespace into a set of words."""
    return set(text.lower().split())


def similarity(a: str | None, b: str | None) -> float:
    """Jaccard overlap of the word sets of ``a`` and ``b``.

    Exact token matches only: no stemming and no stop-word removal.

    Returns:
        A value in [0, 1]; 0 when either input is empty or absent.
    """
    if not a or not b:
        return 0.0

    words_a = tokenize(a)
    words_b = tokenize(b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)
