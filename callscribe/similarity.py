"""Word-overlap similarity used by the transcript cleaner."""

from __future__ import annotations


def text_similarity(a: str, b: str) -> float:
    """Return the bag-of-words overlap of ``a`` and ``b``.

    Both strings are lower-cased and split on whitespace; the score is the
    size of the shared word set divided by the larger word set.  Word order
    is ignored.  Returns ``0.0`` when either side has no words.
    """
    words1 = set(a.lower().split())
    words2 = set(b.lower().split())
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / max(len(words1), len(words2))
