"""
Repeat removal for raw speech-to-text output.

Recognisers tend to stutter ("the the the problem problem") and occasionally
emit a whole sentence twice.  :func:`clean_transcript` drops words that
repeat phrases already seen in the same sentence and then drops sentences
that are near copies of an earlier one.  Similarity is measured with
:func:`callscribe.similarity.text_similarity`.
"""

from __future__ import annotations

import re
from typing import List, Set

from .similarity import text_similarity

SIMILARITY_THRESHOLD = 0.8
MAX_PHRASE_WORDS = 5

# A trailing fragment without terminal punctuation is kept as its own sentence.
_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)")


def split_sentences(text: str) -> List[str]:
    """Split ``text`` after ``.``, ``!`` and ``?``, keeping the punctuation."""
    return [m.group(0).strip() for m in _SENTENCE_RE.finditer(text) if m.group(0).strip()]


def _is_repeat(phrase: str, used: Set[str]) -> bool:
    return any(text_similarity(phrase, seen) > SIMILARITY_THRESHOLD for seen in used)


def clean_sentence(sentence: str) -> str:
    """Remove words of ``sentence`` that repeat already accepted phrases.

    The first word is always kept.  For every following word, phrases of one
    to five words starting at it are compared with the phrases accepted at
    earlier positions; the word is dropped if any of them is too similar.
    Otherwise the word is kept and its phrases become accepted.
    """
    words = sentence.split()
    if not words:
        return sentence

    result = [words[0]]
    used = {words[0].lower()}
    for i in range(1, len(words)):
        phrases = [
            " ".join(words[i:i + length]).lower()
            for length in range(1, MAX_PHRASE_WORDS + 1)
            if i + length <= len(words)
        ]
        if any(_is_repeat(phrase, used) for phrase in phrases):
            continue
        used.update(phrases)
        result.append(words[i])
    return " ".join(result)


def clean_transcript(text: str) -> str:
    """Clean every sentence and drop sentences repeating an earlier one.

    Args:
        text: Raw transcript as returned by the speech-to-text service.

    Returns:
        The surviving sentences joined with single spaces.
    """
    cleaned_sentences: List[str] = []
    used: Set[str] = set()
    for sentence in split_sentences(text):
        cleaned = clean_sentence(sentence)
        lowered = cleaned.lower()
        if not cleaned or _is_repeat(lowered, used):
            continue
        cleaned_sentences.append(cleaned)
        used.add(lowered)
    return " ".join(cleaned_sentences).strip()
