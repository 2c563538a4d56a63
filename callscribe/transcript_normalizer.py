"""
Lexical normalisation of cleaned transcripts.

Calls are transcribed as Ukrainian but speakers mix in Russian words.  The
normaliser swaps the common ones for their Ukrainian equivalents (keeping the
original casing) and then tidies whitespace, punctuation and immediately
repeated words.  The pass is idempotent: running it twice gives the same text
as running it once, which is why no replacement produces a word that is
itself a key of the table.
"""

from __future__ import annotations

import re
from typing import Dict

COMMON_REPLACEMENTS: Dict[str, str] = {
    "да": "так",
    "нет": "ні",
    "щас": "зараз",
    "сейчас": "зараз",
    "пока": "поки",
    "спасибо": "дякую",
    "пожалуйста": "будь ласка",
    "конечно": "звичайно",
    "тоже": "також",
    "вообще": "взагалі",
    "короче": "коротше",
    "ладно": "гаразд",
    "хорошо": "добре",
    "всё": "все",
    "что": "що",
    "если": "якщо",
    "только": "тільки",
}

_REPLACEMENT_RES = [
    (re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE), replacement)
    for word, replacement in COMMON_REPLACEMENTS.items()
]

_WHITESPACE_RE = re.compile(r"\s+")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([.,!?])")
_REPEATED_QUOTES_RE = re.compile(r'"+')
_REPEATED_PUNCT_RE = re.compile(r"([.,!?])\1+")
_MISSING_SPACE_RE = re.compile(r"([.,!?])([^\W\d_])")
_REPEATED_WORD_RE = re.compile(r"\b(\w+)(\s+\1\b)+", re.IGNORECASE)


def preserve_case(original: str, replacement: str) -> str:
    """Give ``replacement`` the casing pattern of ``original``."""
    if original == original.lower():
        return replacement
    if original == original.upper():
        return replacement.upper()
    if original[0] == original[0].upper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def normalize_transcript(text: str) -> str:
    normalized = text
    for pattern, replacement in _REPLACEMENT_RES:
        normalized = pattern.sub(lambda m, r=replacement: preserve_case(m.group(0), r), normalized)

    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = _SPACE_BEFORE_PUNCT_RE.sub(r"\1", normalized)
    normalized = _REPEATED_QUOTES_RE.sub('"', normalized)
    normalized = _REPEATED_PUNCT_RE.sub(r"\1", normalized)
    normalized = _MISSING_SPACE_RE.sub(r"\1 \2", normalized)
    normalized = _REPEATED_WORD_RE.sub(r"\1", normalized)
    return normalized.strip()
