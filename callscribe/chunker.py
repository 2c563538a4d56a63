"""
Sentence-aligned chunking of long transcripts for the analysis model.

Chunks are packed greedily: sentences are appended to the current chunk
until the next one would push it over ``max_chars``, at which point the chunk
is closed.  Sentences are never split, so a single sentence longer than the
bound becomes an oversized chunk of its own.  Joining the chunks with
:data:`CHUNK_SEPARATOR` gives back the input when sentences in it are
separated by single spaces (which the normaliser guarantees).
"""

from __future__ import annotations

import re
from typing import List

MAX_CHUNK_SIZE = 16_000
CHUNK_SEPARATOR = " "

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")


def split_for_analysis(text: str, max_chars: int = MAX_CHUNK_SIZE) -> List[str]:
    """Split ``text`` into chunks of at most ``max_chars`` characters.

    Args:
        text: Normalised transcript.
        max_chars: Upper bound on chunk length.

    Returns:
        Ordered, non-empty chunks.  Empty or blank input yields no chunks.
    """
    stripped = text.strip()
    if not stripped:
        return []

    chunks: List[str] = []
    current = ""
    for sentence in _SENTENCE_BOUNDARY_RE.split(stripped):
        if not sentence:
            continue
        if current and len(current) + len(CHUNK_SEPARATOR) + len(sentence) > max_chars:
            chunks.append(current)
            current = sentence
        else:
            current = f"{current}{CHUNK_SEPARATOR}{sentence}" if current else sentence
    if current:
        chunks.append(current)
    return chunks
