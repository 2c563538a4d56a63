"""Combine per-chunk analyses of a long transcript into one."""

from __future__ import annotations

import math
from typing import Iterable, List, Sequence

from .models import Analysis


def _unique(items: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def merge_analyses(results: Sequence[Analysis]) -> Analysis:
    """Merge chunk analyses in order.

    Problems and solutions are concatenated with exact duplicates removed,
    the temperature is the mean rounded half up, and non-empty summaries are
    joined with a blank line.

    Raises:
        ValueError: If ``results`` is empty; callers skip analysis instead.
    """
    if not results:
        raise ValueError("Cannot merge an empty list of analyses")

    mean = sum(r.temperature for r in results) / len(results)
    return Analysis(
        problems=_unique(p for r in results for p in r.problems),
        solutions=_unique(s for r in results for s in r.solutions),
        temperature=int(math.floor(mean + 0.5)),
        summary="\n\n".join(r.summary for r in results if r.summary),
        temperature_defaulted=all(r.temperature_defaulted for r in results),
        partial=any(r.partial for r in results),
    )
