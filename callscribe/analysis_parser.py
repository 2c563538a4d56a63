"""
Heuristic parser for free-text analysis replies.

The analysis prompt asks the model for four labelled sections separated by
blank lines::

    ПРОБЛЕМИ:
    1. ...

    РІШЕННЯ:
    1. ...

    ТЕМПЕРАТУРА РОЗМОВИ: 8/10
    justification

    КОРОТКИЙ ЗМІСТ:
    text

Models do not always comply, so parsing is best effort.  Sections are
recognised by a keyword in their first line, unknown sections are ignored and
a missing or out-of-range score falls back to 5.  The parser never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .models import Analysis

DEFAULT_TEMPERATURE = 5
JUSTIFICATION_LABEL = "Оцінка температури розмови"

PROBLEM_KEYWORDS = ("проблем", "problem")
SOLUTION_KEYWORDS = ("рішен", "solution")
TEMPERATURE_KEYWORDS = ("температур", "temperature")
SUMMARY_KEYWORDS = ("короткий зміст", "підсум", "summary")

_SECTION_SPLIT_RE = re.compile(r"\n[ \t]*\n+")
_LIST_MARKER_RE = re.compile(r"^[-*•\d.)\s]+")
_INTEGER_RE = re.compile(r"\d+")
_AFTER_SCORE_RE = re.compile(r"^\s*/\s*10\b")
_LEADING_PUNCT_RE = re.compile(r"^[\s,.:;)\-–—]+")


@dataclass
class ParsedAnalysis:
    """Result of :func:`parse_analysis_response`.

    ``temperature_defaulted`` tells "the model said 5" apart from "no usable
    score was found".  ``sections`` lists the section kinds that were
    recognised, in order of appearance.
    """

    problems: List[str] = field(default_factory=list)
    solutions: List[str] = field(default_factory=list)
    temperature: int = DEFAULT_TEMPERATURE
    summary: str = ""
    temperature_defaulted: bool = True
    sections: Tuple[str, ...] = ()

    @property
    def recognized(self) -> bool:
        return bool(self.sections)

    def to_analysis(self) -> Analysis:
        return Analysis(
            problems=list(self.problems),
            solutions=list(self.solutions),
            temperature=self.temperature,
            summary=self.summary,
            temperature_defaulted=self.temperature_defaulted,
        )


def _classify(header: str) -> Optional[str]:
    lowered = header.lower().strip()
    for kind, keywords in (
        ("problems", PROBLEM_KEYWORDS),
        ("solutions", SOLUTION_KEYWORDS),
        ("temperature", TEMPERATURE_KEYWORDS),
        ("summary", SUMMARY_KEYWORDS),
    ):
        if any(keyword in lowered for keyword in keywords):
            return kind
    return None


def _echoes_header(line: str, keywords: Tuple[str, ...]) -> bool:
    # "Проблеми:" repeated under the header is not an item.
    token = line.lower().rstrip(":").strip()
    return len(token.split()) <= 2 and any(keyword in token for keyword in keywords)


def _list_items(lines: List[str], keywords: Tuple[str, ...]) -> List[str]:
    items = []
    for line in lines:
        cleaned = _LIST_MARKER_RE.sub("", line).strip()
        if cleaned and not _echoes_header(cleaned, keywords):
            items.append(cleaned)
    return items


def _join_lines(text: str) -> str:
    return " ".join(line.strip() for line in text.splitlines() if line.strip())


def _parse_temperature(section: str, body: List[str]) -> Tuple[int, bool, str]:
    """Return ``(score, defaulted, justification)`` for a temperature section.

    The first integer anywhere in the section is taken as the score, so a
    number mentioned before the actual score wins.
    """
    match = _INTEGER_RE.search(section)
    if match is None:
        return DEFAULT_TEMPERATURE, True, _join_lines("\n".join(body))
    rest = _AFTER_SCORE_RE.sub("", section[match.end():])
    justification = _join_lines(_LEADING_PUNCT_RE.sub("", rest))
    value = int(match.group(0))
    if not 1 <= value <= 10:
        return DEFAULT_TEMPERATURE, True, justification
    return value, False, justification


def parse_analysis_response(text: Optional[str]) -> ParsedAnalysis:
    """Turn a model reply into a :class:`ParsedAnalysis`.

    Args:
        text: Raw reply text.  ``None`` is treated as an empty reply.

    Returns:
        The parsed result; lists may be empty and the temperature defaulted.
    """
    result = ParsedAnalysis()
    if not text:
        return result

    sections: List[str] = []
    justification = ""
    summary = ""
    for section in _SECTION_SPLIT_RE.split(text.replace("\r\n", "\n").strip()):
        lines = section.split("\n")
        kind = _classify(lines[0])
        if kind is None:
            continue
        sections.append(kind)
        body = lines[1:]
        if kind == "problems":
            result.problems.extend(_list_items(body, PROBLEM_KEYWORDS))
        elif kind == "solutions":
            result.solutions.extend(_list_items(body, SOLUTION_KEYWORDS))
        elif kind == "temperature":
            result.temperature, result.temperature_defaulted, justification = _parse_temperature(section, body)
        else:
            summary = _join_lines("\n".join(body))

    if justification:
        summary = f"{summary}\n\n{JUSTIFICATION_LABEL} ({result.temperature}/10): {justification}"
    result.summary = summary.strip()
    result.sections = tuple(sections)
    return result
