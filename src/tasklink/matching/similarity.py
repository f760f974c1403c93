"""Title similarity scoring used for duplicate suppression.

``similarity`` is the raw normalized edit-distance score. ``match_confidence``
is what the duplicate resolver ranks candidates with: it first strips
conventional numbering, tags and a leading action verb, then scores the
remaining cores and docks ``PREFIX_MISMATCH_PENALTY`` when the two titles did
not open with the same verb.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

AUTO_LINK_THRESHOLD = 0.90
REVIEW_THRESHOLD = 0.80
PREFIX_MISMATCH_PENALTY = 0.15

# Scores meet the thresholds with `>=`, so they are rounded before leaving this module.
_SCORE_DIGITS = 9

_ORDINAL_PREFIX = re.compile(
    r"^(?:(?:task|subtask|step|phase|part|item)\s*)?#?\d+(?:\.\d+)*\s*[:.)\-]*\s+",
    re.IGNORECASE,
)
_TAG_PREFIX = re.compile(r"^\[[^\]]*\]\s*")
_ACTION_VERB = re.compile(
    r"^(implement|add|create|build|set\s*up|write|define|configure|fix|update|refactor)\b[\s:\-]*",
    re.IGNORECASE,
)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizedTitle:
    verb: str | None
    core: str


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    left = a.strip().casefold()
    right = b.strip().casefold()
    if left == right:
        return 1.0
    longest = max(len(left), len(right))
    return round(1.0 - levenshtein(left, right) / longest, _SCORE_DIGITS)


def normalize_title(title: str) -> NormalizedTitle:
    text = _WHITESPACE.sub(" ", title.strip().casefold())

    while True:
        stripped = _TAG_PREFIX.sub("", _ORDINAL_PREFIX.sub("", text))
        if stripped == text:
            break
        text = stripped

    match = _ACTION_VERB.match(text)
    if match is None:
        return NormalizedTitle(verb=None, core=text)
    core = text[match.end() :].strip()
    if not core:
        # A title that is only a verb keeps its verb as the core.
        return NormalizedTitle(verb=None, core=text)
    verb = _WHITESPACE.sub("", match.group(1))
    return NormalizedTitle(verb=verb, core=core)


def match_confidence(a: str, b: str) -> float:
    left = normalize_title(a)
    right = normalize_title(b)
    score = similarity(left.core, right.core)
    if left.verb != right.verb:
        score = max(0.0, score - PREFIX_MISMATCH_PENALTY)
    return round(score, _SCORE_DIGITS)
