"""
Weighted multi-field fuzzy index over courses.

Matching follows the extended-search conventions most fuzzy search libraries
use:

    foo bar        both terms must match (AND)
    foo | bar      either group may match (OR)
    =foo           field equals "foo"
    'foo           field contains "foo"
    ^foo / foo$    field starts / ends with "foo"
    !foo           field does not contain "foo"
    !^foo / !foo$  field does not start / end with "foo"
    ="foo bar"     quotes keep spaces inside a term

Plain terms are fuzzy. A term is compared with each run of words in the field
(as many words as the term has) by normalized Levenshtein distance, and the
match offset adds a location penalty of offset / LOCATION_DISTANCE. A term only
matches when that sum is within the threshold, so a hit deep inside a long
description does not count on its own.

Per field, the first OR group whose terms all match gives the field score
(mean term distance). The item score is the weighted product of the matching
field scores, so it also lies in [0, 1] and matching more fields lowers it.
"""
from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from enum import Enum
from statistics import fmean
from typing import Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from schemas.course import Course

FIELD_WEIGHTS: Tuple[Tuple[str, float], ...] = (
    ("title", 0.45),
    ("tags", 0.25),
    ("short_description", 0.15),
    ("long_description", 0.10),
    ("category", 0.05),
)
DEFAULT_THRESHOLD = 0.45
DEFAULT_LIMIT = 1000
LOCATION_DISTANCE = 100

_TOKEN_PATTERN = re.compile(r'[^\s"]*"[^"]*"\S*|\S+')
_WORD_PATTERN = re.compile(r"\w+")


class TermKind(str, Enum):
    FUZZY = "fuzzy"
    EXACT = "exact"
    INCLUDE = "include"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    INVERSE_INCLUDE = "inverse_include"
    INVERSE_PREFIX = "inverse_prefix"
    INVERSE_SUFFIX = "inverse_suffix"


def fuzzy_distance(text: str, value: str, threshold: float = 1.0) -> Optional[float]:
    """Best distance of `text` within `value`: edit distance plus location penalty.

    Returns None when nothing in `value` comes within `threshold`.
    """
    best: Optional[float] = None
    offset = value.find(text)
    if offset >= 0:
        best = offset / LOCATION_DISTANCE

    words = list(_WORD_PATTERN.finditer(value))
    span = max(1, len(text.split()))
    if len(words) < span:
        candidates = [(words[0].start() if words else 0, value)]
    else:
        candidates = [
            (words[i].start(), value[words[i].start():words[i + span - 1].end()])
            for i in range(len(words) - span + 1)
        ]
    for start, candidate in candidates:
        penalty = start / LOCATION_DISTANCE
        if penalty > threshold:
            break
        dist = Levenshtein.normalized_distance(text, candidate) + penalty
        if best is None or dist < best:
            best = dist
    if best is None or best > threshold:
        return None
    return best


@dataclass(frozen=True)
class QueryTerm:
    kind: TermKind
    text: str

    def distance(self, value: str, threshold: float) -> Optional[float]:
        """Distance of `value` (already lower-cased) to this term, or None if it does not match."""
        kind, text = self.kind, self.text
        if kind is TermKind.FUZZY:
            return fuzzy_distance(text, value, threshold)
        if kind is TermKind.EXACT:
            hit = value == text
        elif kind is TermKind.INCLUDE:
            hit = text in value
        elif kind is TermKind.PREFIX:
            hit = value.startswith(text)
        elif kind is TermKind.SUFFIX:
            hit = value.endswith(text)
        elif kind is TermKind.INVERSE_INCLUDE:
            hit = text not in value
        elif kind is TermKind.INVERSE_PREFIX:
            hit = not value.startswith(text)
        else:
            hit = not value.endswith(text)
        return 0.0 if hit else None


def _unquote(text: str) -> str:
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def parse_term(token: str) -> Optional[QueryTerm]:
    if token.startswith("!^"):
        kind, body = TermKind.INVERSE_PREFIX, token[2:]
    elif token.startswith("!") and token.endswith("$") and len(token) > 2:
        kind, body = TermKind.INVERSE_SUFFIX, token[1:-1]
    elif token.startswith("!"):
        kind, body = TermKind.INVERSE_INCLUDE, token[1:]
    elif token.startswith("="):
        kind, body = TermKind.EXACT, token[1:]
    elif token.startswith("'"):
        kind, body = TermKind.INCLUDE, token[1:]
    elif token.startswith("^"):
        kind, body = TermKind.PREFIX, token[1:]
    elif token.endswith("$") and len(token) > 1:
        kind, body = TermKind.SUFFIX, token[:-1]
    else:
        kind, body = TermKind.FUZZY, token
    text = _unquote(body).strip().lower()
    if not text:
        return None
    return QueryTerm(kind, text)


def parse_query(query: str) -> List[List[QueryTerm]]:
    """Split a query into OR groups of AND terms. Empty groups are dropped."""
    groups: List[List[QueryTerm]] = []
    for raw_group in query.split("|"):
        terms = [t for t in (parse_term(tok) for tok in _TOKEN_PATTERN.findall(raw_group)) if t is not None]
        if terms:
            groups.append(terms)
    return groups


@dataclass(frozen=True)
class FuzzyMatch:
    course: Course
    score: float
    position: int


def _field_values(course: Course, field: str) -> List[str]:
    raw = getattr(course, field, None)
    if raw is None:
        return []
    values = raw if isinstance(raw, list) else [raw]
    return [str(v).lower() for v in values if str(v).strip()]


class FuzzyIndex:
    def __init__(
        self,
        courses: Iterable[Course],
        weights: Sequence[Tuple[str, float]] = FIELD_WEIGHTS,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        total_weight = sum(w for _, w in weights) or 1.0
        self._weights = [(name, w / total_weight) for name, w in weights]
        self._threshold = threshold
        self._records = [
            (course, [_field_values(course, name) for name, _ in self._weights]) for course in courses
        ]

    def _evaluate(self, groups: List[List[QueryTerm]], value: str) -> Optional[float]:
        for group in groups:
            distances = []
            for term in group:
                d = term.distance(value, self._threshold)
                if d is None:
                    break
                distances.append(d)
            else:
                return fmean(distances)
        return None

    def _field_score(self, groups: List[List[QueryTerm]], values: List[str]) -> Optional[float]:
        best: Optional[float] = None
        for value in values:
            score = self._evaluate(groups, value)
            if score is not None and (best is None or score < best):
                best = score
        return best

    def score_course(self, groups: List[List[QueryTerm]], field_values: List[List[str]]) -> Optional[float]:
        total = 1.0
        matched = False
        for (_, weight), values in zip(self._weights, field_values):
            score = self._field_score(groups, values)
            if score is None:
                continue
            matched = True
            total *= (sys.float_info.epsilon if score == 0 else score) ** weight
        return total if matched else None

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> List[FuzzyMatch]:
        """Return matches best-first (lowest score), capped at `limit`."""
        groups = parse_query(query or "")
        if not groups:
            return []
        matches = []
        for position, (course, field_values) in enumerate(self._records):
            score = self.score_course(groups, field_values)
            if score is not None:
                matches.append(FuzzyMatch(course, score, position))
        matches.sort(key=lambda m: (m.score, m.position))
        return matches[:limit]
