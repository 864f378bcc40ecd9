"""
Ranking formulas.

Two rankings exist: the popularity heuristic used when there is no query text,
and the final score that blends fuzzy match quality with rating, review volume,
recency and the free-course boost. Scores are only comparable within a single
request. All sorts here are stable (Python's sort is), so ties keep input order.
"""
from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from schemas.course import Course, ScoredCourse

DEFAULT_FREE_BOOST = 1.25
MISSING_PUBLISHED_DAYS = 3650
RECENCY_WINDOW_DAYS = 30


def popularity_score(course: Course) -> float:
    return course.avg_rating + math.log1p(course.review_count) * 0.1


def parse_published_at(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date or datetime; naive values are taken as UTC. Unparseable → None."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(text[:10]), datetime.min.time())
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def days_since(published_at: Optional[str], now: Optional[datetime] = None) -> int:
    published = parse_published_at(published_at)
    if published is None:
        return MISSING_PUBLISHED_DAYS
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return math.floor((now - published).total_seconds() / 86400)


def compute_final_score(
    course: Course,
    raw_match_score: float,
    free_boost: float = DEFAULT_FREE_BOOST,
    now: Optional[datetime] = None,
) -> float:
    """Blend match quality (0 = perfect) with the course's quality signals.

    base dominates the sum, so metadata reorders comparable matches without
    overriding textual relevance.
    """
    base = (1 - raw_match_score) * 3
    rating_adj = (course.avg_rating - 3) * 0.35
    rc_adj = math.log1p(course.review_count) * 0.04
    days = days_since(course.published_at, now)
    recency_adj = max(0.0, min(1.0, (RECENCY_WINDOW_DAYS - days) / RECENCY_WINDOW_DAYS)) * 0.15
    free_mult = free_boost if course.is_free else 1.0
    return (base + rating_adj + rc_adj + recency_adj) * free_mult


def rank_by_popularity(courses: Iterable[Course]) -> List[ScoredCourse]:
    scored = [ScoredCourse.from_course(c, popularity_score(c)) for c in courses]
    scored.sort(key=lambda s: s.final_score, reverse=True)
    return scored


def rank_matches(
    matches: Sequence[Tuple[Course, float]],
    free_boost: float = DEFAULT_FREE_BOOST,
    now: Optional[datetime] = None,
) -> List[ScoredCourse]:
    """Score (course, raw match score) pairs and sort them by final score, best first."""
    now = now or datetime.now(timezone.utc)
    scored = []
    for course, raw in matches:
        raw = min(1.0, max(0.0, raw))
        scored.append(
            ScoredCourse.from_course(
                course,
                final_score=compute_final_score(course, raw, free_boost, now),
                bm25_like_score=1 - raw,
            )
        )
    scored.sort(key=lambda s: s.final_score, reverse=True)
    return scored


def sort_courses(courses: List[ScoredCourse], sort: Optional[str]) -> List[ScoredCourse]:
    """Listing sort options; anything unrecognised keeps the relevance order."""
    if sort == "rating":
        return sorted(courses, key=lambda c: c.avg_rating, reverse=True)
    if sort == "popular":
        return sorted(courses, key=lambda c: c.review_count, reverse=True)
    if sort == "free_first":
        return sorted(courses, key=lambda c: c.is_free, reverse=True)
    return courses
