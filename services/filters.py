"""Exact-match filters applied to the merged course set."""
from __future__ import annotations

from typing import Iterable, List, Optional

from schemas.api import SearchFilters
from schemas.course import Course


def matches_filters(course: Course, filters: SearchFilters) -> bool:
    if filters.category is not None and course.category != filters.category:
        return False
    if filters.level is not None and course.level != filters.level:
        return False
    if filters.is_free is not None and course.is_free != filters.is_free:
        return False
    return True


def apply_filters(courses: Iterable[Course], filters: Optional[SearchFilters]) -> List[Course]:
    if filters is None:
        return list(courses)
    return [c for c in courses if matches_filters(c, filters)]
