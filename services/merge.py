"""Merge in-house and external course lists into one deduplicated set."""
from __future__ import annotations

from typing import Iterable, List, Set

from schemas.course import Course


def merge_courses(base: Iterable[Course], external: Iterable[Course]) -> List[Course]:
    """Concatenate base then external, dropping any course whose identity key was already seen.

    Base records are visited first, so an in-house course always wins over an
    external duplicate. Courses without an identity key are always kept.
    """
    seen: Set[str] = set()
    merged: List[Course] = []
    for source in (base, external):
        for course in source:
            key = course.identity_key
            if key:
                if key in seen:
                    continue
                seen.add(key)
            merged.append(course)
    return merged
