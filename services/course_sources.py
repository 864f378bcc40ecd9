"""
Course Source Resolver.

Loads the authoritative in-house course set: the primary document store when it
is configured and non-empty, otherwise the static seed dataset bundled with the
service. Store problems are never surfaced to callers; they only decide which
source answers.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from core.errors import ErrorKind, Outcome
from schemas.course import Course
from services.course_store import CourseStore

logger = logging.getLogger(__name__)


def _describe(e: Exception) -> str:
    if isinstance(e, ValidationError):
        return f"{e.error_count()} errors"
    return str(e)


def parse_courses(items: Iterable[Any], source: str) -> List[Course]:
    """Validate raw records into Course objects, skipping (and counting) bad ones."""
    out: List[Course] = []
    invalid_count = 0
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            invalid_count += 1
            continue
        try:
            out.append(Course.model_validate(item))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"Failed to parse course at index {i}: {_describe(e)}", extra={"source": source})
            invalid_count += 1
    if invalid_count:
        logger.warning(f"Skipped {invalid_count} invalid courses out of {invalid_count + len(out)}", extra={"source": source})
    return out


def load_seed_courses(path: str) -> List[Course]:
    """Read the bundled static dataset. A missing or malformed file yields an empty list."""
    if not os.path.exists(path):
        logger.error(f"Seed courses file not found: {path}", extra={"source": "seed"})
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Invalid seed courses file {path}: {e}", extra={"source": "seed"})
        return []

    items = raw if isinstance(raw, list) else raw.get("courses", []) if isinstance(raw, dict) else []
    return parse_courses(items, source="seed")


class CourseSourceResolver:
    def __init__(self, store: Optional[CourseStore], seed_path: str) -> None:
        self._store = store
        self._seed_path = seed_path

    async def read_store(self) -> Outcome[List[Course]]:
        if self._store is None:
            return Outcome.success([])
        try:
            docs = await self._store.list_courses()
        except Exception as e:  # network, auth, misconfiguration: all degrade to the seed set
            return Outcome.failure(ErrorKind.PRIMARY_STORE, str(e), source="store")
        return Outcome.success(parse_courses(docs, source="store"))

    async def load_base_courses(self) -> List[Course]:
        outcome = await self.read_store()
        if not outcome.ok:
            logger.warning(
                "course store read failed; using seed dataset",
                extra={"error": outcome.error.message, "error_kind": outcome.error.kind.value},
            )
        courses = outcome.unwrap_or([])
        if courses:
            logger.info("loaded base courses", extra={"source": "store", "count": len(courses)})
            return courses

        courses = await asyncio.to_thread(load_seed_courses, self._seed_path)
        logger.info("loaded base courses", extra={"source": "seed", "count": len(courses)})
        return courses
