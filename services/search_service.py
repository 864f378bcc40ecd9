"""
Course discovery pipeline.

The one canonical flow used by both endpoints:

    base courses (store → seed)  ┐
                                 ├─ merge & dedup → filters → rank → sort → paginate
    external courses (via cache) ┘

Base and external retrieval run concurrently. Data-source problems are
absorbed upstream (resolver, cache, aggregator), so anything raised from here
is a logic defect and propagates to the route as an internal error.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.config import Settings
from schemas.api import SearchFilters
from schemas.course import Course, ScoredCourse
from services.course_sources import CourseSourceResolver
from services.course_store import CourseStore
from services.external_cache import ExternalCourseCache
from services.filters import apply_filters
from services.fuzzy_index import DEFAULT_LIMIT, DEFAULT_THRESHOLD, FuzzyIndex
from services.merge import merge_courses
from services.pagination import paginate
from services.providers import ExternalProviderAggregator
from services.scoring import DEFAULT_FREE_BOOST, rank_by_popularity, rank_matches, sort_courses

logger = logging.getLogger(__name__)


class CourseSearchService:
    def __init__(
        self,
        resolver: CourseSourceResolver,
        external_cache: ExternalCourseCache,
        *,
        free_boost: float = DEFAULT_FREE_BOOST,
        threshold: float = DEFAULT_THRESHOLD,
        result_limit: int = DEFAULT_LIMIT,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.resolver = resolver
        self.external_cache = external_cache
        self.free_boost = free_boost
        self.threshold = threshold
        self.result_limit = result_limit
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, store: Optional[CourseStore]) -> "CourseSearchService":
        resolver = CourseSourceResolver(store, settings.seed_courses_path)
        aggregator = ExternalProviderAggregator.from_settings(settings)
        cache = ExternalCourseCache.from_settings(settings, aggregator, store)
        return cls(
            resolver,
            cache,
            free_boost=settings.free_boost,
            threshold=settings.search_threshold,
            result_limit=settings.search_result_limit,
        )

    async def load_courses(self, force_external_refresh: bool = False) -> List[Course]:
        base, external = await asyncio.gather(
            self.resolver.load_base_courses(),
            self.external_cache.get_external_courses(force_external_refresh),
        )
        merged = merge_courses(base, external)
        logger.info(
            "merged course sources",
            extra={"count": len(merged), "source": f"base={len(base)} external={len(external)}"},
        )
        return merged

    def rank(self, courses: List[Course], query: Optional[str], free_boost: Optional[float] = None) -> List[ScoredCourse]:
        if not query or not query.strip():
            return rank_by_popularity(courses)
        index = FuzzyIndex(courses, threshold=self.threshold)
        matches = index.search(query, limit=self.result_limit)
        return rank_matches(
            [(m.course, m.score) for m in matches],
            free_boost=self.free_boost if free_boost is None else free_boost,
            now=self._clock(),
        )

    async def search(
        self,
        query: Optional[str],
        filters: Optional[SearchFilters] = None,
        page: int = 1,
        per_page: int = 24,
        free_boost: Optional[float] = None,
        sort: Optional[str] = None,
    ) -> Dict[str, Any]:
        courses = apply_filters(await self.load_courses(), filters)
        ranked = sort_courses(self.rank(courses, query, free_boost), sort)
        response = paginate(ranked, page, per_page)
        logger.info(
            "search completed",
            extra={"query": query or "", "total": response["total"], "page": page, "per_page": per_page},
        )
        return response

    async def get_course(self, key: str) -> Optional[Course]:
        """Look a course up by slug or id: base set first, then the cached external set."""
        for course in await self.resolver.load_base_courses():
            if key in (course.slug, course.id):
                return course
        for course in await self.external_cache.get_external_courses():
            if key in (course.slug, course.id):
                return course
        return None

    async def sync_external(self) -> Dict[str, Any]:
        courses = await self.external_cache.get_external_courses(force_refresh=True)
        if self.external_cache.durable:
            message = "External cache refreshed"
        else:
            message = "Fetched external sources (no course store to cache)"
        logger.info("external sync completed", extra={"count": len(courses)})
        return {"success": True, "message": message, "count": len(courses)}
