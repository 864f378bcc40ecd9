"""
Time-to-live cache in front of the external provider aggregator.

The cache is one document in the store's meta collection holding the last
fetch time and the full combined course list. Staleness is logical: an old
entry is simply not served and gets overwritten by the next refresh. There is
no locking; two requests that both see a stale entry both refresh, and the
last write wins with equivalent content.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from pydantic import ValidationError

from core.config import Settings
from core.errors import ErrorKind, Outcome
from schemas.course import Course, ExternalCacheEntry
from services.course_store import CourseStore
from services.providers import ExternalProviderAggregator

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class ExternalCourseCache:
    def __init__(
        self,
        aggregator: ExternalProviderAggregator,
        store: Optional[CourseStore] = None,
        *,
        collection: str = "meta",
        doc_id: str = "external_courses_cache_all",
        ttl: timedelta = timedelta(hours=24),
        cached_fetch_limit: int = 80,
        live_fetch_limit: int = 40,
        clock: Clock = utcnow,
    ) -> None:
        self._aggregator = aggregator
        self._store = store
        self._collection = collection
        self._doc_id = doc_id
        self._ttl = ttl
        self._cached_fetch_limit = cached_fetch_limit
        self._live_fetch_limit = live_fetch_limit
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, aggregator: ExternalProviderAggregator, store: Optional[CourseStore]
    ) -> "ExternalCourseCache":
        return cls(
            aggregator,
            store,
            collection=settings.meta_collection,
            doc_id=settings.external_cache_doc_id,
            ttl=timedelta(hours=settings.external_cache_ttl_hours),
            cached_fetch_limit=settings.cached_fetch_limit,
            live_fetch_limit=settings.live_fetch_limit,
        )

    @property
    def durable(self) -> bool:
        return self._store is not None

    def is_fresh(self, entry: ExternalCacheEntry, now: datetime) -> bool:
        return now - _as_aware(entry.fetched_at) <= self._ttl

    async def read_entry(self) -> Outcome[Optional[ExternalCacheEntry]]:
        if self._store is None:
            return Outcome.success(None)
        try:
            doc = await self._store.read_document(self._collection, self._doc_id)
        except Exception as e:
            return Outcome.failure(ErrorKind.CACHE, f"cache read failed: {e}", source="cache")
        if not doc:
            return Outcome.success(None)
        try:
            return Outcome.success(ExternalCacheEntry.model_validate(doc))
        except (ValidationError, TypeError, ValueError) as e:
            return Outcome.failure(ErrorKind.CACHE, f"unreadable cache entry: {e}", source="cache")

    async def write_entry(self, entry: ExternalCacheEntry) -> Outcome[None]:
        if self._store is None:
            return Outcome.success(None)
        try:
            await self._store.write_document(self._collection, self._doc_id, entry.model_dump(mode="json"))
        except Exception as e:
            return Outcome.failure(ErrorKind.CACHE, f"cache write failed: {e}", source="cache")
        return Outcome.success(None)

    async def get_external_courses(self, force_refresh: bool = False) -> List[Course]:
        if self._store is None:
            # No durable backend: always live, always fresh
            return await self._aggregator.fetch_external_courses(self._live_fetch_limit)

        now = self._clock()
        if not force_refresh:
            outcome = await self.read_entry()
            if not outcome.ok:
                logger.warning("external cache unavailable; refetching", extra={"error": outcome.error.message})
            entry = outcome.unwrap_or(None)
            if entry is not None and self.is_fresh(entry, now):
                age_hours = (now - _as_aware(entry.fetched_at)).total_seconds() / 3600
                logger.info("external cache hit", extra={"count": len(entry.courses), "age_hours": round(age_hours, 2)})
                return list(entry.courses)
            logger.info("external cache miss", extra={"source": "stale" if entry is not None else "absent"})

        courses = await self._aggregator.fetch_external_courses(self._cached_fetch_limit)
        written = await self.write_entry(ExternalCacheEntry(fetched_at=self._clock(), courses=courses))
        if not written.ok:
            logger.warning("external cache not updated", extra={"error": written.error.message})
        else:
            logger.info("external cache refreshed", extra={"count": len(courses)})
        return courses
