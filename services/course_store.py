"""
Primary document store client.

The store is constructed once at application startup and handed to every
component that needs it, instead of a lazily-initialised module global. pymongo
is synchronous, so each call is pushed to a worker thread to keep the event
loop free.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pymongo import MongoClient, UpdateOne

from core.config import Settings

logger = logging.getLogger(__name__)


class CourseStore(ABC):
    """Document store holding in-house courses and pipeline metadata."""

    @abstractmethod
    async def list_courses(self) -> List[Dict[str, Any]]:
        """Return every raw course document."""

    @abstractmethod
    async def read_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a single document by id, or None when it does not exist."""

    @abstractmethod
    async def write_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Replace (or create) a single document by id."""

    @abstractmethod
    async def upsert_courses(self, courses: Iterable[Dict[str, Any]]) -> int:
        """Merge course documents keyed by id (else slug); returns the number written."""

    def close(self) -> None:
        return None


class MongoCourseStore(CourseStore):
    def __init__(
        self,
        client: MongoClient,
        database: str,
        courses_collection: str = "courses",
    ) -> None:
        self._client = client
        self._db = client[database]
        self._courses_collection = courses_collection

    @classmethod
    def from_settings(cls, settings: Settings) -> "MongoCourseStore":
        client: MongoClient = MongoClient(settings.mongo_uri, serverSelectionTimeoutMS=5000, tz_aware=True)
        logger.info("course store client created", extra={"source": settings.mongo_database})
        return cls(client, settings.mongo_database, settings.courses_collection)

    async def list_courses(self) -> List[Dict[str, Any]]:
        def _read() -> List[Dict[str, Any]]:
            return list(self._db[self._courses_collection].find({}, {"_id": 0}))

        return await asyncio.to_thread(_read)

    async def read_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        def _read() -> Optional[Dict[str, Any]]:
            return self._db[collection].find_one({"_id": doc_id}, {"_id": 0})

        return await asyncio.to_thread(_read)

    async def write_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        def _write() -> None:
            self._db[collection].replace_one({"_id": doc_id}, {"_id": doc_id, **data}, upsert=True)

        await asyncio.to_thread(_write)

    async def upsert_courses(self, courses: Iterable[Dict[str, Any]]) -> int:
        stamp = datetime.now(timezone.utc).isoformat()
        ops = []
        for course in courses:
            doc_id = course.get("id") or course.get("slug")
            if not doc_id:
                logger.warning("skipping course without id or slug", extra={"source": "seed"})
                continue
            ops.append(UpdateOne({"_id": str(doc_id)}, {"$set": {**course, "updated_at": stamp}}, upsert=True))
        if not ops:
            return 0

        def _write() -> int:
            res = self._db[self._courses_collection].bulk_write(ops)
            return res.upserted_count + res.modified_count

        return await asyncio.to_thread(_write)

    def close(self) -> None:
        self._client.close()


def create_course_store(settings: Settings) -> Optional[CourseStore]:
    """Build the store client when enabled; None means "no durable backend"."""
    if not settings.course_store_enabled:
        if settings.use_course_store:
            logger.warning("USE_COURSE_STORE is set but MONGO_URI is missing; running without a course store")
        return None
    return MongoCourseStore.from_settings(settings)
