"""
Seed script: upload the bundled static course dataset into the course store.

Responsibilities:
- Read data/courses.seed.json (or the path given as the first argument / SEED_COURSES_PATH).
- Validate each entry through the Course schema so the store only ever holds clean records.
- Upsert into the courses collection keyed by id (else slug), stamping updated_at.

Re-runnable: upserts overwrite deterministically. When USE_COURSE_STORE is off the
script only validates and exits; when it is on but MONGO_URI is missing it exits 1.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

from core.config import get_settings
from core.logging_config import configure_logging
from services.course_sources import load_seed_courses
from services.course_store import MongoCourseStore

logger = logging.getLogger("seed")


async def run(path: Optional[str] = None) -> int:
    settings = get_settings()
    seed_path = path or settings.seed_courses_path
    courses = load_seed_courses(seed_path)
    logger.info("loaded seed courses", extra={"count": len(courses), "source": seed_path})

    if not settings.use_course_store:
        logger.info("USE_COURSE_STORE not enabled; skipping upload (seed file is served directly)")
        return 0
    if not settings.mongo_uri:
        logger.error("MONGO_URI is missing; cannot seed the course store")
        return 1
    if not courses:
        logger.info("no courses to upload")
        return 0

    store = MongoCourseStore.from_settings(settings)
    try:
        written = await store.upsert_courses(c.model_dump(mode="json", exclude_none=True) for c in courses)
    finally:
        store.close()
    logger.info("seeding complete", extra={"count": written})
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(run(sys.argv[1] if len(sys.argv) > 1 else None)))
