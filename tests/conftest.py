import copy
import json
from datetime import datetime, timezone

import pytest

from schemas.course import Course
from services.course_store import CourseStore
from services.providers import ExternalProviderAggregator


def make_course(id=None, title="", **fields) -> Course:
    return Course(id=id, title=title, **fields)


class FakeStore(CourseStore):
    """In-memory stand-in for the Mongo-backed store."""

    def __init__(self, courses=None, fail_reads=False, fail_writes=False):
        self.courses = list(courses or [])
        self.documents = {}
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.writes = 0

    async def list_courses(self):
        if self.fail_reads:
            raise RuntimeError("store unavailable")
        return copy.deepcopy(self.courses)

    async def read_document(self, collection, doc_id):
        if self.fail_reads:
            raise RuntimeError("store unavailable")
        doc = self.documents.get((collection, doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    async def write_document(self, collection, doc_id, data):
        if self.fail_writes:
            raise RuntimeError("store is read-only")
        self.writes += 1
        self.documents[(collection, doc_id)] = copy.deepcopy(data)

    async def upsert_courses(self, courses):
        items = list(courses)
        self.courses.extend(items)
        return len(items)


class FakeAggregator(ExternalProviderAggregator):
    """Returns a fixed course list and records the per-provider limit of each call."""

    def __init__(self, courses=None):
        super().__init__([])
        self.courses = list(courses or [])
        self.calls = []

    async def fetch_external_courses(self, limit):
        self.calls.append(limit)
        return list(self.courses)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def fixed_now():
    return datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def seed_file(tmp_path):
    """Write a small seed dataset and return its path."""
    courses = [
        {
            "id": "c1",
            "slug": "intro-to-ml",
            "title": "Intro to ML",
            "short_description": "Machine learning basics",
            "category": "Data Science",
            "level": "Beginner",
            "tags": ["ml", "python"],
            "avg_rating": 4,
            "review_count": 10,
            "is_free": True,
        },
        {
            "id": "c3",
            "slug": "python-for-everyone",
            "title": "Python for Everyone",
            "short_description": "Learn to code",
            "category": "Programming",
            "level": "Beginner",
            "tags": ["python"],
            "avg_rating": 4.8,
            "review_count": 5000,
            "is_free": True,
        },
        {
            "id": "c4",
            "slug": "modern-javascript",
            "title": "Modern JavaScript",
            "short_description": "The language of the web",
            "category": "Web Dev",
            "level": "Intermediate",
            "tags": ["javascript"],
            "avg_rating": 4.4,
            "review_count": 900,
            "is_free": False,
            "price": 49,
        },
    ]
    path = tmp_path / "courses.seed.json"
    path.write_text(json.dumps(courses), encoding="utf-8")
    return str(path)
