import pytest
from fastapi.testclient import TestClient

from api.v1.routes import get_search_service
from conftest import FakeAggregator, make_course
from core.config import Settings, get_settings
from main import app
from services.course_sources import CourseSourceResolver
from services.external_cache import ExternalCourseCache
from services.search_service import CourseSearchService


class BrokenSearchService(CourseSearchService):
    async def search(self, *args, **kwargs):
        raise RuntimeError("ranking exploded")


@pytest.fixture
def aggregator():
    return FakeAggregator([make_course("edx-1", "Machine Learning with Python", slug="ml-python", tags=["python"])])


@pytest.fixture
def client(seed_file, aggregator):
    service = CourseSearchService(CourseSourceResolver(None, seed_file), ExternalCourseCache(aggregator))
    app.dependency_overrides[get_search_service] = lambda: service
    yield TestClient(app)
    # Clean up override
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}
    assert resp.headers.get("X-Request-ID")


def test_request_id_is_echoed(client):
    resp = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"


def test_list_courses_contract(client):
    resp = client.get("/courses")
    assert resp.status_code == 200
    body = resp.json()

    assert set(body) == {"total", "page", "per_page", "results"}
    assert body["total"] == 4
    assert body["page"] == 1
    assert body["per_page"] == 24
    first = body["results"][0]
    assert first["id"] == "c3"
    assert "final_score" in first
    assert "bm25_like_score" not in first


def test_list_courses_free_filter_and_sort(client):
    resp = client.get("/courses", params={"price": "free", "sort": "rating"})
    body = resp.json()

    assert resp.status_code == 200
    assert all(c["is_free"] for c in body["results"])
    ratings = [c["avg_rating"] for c in body["results"]]
    assert ratings == sorted(ratings, reverse=True)


def test_list_courses_with_query_reports_match_score(client):
    body = client.get("/courses", params={"q": "python", "per_page": 1}).json()

    assert body["per_page"] == 1
    assert len(body["results"]) == 1
    assert 0 <= body["results"][0]["bm25_like_score"] <= 1


def test_list_courses_rejects_bad_page(client):
    resp = client.get("/courses", params={"page": 0})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "E_VALIDATION"


def test_get_course_by_slug(client):
    resp = client.get("/courses/python-for-everyone")
    assert resp.status_code == 200
    assert resp.json()["id"] == "c3"


def test_get_unknown_course_is_404(client):
    resp = client.get("/courses/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "E_NOT_FOUND"


def test_search_ranks_matches(client):
    resp = client.post("/search", json={"q": "python", "filters": {"is_free": "true"}, "page": 1, "per_page": 10})
    assert resp.status_code == 200
    body = resp.json()

    ids = [c["id"] for c in body["results"]]
    assert ids[0] == "c3"
    assert "c4" not in ids
    assert body["total"] == len(ids)
    scores = [c["final_score"] for c in body["results"]]
    assert scores == sorted(scores, reverse=True)


def test_search_without_body_lists_by_popularity(client):
    resp = client.post("/search")
    assert resp.status_code == 200
    assert resp.json()["total"] == 4


def test_search_out_of_range_page_is_empty(client):
    body = client.post("/search", json={"q": "", "page": 99, "per_page": 10}).json()
    assert body["results"] == []
    assert body["total"] == 4
    assert body["page"] == 99


def test_search_sync_action(client, aggregator):
    resp = client.post("/search", json={"action": "sync"})
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "message": "Fetched external sources (no course store to cache)",
        "count": 1,
    }
    assert aggregator.calls == [40]


def test_search_rejects_invalid_payload(client):
    resp = client.post("/search", json={"q": "ml", "page": -1})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "E_VALIDATION"

    resp = client.post("/search", json={"filters": {"is_free": "sometimes"}})
    assert resp.status_code == 400


def test_search_can_require_query(client):
    app.dependency_overrides[get_settings] = lambda: Settings(search_require_query=True)

    resp = client.post("/search", json={"q": "   "})

    assert resp.status_code == 400
    assert resp.json()["error"] == {"code": "E_VALIDATION", "message": "Query text 'q' is required"}


@pytest.mark.parametrize("method,path", [("post", "/courses"), ("get", "/search"), ("delete", "/search")])
def test_wrong_method_is_405(client, method, path):
    resp = getattr(client, method)(path)
    assert resp.status_code == 405
    assert resp.json()["error"]["code"] == "E_METHOD"


def test_pipeline_defect_is_internal_error(seed_file, aggregator):
    service = BrokenSearchService(CourseSourceResolver(None, seed_file), ExternalCourseCache(aggregator))
    app.dependency_overrides[get_search_service] = lambda: service
    try:
        resp = TestClient(app).post("/search", json={"q": "python"})
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500
    assert resp.json() == {"error": {"code": "E_INTERNAL", "message": "Internal error"}}
