"""
HTTP routes for course listing, search and external sync.

Design choices:
- The router does not hardcode a prefix; main.py mounts it using settings.api_prefix.
- Response bodies are the bare contract shapes ({results, total, page, per_page}
  and friends) because the surrounding application already consumes them.
- Failures reach clients as {error: {code, message}} via ApiError and the
  handlers registered in main.py.
"""
from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import APIRouter, Body, Depends, Query, Request

from core.config import Settings, get_settings
from core.errors import ApiError, ErrorKind
from schemas.api import SearchFilters, SearchRequest, SearchResponse, SyncResponse
from schemas.course import Course
from services.search_service import CourseSearchService

router = APIRouter(tags=["courses"])
logger = logging.getLogger("api")


def get_search_service(request: Request) -> CourseSearchService:
    """The pipeline is built once at startup and shared by reference."""
    return request.app.state.search_service


def _internal_error(event: str, e: Exception) -> ApiError:
    logger.exception(event, extra={"error": str(e), "error_kind": ErrorKind.INTERNAL.value})
    return ApiError.from_kind(ErrorKind.INTERNAL, "Internal error")


@router.get("/courses", response_model=SearchResponse, response_model_exclude_none=True)
async def list_courses(
    q: Optional[str] = Query(None, description="Free-text query; empty lists by popularity"),
    category: Optional[str] = Query(None),
    level: Optional[str] = Query(None),
    price: Optional[str] = Query(None, description="'free' restricts to free courses"),
    sort: Optional[str] = Query(None, description="rating | popular | free_first | relevance (default)"),
    page: int = Query(1, ge=1),
    per_page: int = Query(24, ge=1),
    service: CourseSearchService = Depends(get_search_service),
):
    """List courses, or run the ranked search when `q` is given."""
    filters = SearchFilters(category=category, level=level, is_free=True if price == "free" else None)
    try:
        return await service.search(q, filters, page=page, per_page=per_page, sort=sort)
    except Exception as e:
        raise _internal_error("list_courses_failed", e)


@router.get("/courses/{slug}", response_model=Course, response_model_exclude_none=True)
async def get_course(slug: str, service: CourseSearchService = Depends(get_search_service)):
    try:
        course = await service.get_course(slug)
    except Exception as e:
        raise _internal_error("get_course_failed", e)
    if course is None:
        raise ApiError.from_kind(ErrorKind.NOT_FOUND, f"Course '{slug}' not found")
    return course


@router.post(
    "/search",
    response_model=Union[SearchResponse, SyncResponse],
    response_model_exclude_none=True,
)
async def search_courses(
    body: Optional[SearchRequest] = Body(None),
    service: CourseSearchService = Depends(get_search_service),
    settings: Settings = Depends(get_settings),
):
    """Ranked search over merged courses, or a forced external refresh with action="sync"."""
    body = body or SearchRequest()

    if body.action == "sync":
        try:
            return await service.sync_external()
        except Exception as e:
            raise _internal_error("external_sync_failed", e)

    if settings.search_require_query and not (body.q or "").strip():
        raise ApiError.from_kind(ErrorKind.VALIDATION, "Query text 'q' is required")

    logger.info("search_request", extra={"query": body.q or "", "page": body.page, "per_page": body.per_page})
    try:
        return await service.search(
            body.q,
            body.filters,
            page=body.page,
            per_page=body.per_page,
            free_boost=body.free_boost,
        )
    except Exception as e:
        raise _internal_error("search_failed", e)
