"""
External catalog providers and the aggregator that fans out to them.

Each provider knows one third-party catalog: where to fetch it and how to map
its payload onto Course. Fetching is shared: one aiohttp session per
aggregation, a per-provider timeout, and tenacity retries for transient
network errors. A provider never raises to the aggregator; failures come back
as an Outcome so that a single broken catalog only empties its own share.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import Settings
from core.errors import ErrorKind, Outcome
from schemas.course import Course

logger = logging.getLogger(__name__)

USER_AGENT = "CourseDiscoveryBot/1.0"
_SLUG_SAFE_PATTERN = re.compile(r"[^a-z0-9]+")
_PRICE_PATTERN = re.compile(r"\d+(?:\.\d+)?")


class ProviderHTTPError(Exception):
    def __init__(self, status: int, url: str):
        super().__init__(f"HTTP {status} from {url}")
        self.status = status


class MalformedPayloadError(ValueError):
    pass


@dataclass
class ProviderRequest:
    url: str
    params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    auth: Optional[aiohttp.BasicAuth] = None


def slugify(value: str) -> str:
    return _SLUG_SAFE_PATTERN.sub("-", value.strip().lower()).strip("-")


def stable_id(prefix: str, *parts: Any) -> str:
    """Deterministic id for items that carry none, so refreshes keep the same identity."""
    digest = hashlib.sha1("|".join(str(p) for p in parts).encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"


def _first(*values: Any) -> Any:
    for v in values:
        if v not in (None, "", [], {}):
            return v
    return None


def _dig(data: Any, *path: Any) -> Any:
    for key in path:
        if isinstance(data, dict):
            data = data.get(key)
        elif isinstance(data, list) and isinstance(key, int) and -len(data) <= key < len(data):
            data = data[key]
        else:
            return None
    return data


class CatalogProvider(ABC):
    """Abstract base class for third-party course catalogs"""

    name: str = "provider"

    @property
    def enabled(self) -> bool:
        return True

    @abstractmethod
    def build_request(self, limit: int) -> ProviderRequest:
        """Describe the HTTP GET that lists this catalog."""

    @abstractmethod
    def extract_items(self, payload: Any) -> Sequence[Any]:
        """Pull the list of raw course records out of a decoded payload."""

    @abstractmethod
    def normalize_item(self, item: Dict[str, Any], index: int) -> Dict[str, Any]:
        """Map one raw record onto Course fields, applying provider defaults."""

    def parse(self, payload: Any) -> List[Course]:
        items = self.extract_items(payload)
        courses: List[Course] = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                continue
            try:
                courses.append(Course.model_validate(self.normalize_item(item, index)))
            except (ValidationError, TypeError, ValueError, KeyError, AttributeError) as e:
                logger.debug(f"Skipping malformed {self.name} item {index}: {e}", extra={"provider": self.name})
        return courses

    async def _get_json(
        self, session: aiohttp.ClientSession, request: ProviderRequest, attempt_seconds: Optional[float] = None
    ) -> Any:
        headers = {"Accept": "application/json", **request.headers}
        kwargs: Dict[str, Any] = {"params": request.params, "headers": headers, "auth": request.auth}
        if attempt_seconds is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=attempt_seconds)
        async with session.get(request.url, **kwargs) as response:
            if response.status != 200:
                raise ProviderHTTPError(response.status, request.url)
            # raw.githubusercontent.com serves JSON as text/plain
            return await response.json(content_type=None)

    async def _get_json_with_retries(
        self,
        session: aiohttp.ClientSession,
        request: ProviderRequest,
        max_retries: int,
        attempt_seconds: Optional[float] = None,
    ) -> Any:
        payload: Any = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type((aiohttp.ClientConnectionError, asyncio.TimeoutError)),
            reraise=True,
        ):
            with attempt:
                payload = await self._get_json(session, request, attempt_seconds)
        return payload

    async def fetch(
        self,
        session: aiohttp.ClientSession,
        limit: int,
        timeout_seconds: float,
        max_retries: int = 2,
    ) -> Outcome[List[Course]]:
        """Fetch and normalize this catalog; every failure mode becomes a PROVIDER error."""
        if not self.enabled:
            return Outcome.success([])

        request = self.build_request(limit)
        # Each attempt gets an equal share of the budget; wait_for enforces the whole of it
        attempt_seconds = timeout_seconds / (max_retries + 1)
        try:
            payload = await asyncio.wait_for(
                self._get_json_with_retries(session, request, max_retries, attempt_seconds),
                timeout=timeout_seconds,
            )
        except ProviderHTTPError as e:
            return Outcome.failure(ErrorKind.PROVIDER, str(e), source=self.name)
        except asyncio.TimeoutError:
            return Outcome.failure(ErrorKind.PROVIDER, f"timed out after {timeout_seconds}s", source=self.name)
        except aiohttp.ClientError as e:
            return Outcome.failure(ErrorKind.PROVIDER, f"network error: {e}", source=self.name)
        except ValueError as e:
            return Outcome.failure(ErrorKind.PROVIDER, f"invalid JSON: {e}", source=self.name)

        try:
            courses = self.parse(payload)
        except (MalformedPayloadError, TypeError, AttributeError) as e:
            return Outcome.failure(ErrorKind.PROVIDER, f"malformed payload: {e}", source=self.name)
        return Outcome.success(courses)


class EdxProvider(CatalogProvider):
    name = "edx"
    url = "https://www.edx.org/api/v1/catalog/search"

    def build_request(self, limit: int) -> ProviderRequest:
        return ProviderRequest(url=self.url, params={"limit": limit})

    def extract_items(self, payload: Any) -> Sequence[Any]:
        if not isinstance(payload, dict):
            raise MalformedPayloadError("expected an object with 'results'")
        results = payload.get("results")
        return results if isinstance(results, list) else []

    def normalize_item(self, item: Dict[str, Any], index: int) -> Dict[str, Any]:
        key = item.get("key")
        title = item.get("title") or "edX Course"
        price = item.get("price")
        return {
            "id": _first(item.get("id"), f"edx-{key}" if key else None, stable_id("edx", title)),
            "slug": _first(key, item.get("id"), item.get("slug")),
            "title": title,
            "short_description": item.get("short_description") or "",
            "long_description": _first(item.get("description"), item.get("long_description")) or "",
            "category": _first(_dig(item, "subjects", 0, "name"), item.get("subject")) or "General",
            "level": item.get("level") or "All",
            "avg_rating": item.get("avg_rating") or 0,
            "review_count": item.get("review_count") or 0,
            "is_free": price in (None, 0, "0"),
            "price": price or 0,
            "published_at": _first(item.get("start"), item.get("published")),
            "tags": item.get("keywords") or [],
            "thumbnail_url": _first(_dig(item, "image", "url"), _dig(item, "media", "image", "uri")),
            "instructor": {"id": "edx", "name": item.get("org") or "edX", "bio": "", "avatar_url": ""},
        }


class FreeCodeCampProvider(CatalogProvider):
    """freeCodeCamp publishes its curriculum as a JSON file; everything in it is free."""

    name = "freecodecamp"
    url = "https://raw.githubusercontent.com/freeCodeCamp/freeCodeCamp/main/curriculum/curriculum.json"
    max_items = 200

    def build_request(self, limit: int) -> ProviderRequest:
        return ProviderRequest(url=self.url)

    def extract_items(self, payload: Any) -> Sequence[Any]:
        if isinstance(payload, list):
            items = payload
        elif isinstance(payload, dict):
            items = list(payload.values())
        else:
            raise MalformedPayloadError("expected a list or object of curriculum blocks")
        return items[: self.max_items]

    def normalize_item(self, item: Dict[str, Any], index: int) -> Dict[str, Any]:
        name = str(_first(item.get("title"), item.get("name")) or "")
        return {
            "id": f"fcc-{index}-{name[:20]}",
            "slug": str(_first(item.get("slug"), item.get("name")) or f"fcc-{index}"),
            "title": name or "freeCodeCamp Course",
            "short_description": item.get("description") or "",
            "long_description": item.get("description") or "",
            "category": "freeCodeCamp",
            "level": "All",
            "avg_rating": 0,
            "review_count": 0,
            "is_free": True,
            "price": 0,
            "tags": item.get("topics") or [],
            "thumbnail_url": "https://picsum.photos/seed/fcc/600/400",
            "instructor": {"id": "fcc", "name": "freeCodeCamp", "bio": "", "avatar_url": ""},
        }


class UdemyProvider(CatalogProvider):
    """Udemy's affiliate API; disabled unless client credentials are configured."""

    name = "udemy"
    url = "https://www.udemy.com/api-2.0/courses/"

    def __init__(self, client_id: Optional[str] = None, client_secret: Optional[str] = None) -> None:
        self._client_id = client_id
        self._client_secret = client_secret

    @property
    def enabled(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def build_request(self, limit: int) -> ProviderRequest:
        return ProviderRequest(
            url=self.url,
            params={"page_size": limit},
            headers={"Accept": "application/json, text/plain, */*"},
            auth=aiohttp.BasicAuth(self._client_id or "", self._client_secret or ""),
        )

    def extract_items(self, payload: Any) -> Sequence[Any]:
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, dict):
            raise MalformedPayloadError("expected an object with 'results'")
        results = payload.get("results")
        return results if isinstance(results, list) else []

    @staticmethod
    def _slug(item: Dict[str, Any], title: str) -> Optional[str]:
        url = str(item.get("url") or "").strip("/")
        if url:
            return url.split("/")[-1]
        return slugify(title) or (str(item["id"]) if item.get("id") is not None else None)

    @staticmethod
    def _price(item: Dict[str, Any], is_paid: bool) -> float:
        raw = item.get("price")
        if isinstance(raw, (int, float)):
            return float(raw)
        match = _PRICE_PATTERN.search(str(raw or ""))
        if match:
            return float(match.group(0))
        return 1.0 if is_paid else 0.0

    def normalize_item(self, item: Dict[str, Any], index: int) -> Dict[str, Any]:
        title = item.get("title") or "Udemy Course"
        is_free = item.get("is_paid") is False
        raw_id = item.get("id")
        return {
            "id": f"udemy-{raw_id}" if raw_id is not None else stable_id("udemy", title),
            "slug": self._slug(item, title),
            "title": title,
            "short_description": _first(item.get("short_description"), item.get("headline")) or "",
            "long_description": item.get("description") or "",
            "category": _first(_dig(item, "primary_subcategory", "title"), item.get("category")) or "General",
            "level": "Beginner" if is_free else (item.get("level") or "All"),
            "avg_rating": _first(item.get("avg_rating"), item.get("rating")) or 0,
            "review_count": _first(item.get("num_reviews"), item.get("ratings")) or 0,
            "is_free": is_free,
            "price": 0 if is_free else self._price(item, bool(item.get("is_paid"))),
            "published_at": _first(item.get("published_time"), item.get("created")),
            "tags": item.get("tags") or [],
            "thumbnail_url": _first(item.get("image_480x270"), item.get("image")),
            "instructor": {
                "id": "udemy",
                "name": _dig(item, "visible_instructors", 0, "display_name") or "Udemy Instructor",
                "bio": "",
                "avatar_url": "",
            },
        }


class CourseraProvider(CatalogProvider):
    name = "coursera"
    url = "https://www.coursera.org/api/catalog.v1/courses"

    def build_request(self, limit: int) -> ProviderRequest:
        return ProviderRequest(
            url=self.url,
            params={"limit": limit, "fields": "slug,primaryCredential,description,photoUrl,partnerIds"},
        )

    def extract_items(self, payload: Any) -> Sequence[Any]:
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, dict):
            raise MalformedPayloadError("expected an object with 'elements'")
        elements = payload.get("elements")
        return elements if isinstance(elements, list) else []

    @staticmethod
    def _published(value: Any) -> Optional[str]:
        # createdAt is epoch milliseconds in the catalog API
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
        return value or None

    def normalize_item(self, item: Dict[str, Any], index: int) -> Dict[str, Any]:
        title = _first(item.get("name"), item.get("title")) or "Coursera Course"
        raw_id = item.get("id")
        partner = _dig(item, "partnerIds", 0)
        return {
            "id": f"coursera-{raw_id}" if raw_id is not None else stable_id("coursera", title),
            "slug": _first(item.get("slug"), item.get("name")),
            "title": title,
            "short_description": item.get("description") or "",
            "long_description": item.get("description") or "",
            "category": str(partner) if partner is not None else "General",
            "level": item.get("level") or "All",
            "avg_rating": item.get("avg_rating") or 0,
            "review_count": item.get("review_count") or 0,
            "is_free": False,
            "price": 0,
            "published_at": self._published(item.get("createdAt")),
            "tags": item.get("tags") or [],
            "thumbnail_url": item.get("photoUrl"),
            "instructor": {"id": "coursera", "name": item.get("instructor") or "Coursera", "bio": "", "avatar_url": ""},
        }


def build_providers(settings: Settings) -> List[CatalogProvider]:
    """Registered providers, in the order their results are concatenated."""
    return [
        EdxProvider(),
        FreeCodeCampProvider(),
        UdemyProvider(settings.udemy_client_id, settings.udemy_client_secret),
        CourseraProvider(),
    ]


class ExternalProviderAggregator:
    """Fetches all enabled catalogs concurrently and concatenates their courses."""

    def __init__(
        self,
        providers: Sequence[CatalogProvider],
        timeout_seconds: float = 15.0,
        max_retries: int = 2,
    ) -> None:
        self.providers = list(providers)
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExternalProviderAggregator":
        return cls(build_providers(settings), settings.provider_timeout_seconds, settings.provider_max_retries)

    async def fetch_external_courses(self, limit: int) -> List[Course]:
        active = [p for p in self.providers if p.enabled]
        for provider in self.providers:
            if not provider.enabled:
                logger.info("provider disabled (no credentials)", extra={"provider": provider.name})
        if not active:
            return []

        timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout, headers={"User-Agent": USER_AGENT}) as session:
            results = await asyncio.gather(
                *(p.fetch(session, limit, self._timeout_seconds, self._max_retries) for p in active),
                return_exceptions=True,
            )

        combined: List[Course] = []
        for provider, result in zip(active, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"Unexpected error in provider fetch: {result!r}",
                    extra={"provider": provider.name, "error_kind": ErrorKind.PROVIDER.value},
                )
                continue
            if not result.ok:
                logger.warning(
                    "provider fetch failed",
                    extra={"provider": provider.name, "error": result.error.message, "error_kind": result.error.kind.value},
                )
                continue
            courses = result.unwrap_or([])
            logger.info("provider fetch completed", extra={"provider": provider.name, "count": len(courses)})
            combined.extend(courses)
        return combined
