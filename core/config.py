"""
Core configuration module for environment variables and settings management.

Design choices:
- Uses python-dotenv to load environment variables from a .env file when present.
- A plain pydantic BaseModel is populated from os.environ (no BaseSettings).
- Provides a single get_settings() accessor with LRU caching to avoid repeated parsing.
- Absent provider credentials are not an error: the provider is simply disabled.
"""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

_DEFAULT_SEED_PATH = str(Path(__file__).resolve().parent.parent / "data" / "courses.seed.json")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


class Settings(BaseModel):
    # Primary document store (MongoDB). Disabled unless explicitly switched on.
    use_course_store: bool = False
    mongo_uri: Optional[str] = None
    mongo_database: str = "course_catalog"
    courses_collection: str = "courses"
    meta_collection: str = "meta"

    # External catalog cache
    external_cache_doc_id: str = "external_courses_cache_all"
    external_cache_ttl_hours: float = 24.0
    cached_fetch_limit: int = 80
    live_fetch_limit: int = 40

    # Provider HTTP behaviour
    provider_timeout_seconds: float = 15.0
    provider_max_retries: int = 2
    udemy_client_id: Optional[str] = None
    udemy_client_secret: Optional[str] = None

    # Ranking
    free_boost: float = 1.25
    search_threshold: float = 0.45
    search_result_limit: int = 1000
    search_require_query: bool = False

    # Static fallback dataset
    seed_courses_path: str = _DEFAULT_SEED_PATH

    # Routes are mounted at the root by default so paths read /courses and /search.
    api_prefix: str = ""
    log_level: str = "INFO"

    @property
    def course_store_enabled(self) -> bool:
        return self.use_course_store and bool(self.mongo_uri)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load environment variables (from .env if present) and build a Settings object.

    This function is cached so app startup and repeated imports are efficient.
    """
    load_dotenv()  # no-op if .env not present
    return Settings(
        use_course_store=_env_bool("USE_COURSE_STORE"),
        mongo_uri=os.getenv("MONGO_URI") or None,
        mongo_database=os.getenv("MONGO_DATABASE", "course_catalog"),
        courses_collection=os.getenv("COURSES_COLLECTION", "courses"),
        meta_collection=os.getenv("META_COLLECTION", "meta"),
        external_cache_doc_id=os.getenv("EXTERNAL_CACHE_DOC_ID", "external_courses_cache_all"),
        external_cache_ttl_hours=float(os.getenv("EXTERNAL_CACHE_TTL_HOURS", "24")),
        cached_fetch_limit=int(os.getenv("CACHED_FETCH_LIMIT", "80")),
        live_fetch_limit=int(os.getenv("LIVE_FETCH_LIMIT", "40")),
        provider_timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "15")),
        provider_max_retries=int(os.getenv("PROVIDER_MAX_RETRIES", "2")),
        udemy_client_id=os.getenv("UDEMY_CLIENT_ID") or None,
        udemy_client_secret=os.getenv("UDEMY_CLIENT_SECRET") or None,
        free_boost=float(os.getenv("FREE_BOOST", "1.25")),
        search_threshold=float(os.getenv("SEARCH_THRESHOLD", "0.45")),
        search_result_limit=int(os.getenv("SEARCH_RESULT_LIMIT", "1000")),
        search_require_query=_env_bool("SEARCH_REQUIRE_QUERY"),
        seed_courses_path=os.getenv("SEED_COURSES_PATH", _DEFAULT_SEED_PATH),
        api_prefix=os.getenv("API_PREFIX", ""),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
