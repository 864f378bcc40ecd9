"""
Course schema shared by every data source in the discovery pipeline.

Design choices:
- Defaulting rules live in the validators here and nowhere else; store rows, seed
  records, provider payloads and cache entries are all validated through Course.
- Unknown attributes are ignored so upstream catalogs can add fields freely.
- Identity is (id, else slug); both are optional so records without either can
  still be listed, they just never deduplicate.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(v: Any) -> Optional[str]:
    if v is None:
        return None
    text = str(v).strip()
    return text or None


def _non_negative_float(v: Any) -> float:
    try:
        value = float(v)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value) or value < 0:
        return 0.0
    if math.isinf(value):
        raise ValueError("must be a finite number")
    return value


class Instructor(BaseModel):
    id: str = ""
    name: str = ""
    bio: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("id", "name", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class Course(BaseModel):
    id: Optional[str] = None
    slug: Optional[str] = None

    title: str = ""
    short_description: str = ""
    long_description: str = ""
    category: Optional[str] = None
    level: Optional[str] = None
    tags: List[str] = Field(default_factory=list, description="Unordered topic tags")

    is_free: bool = False
    price: float = Field(default=0.0, ge=0, description="Ignored when is_free is set")

    avg_rating: float = Field(default=0.0, ge=0, le=5)
    review_count: int = Field(default=0, ge=0)

    published_at: Optional[str] = Field(default=None, description="ISO date or datetime")

    thumbnail_url: Optional[str] = None
    duration_minutes: int = Field(default=0, ge=0)
    instructor: Optional[Instructor] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("id", "slug", "category", "level", "published_at", "thumbnail_url", mode="before")
    @classmethod
    def _optional_text(cls, v: Any) -> Optional[str]:
        return _blank_to_none(v)

    @field_validator("title", "short_description", "long_description", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _dedupe_tags(cls, v: Any) -> List[str]:
        if not v:
            return []
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple, set)):
            raise ValueError("tags must be a list of strings")
        seen = set()
        out: List[str] = []
        for tag in v:
            if tag is None:
                continue
            cleaned = str(tag).strip()
            if cleaned and cleaned not in seen:
                seen.add(cleaned)
                out.append(cleaned)
        return out

    @field_validator("is_free", mode="before")
    @classmethod
    def _free_flag(cls, v: Any) -> bool:
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return bool(v)

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, v: Any) -> float:
        return _non_negative_float(v)

    @field_validator("avg_rating", mode="before")
    @classmethod
    def _rating(cls, v: Any) -> float:
        return min(5.0, _non_negative_float(v))

    @field_validator("review_count", "duration_minutes", mode="before")
    @classmethod
    def _count(cls, v: Any) -> int:
        return int(_non_negative_float(v))

    @field_validator("instructor", mode="before")
    @classmethod
    def _instructor(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"id": "", "name": v}
        return v or None

    @property
    def identity_key(self) -> str:
        """id, else slug, else empty: the key two sources agree on for the same course."""
        return self.id or self.slug or ""


class ScoredCourse(Course):
    final_score: float
    bm25_like_score: Optional[float] = Field(default=None, ge=0, le=1)

    @classmethod
    def from_course(cls, course: Course, final_score: float, bm25_like_score: Optional[float] = None) -> "ScoredCourse":
        return cls(**course.model_dump(), final_score=final_score, bm25_like_score=bm25_like_score)


class ExternalCacheEntry(BaseModel):
    fetched_at: datetime
    courses: List[Course] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")
