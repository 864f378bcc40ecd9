"""
API contract schemas for the discovery endpoints.

These shapes are the compatibility contract with the surrounding application,
so field names follow the wire format (snake_case, `per_page`, `free_boost`).
"""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .course import ScoredCourse


class SearchFilters(BaseModel):
    category: Optional[str] = None
    level: Optional[str] = None
    is_free: Optional[bool] = Field(default=None, description="Accepts booleans or the strings 'true'/'false'")

    model_config = ConfigDict(extra="ignore")

    @field_validator("category", "level", mode="before")
    @classmethod
    def _blank_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("is_free", mode="before")
    @classmethod
    def _parse_free(cls, v):
        if v is None or isinstance(v, bool):
            return v
        if isinstance(v, str):
            lowered = v.strip().lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
            if lowered == "":
                return None
        raise ValueError("is_free must be a boolean or 'true'/'false'")


class SearchRequest(BaseModel):
    q: Optional[str] = ""
    filters: SearchFilters = Field(default_factory=SearchFilters)
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=24, ge=1)
    free_boost: Optional[float] = Field(default=None, gt=0, description="Defaults to the configured FREE_BOOST")
    action: Optional[Literal["sync"]] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("filters", mode="before")
    @classmethod
    def _null_filters(cls, v):
        return {} if v is None else v

    @field_validator("page", "per_page", "free_boost", mode="before")
    @classmethod
    def _null_is_default(cls, v, info):
        # Clients send `null` or 0 to mean "use the default"
        if v is None or v == 0:
            return {"page": 1, "per_page": 24}.get(info.field_name)
        return v


class SearchResponse(BaseModel):
    total: int
    page: int
    per_page: int
    results: List[ScoredCourse] = Field(default_factory=list)


class SyncResponse(BaseModel):
    success: bool
    message: str
    count: int


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
