"""Search resource configuration and search engine request/response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class SearchResourceConfig(BaseModel):
    """How a relational resource is served by the search engine.

    The filter and sort lists are allow-lists: anything a caller supplies
    outside them is dropped before the query reaches the engine.
    """

    model_config = {"frozen": True}

    collection_name: str = Field(min_length=1)
    search_fields: tuple[str, ...] = Field(min_length=1)
    filter_fields: frozenset[str] = frozenset()
    sort_fields: frozenset[str] = frozenset()
    facet_fields: tuple[str, ...] = ()

    @field_validator("search_fields", "facet_fields")
    @classmethod
    def _no_blank_names(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(v.strip() for v in value)
        if any(not v for v in cleaned):
            msg = "field names must be non-empty"
            raise ValueError(msg)
        return cleaned

    def allows_filter(self, field: str) -> bool:
        return field in self.filter_fields

    def allows_sort(self, field: str) -> bool:
        return field in self.sort_fields


class SearchParams(BaseModel):
    """Parameters of a collection search, named as the engine expects them."""

    q: str
    query_by: str
    filter_by: str | None = None
    sort_by: str | None = None
    per_page: int = 10
    page: int = 1
    facet_by: str | None = None
    num_typos: int = 2
    prefix: bool = True
    drop_tokens_threshold: int | None = None
    typo_tokens_threshold: int | None = None

    def to_query(self) -> dict[str, str | int]:
        """Flatten to query-string parameters, omitting unset values."""
        query: dict[str, str | int] = {}
        for key, value in self.model_dump(exclude_none=True).items():
            query[key] = str(value).lower() if isinstance(value, bool) else value
        return query


class SearchHit(BaseModel):
    document: dict[str, Any]
    text_match: int | None = None
    highlights: list[dict[str, Any]] = []


class SearchResponse(BaseModel):
    found: int = 0
    hits: list[SearchHit] = []
    facet_counts: list[dict[str, Any]] = []
    page: int = 1
    search_time_ms: int | None = None
