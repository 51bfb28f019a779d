"""Request envelopes and result shapes for the uniform CRUD contract."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from tenantroute.types import Identifier, SortOrder

QUERY_KEY = "q"  # reserved filter key for free-text search


class Pagination(BaseModel):
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=10, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class Sort(BaseModel):
    """Sort order; a None field leaves ordering to the backend."""

    field: str | None = None
    order: SortOrder = SortOrder.ASC


class ListParams(BaseModel):
    pagination: Pagination = Pagination()
    sort: Sort = Sort()
    filter: dict[str, Any] = {}

    @property
    def query(self) -> str | None:
        """Free-text query, or None when absent or blank."""
        value = self.filter.get(QUERY_KEY)
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class GetOneParams(BaseModel):
    id: Identifier


class GetManyParams(BaseModel):
    ids: list[Identifier]


class GetManyReferenceParams(ListParams):
    target: str
    id: Identifier


class CreateParams(BaseModel):
    data: dict[str, Any]


class UpdateParams(BaseModel):
    id: Identifier
    data: dict[str, Any]
    previous_data: dict[str, Any] | None = None


class UpdateManyParams(BaseModel):
    ids: list[Identifier]
    data: dict[str, Any]


class DeleteParams(BaseModel):
    id: Identifier
    previous_data: dict[str, Any] | None = None


class DeleteManyParams(BaseModel):
    ids: list[Identifier]


class ListResult(BaseModel):
    data: list[dict[str, Any]]
    total: int
    facets: list[dict[str, Any]] | None = None  # only set when served by search


class RecordResult(BaseModel):
    data: dict[str, Any]


class RecordsResult(BaseModel):
    data: list[dict[str, Any]]


class IdsResult(BaseModel):
    data: list[Identifier]
