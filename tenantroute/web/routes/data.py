"""Uniform CRUD routes over the composite data provider."""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from tenantroute.models.params import (
    QUERY_KEY,
    CreateParams,
    DeleteManyParams,
    DeleteParams,
    GetManyParams,
    GetManyReferenceParams,
    GetOneParams,
    IdsResult,
    ListParams,
    ListResult,
    Pagination,
    RecordResult,
    RecordsResult,
    Sort,
    UpdateManyParams,
    UpdateParams,
)
from tenantroute.provider import CompositeDataProvider
from tenantroute.types import SortOrder
from tenantroute.web.dependencies import get_request_provider

router = APIRouter(prefix="/api/data", tags=["data"])


class IdsRequest(BaseModel):
    ids: list[str | int]


def _filter(raw: str | None, q: str | None) -> dict[str, Any]:
    if raw:
        try:
            parsed = json.loads(raw)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=f"Invalid filter JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise HTTPException(status_code=422, detail="filter must be a JSON object")
    else:
        parsed = {}
    if q is not None:
        parsed[QUERY_KEY] = q
    return parsed


def _list_params(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=1000),
    sort: str | None = None,
    order: SortOrder = SortOrder.ASC,
    filter_json: str | None = Query(None, alias="filter"),
    q: str | None = None,
) -> ListParams:
    return ListParams(
        pagination=Pagination(page=page, per_page=per_page),
        sort=Sort(field=sort, order=order),
        filter=_filter(filter_json, q),
    )


@router.get("/{resource}", response_model=ListResult, response_model_exclude_none=True)
async def get_list(
    resource: str,
    params: ListParams = Depends(_list_params),
    provider: CompositeDataProvider = Depends(get_request_provider),
) -> ListResult:
    return await provider.get_list(resource, params)


@router.post("/{resource}/get-many", response_model=RecordsResult)
async def get_many(
    resource: str,
    body: IdsRequest,
    provider: CompositeDataProvider = Depends(get_request_provider),
) -> RecordsResult:
    return await provider.get_many(resource, GetManyParams(ids=body.ids))


@router.get(
    "/{resource}/reference/{target}/{record_id}",
    response_model=ListResult,
    response_model_exclude_none=True,
)
async def get_many_reference(
    resource: str,
    target: str,
    record_id: str,
    params: ListParams = Depends(_list_params),
    provider: CompositeDataProvider = Depends(get_request_provider),
) -> ListResult:
    reference = GetManyReferenceParams(**params.model_dump(), target=target, id=record_id)
    return await provider.get_many_reference(resource, reference)


@router.get("/{resource}/{record_id}", response_model=RecordResult)
async def get_one(
    resource: str,
    record_id: str,
    provider: CompositeDataProvider = Depends(get_request_provider),
) -> RecordResult:
    return await provider.get_one(resource, GetOneParams(id=record_id))


@router.post("/{resource}", status_code=201, response_model=RecordResult)
async def create(
    resource: str,
    body: dict[str, Any],
    provider: CompositeDataProvider = Depends(get_request_provider),
) -> RecordResult:
    return await provider.create(resource, CreateParams(data=body))


@router.put("/{resource}/{record_id}", response_model=RecordResult)
async def update(
    resource: str,
    record_id: str,
    body: dict[str, Any],
    provider: CompositeDataProvider = Depends(get_request_provider),
) -> RecordResult:
    return await provider.update(resource, UpdateParams(id=record_id, data=body))


@router.patch("/{resource}", response_model=IdsResult)
async def update_many(
    resource: str,
    body: UpdateManyParams,
    provider: CompositeDataProvider = Depends(get_request_provider),
) -> IdsResult:
    return await provider.update_many(resource, body)


@router.delete("/{resource}/{record_id}", response_model=RecordResult)
async def delete(
    resource: str,
    record_id: str,
    provider: CompositeDataProvider = Depends(get_request_provider),
) -> RecordResult:
    return await provider.delete(resource, DeleteParams(id=record_id))


@router.post("/{resource}/delete-many", response_model=IdsResult)
async def delete_many(
    resource: str,
    body: IdsRequest,
    provider: CompositeDataProvider = Depends(get_request_provider),
) -> IdsResult:
    return await provider.delete_many(resource, DeleteManyParams(ids=body.ids))
