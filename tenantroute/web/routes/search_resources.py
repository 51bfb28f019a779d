"""Hybrid search resource registration routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from tenantroute.exceptions import ConfigurationError
from tenantroute.models.search import SearchResourceConfig
from tenantroute.provider import CompositeDataProvider
from tenantroute.web.dependencies import get_data_provider

router = APIRouter(prefix="/api/search-resources", tags=["search"])


@router.get("")
async def list_search_resources(
    provider: CompositeDataProvider = Depends(get_data_provider),
) -> dict[str, list[str]]:
    return {"resources": provider.registry.search_resources()}


@router.post("/{resource}", status_code=201)
async def register_search_resource(
    resource: str,
    body: SearchResourceConfig,
    provider: CompositeDataProvider = Depends(get_data_provider),
) -> SearchResourceConfig:
    try:
        return provider.registry.register_search_resource(resource, body)
    except ConfigurationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
