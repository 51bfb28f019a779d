"""Tenant scope API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tenantroute.scope.store import ScopeStore
from tenantroute.web.dependencies import get_scope_store

router = APIRouter(prefix="/api/scope", tags=["scope"])


class ScopeResponse(BaseModel):
    active_tenant_id: str | None
    selected_tenant_id: str | None
    view_all_mode: bool


class SelectTenantRequest(BaseModel):
    tenant_id: str | None = None


class ViewAllRequest(BaseModel):
    enabled: bool


def _describe(scope: ScopeStore) -> ScopeResponse:
    snapshot = scope.snapshot()
    return ScopeResponse(
        active_tenant_id=snapshot.effective_tenant_id,
        selected_tenant_id=snapshot.active_tenant_id,
        view_all_mode=snapshot.view_all_mode,
    )


@router.get("", response_model=ScopeResponse)
async def get_scope(scope: ScopeStore = Depends(get_scope_store)) -> ScopeResponse:
    return _describe(scope)


@router.put("/tenant", response_model=ScopeResponse)
async def select_tenant(
    body: SelectTenantRequest, scope: ScopeStore = Depends(get_scope_store)
) -> ScopeResponse:
    if body.tenant_id:
        scope.set_active_tenant(body.tenant_id)
    else:
        scope.clear_active_tenant()
    return _describe(scope)


@router.put("/view-all", response_model=ScopeResponse)
async def set_view_all(
    body: ViewAllRequest, scope: ScopeStore = Depends(get_scope_store)
) -> ScopeResponse:
    scope.set_view_all_mode(body.enabled)
    return _describe(scope)
