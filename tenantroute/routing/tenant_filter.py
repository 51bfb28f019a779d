"""Narrow list and create calls on tenant-scoped resources to the active tenant."""

from __future__ import annotations

from typing import TypeVar

import structlog

from tenantroute.models.params import CreateParams, ListParams
from tenantroute.routing.registry import ResourceRegistry
from tenantroute.scope.store import TenantScope
from tenantroute.types import ResourceClass

logger = structlog.get_logger(__name__)

TENANT_FIELD = "tenant_id"

L = TypeVar("L", bound=ListParams)


class TenantFilterInjector:
    """Stamps ``tenant_id`` onto outgoing filters and create payloads.

    The scope is authoritative: a caller-supplied ``tenant_id`` is
    overwritten, never merged. Reads by id, updates and deletes are left to
    the backend's own access control.
    """

    def __init__(self, registry: ResourceRegistry) -> None:
        self._registry = registry

    def _tenant_for(self, resource: str, scope: TenantScope) -> str | None:
        if self._registry.classify(resource) is not ResourceClass.TENANT_SCOPED:
            return None
        return scope.effective_tenant_id

    def inject_filter(self, resource: str, params: L, scope: TenantScope) -> L:
        """Apply to ``get_list`` and ``get_many_reference`` params."""
        tenant_id = self._tenant_for(resource, scope)
        if tenant_id is None:
            return params
        logger.debug("tenant_filter_injected", resource=resource, tenant_id=tenant_id)
        return params.model_copy(update={"filter": {**params.filter, TENANT_FIELD: tenant_id}})

    def inject_payload(
        self, resource: str, params: CreateParams, scope: TenantScope
    ) -> CreateParams:
        """Apply to ``create`` params."""
        tenant_id = self._tenant_for(resource, scope)
        if tenant_id is None:
            return params
        logger.debug("tenant_payload_stamped", resource=resource, tenant_id=tenant_id)
        return params.model_copy(update={"data": {**params.data, TENANT_FIELD: tenant_id}})
