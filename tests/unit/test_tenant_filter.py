"""Unit tests for tenant filter injection."""

from __future__ import annotations

import pytest

from tenantroute.models.params import CreateParams, GetManyReferenceParams, ListParams
from tenantroute.routing.registry import ResourceRegistry
from tenantroute.routing.tenant_filter import TenantFilterInjector
from tenantroute.scope.store import TenantScope

ACTIVE = TenantScope(active_tenant_id="tenant-2")
VIEW_ALL = TenantScope(active_tenant_id="tenant-2", view_all_mode=True)
NO_TENANT = TenantScope()


@pytest.mark.unit
class TestInjectFilter:
    def test_injects_active_tenant(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        result = injector.inject_filter("documents", ListParams(), ACTIVE)
        assert result.filter == {"tenant_id": "tenant-2"}

    def test_overwrites_caller_tenant(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        params = ListParams(filter={"tenant_id": "tenant-1", "status": "draft"})
        result = injector.inject_filter("documents", params, ACTIVE)
        assert result.filter == {"tenant_id": "tenant-2", "status": "draft"}

    def test_does_not_mutate_input(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        params = ListParams(filter={"status": "draft"})
        injector.inject_filter("documents", params, ACTIVE)
        assert params.filter == {"status": "draft"}

    def test_view_all_leaves_filter_unchanged(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        params = ListParams(filter={"status": "draft"})
        result = injector.inject_filter("documents", params, VIEW_ALL)
        assert result.filter == {"status": "draft"}
        assert "tenant_id" not in result.filter

    def test_no_tenant_leaves_filter_unchanged(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        result = injector.inject_filter("documents", ListParams(), NO_TENANT)
        assert result.filter == {}

    def test_plain_resource_untouched(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        result = injector.inject_filter("tenants", ListParams(), ACTIVE)
        assert result.filter == {}

    def test_native_resource_untouched(self) -> None:
        registry = ResourceRegistry(native_search=["shared"], tenant_scoped=["shared"])
        injector = TenantFilterInjector(registry)
        result = injector.inject_filter("shared", ListParams(), ACTIVE)
        assert result.filter == {}

    def test_reference_params_keep_their_type(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        params = GetManyReferenceParams(target="author_id", id=7)
        result = injector.inject_filter("documents", params, ACTIVE)
        assert isinstance(result, GetManyReferenceParams)
        assert result.target == "author_id"
        assert result.filter["tenant_id"] == "tenant-2"


@pytest.mark.unit
class TestInjectPayload:
    def test_stamps_new_record(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        result = injector.inject_payload(
            "documents", CreateParams(data={"title": "a", "tenant_id": "other"}), ACTIVE
        )
        assert result.data == {"title": "a", "tenant_id": "tenant-2"}

    def test_view_all_leaves_payload_unchanged(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        result = injector.inject_payload("documents", CreateParams(data={"title": "a"}), VIEW_ALL)
        assert result.data == {"title": "a"}

    def test_plain_resource_payload_unchanged(self, registry: ResourceRegistry) -> None:
        injector = TenantFilterInjector(registry)
        result = injector.inject_payload("tenants", CreateParams(data={"name": "x"}), ACTIVE)
        assert result.data == {"name": "x"}
