"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from tenantroute.backends.relational import RelationalBackend
from tenantroute.backends.search import SearchBackend
from tenantroute.models.params import IdsResult, ListResult, RecordResult, RecordsResult
from tenantroute.models.search import SearchHit, SearchResourceConfig, SearchResponse
from tenantroute.provider import CompositeDataProvider
from tenantroute.routing.registry import ResourceRegistry
from tenantroute.scope.store import InMemoryStorage, ScopeStore
from tenantroute.search.fallback import RetryPolicy

DOCUMENTS_CONFIG = SearchResourceConfig(
    collection_name="documents",
    search_fields=("title", "content"),
    filter_fields=frozenset({"tenant_id", "status"}),
    sort_fields=frozenset({"created_at", "title"}),
    facet_fields=("status",),
)

FAST_RETRY = RetryPolicy(max_attempts=3, delay_ms=0, backoff_factor=2.0, max_delay_ms=0)


@pytest.fixture()
def relational() -> AsyncMock:
    """Relational backend double that answers every call with canned data."""
    backend = AsyncMock(spec=RelationalBackend)
    backend.get_list.return_value = ListResult(data=[{"id": "r1"}], total=1)
    backend.get_many_reference.return_value = ListResult(data=[{"id": "r2"}], total=1)
    backend.get_one.return_value = RecordResult(data={"id": "r1"})
    backend.get_many.return_value = RecordsResult(data=[{"id": "r1"}])
    backend.create.return_value = RecordResult(data={"id": "new"})
    backend.update.return_value = RecordResult(data={"id": "r1"})
    backend.update_many.return_value = IdsResult(data=["r1"])
    backend.delete.return_value = RecordResult(data={"id": "r1"})
    backend.delete_many.return_value = IdsResult(data=["r1"])
    return backend


@pytest.fixture()
def search() -> AsyncMock:
    """Search backend double with one matching hit."""
    backend = AsyncMock(spec=SearchBackend)
    backend.search.return_value = SearchResponse(
        found=1,
        hits=[SearchHit(document={"id": "s1", "title": "Invoice 42"})],
        facet_counts=[{"field_name": "status", "counts": [{"value": "published", "count": 1}]}],
    )
    return backend


@pytest.fixture()
def scope() -> ScopeStore:
    return ScopeStore(InMemoryStorage())


@pytest.fixture()
def registry() -> ResourceRegistry:
    return ResourceRegistry(
        native_search=["typesense-keys", "typesense-aliases"],
        tenant_scoped=["documents", "audit_logs"],
        search_resources={"documents": DOCUMENTS_CONFIG},
    )


@pytest.fixture()
def provider(
    relational: AsyncMock, search: AsyncMock, scope: ScopeStore, registry: ResourceRegistry
) -> CompositeDataProvider:
    return CompositeDataProvider(
        relational=relational,
        search=search,
        scope=scope,
        registry=registry,
        retry_policy=FAST_RETRY,
    )


@pytest.fixture()
def documents_config() -> SearchResourceConfig:
    return DOCUMENTS_CONFIG


@pytest.fixture()
def fast_retry() -> RetryPolicy:
    return FAST_RETRY
