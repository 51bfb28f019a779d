"""Composite data access facade: one entry point for every CRUD operation.

Per call the resource is classified once and the tenant scope is read once:

* native search resources go to the search engine's admin endpoints,
* listings with a free-text query on hybrid resources try the search
  engine first and fall back to the relational store,
* everything else passes through the tenant filter to the relational store.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from tenantroute.backends.native_admin import NativeSearchProvider
from tenantroute.backends.relational import RelationalBackend, SupabaseBackend
from tenantroute.backends.search import SearchBackend, create_search_backend
from tenantroute.config.settings import Settings, get_settings
from tenantroute.exceptions import ConfigurationError
from tenantroute.models.params import (
    CreateParams,
    DeleteManyParams,
    DeleteParams,
    GetManyParams,
    GetManyReferenceParams,
    GetOneParams,
    IdsResult,
    ListParams,
    ListResult,
    RecordResult,
    RecordsResult,
    UpdateManyParams,
    UpdateParams,
)
from tenantroute.routing.registry import DEFAULT_SEARCH_RESOURCES, ResourceRegistry
from tenantroute.routing.tenant_filter import TenantFilterInjector
from tenantroute.scope.store import JsonFileStorage, ScopeStore
from tenantroute.search.fallback import RetryPolicy, SearchFallbackOrchestrator
from tenantroute.types import ResourceClass

logger = structlog.get_logger(__name__)


class CompositeDataProvider:
    """Routes uniform CRUD calls to the relational store or the search engine.

    Holds no per-call state: the scope store is the only mutable input and
    it is snapshotted at the start of each call.
    """

    def __init__(
        self,
        *,
        relational: RelationalBackend,
        search: SearchBackend | None,
        scope: ScopeStore,
        registry: ResourceRegistry,
        retry_policy: RetryPolicy | None = None,
        num_typos: int = 2,
        prefix: bool = True,
    ) -> None:
        self._relational = relational
        self._search = search
        self._scope = scope
        self._registry = registry
        self._retry_policy = retry_policy
        self._num_typos = num_typos
        self._prefix = prefix
        self._injector = TenantFilterInjector(registry)
        self._native = NativeSearchProvider(search)
        self._fallback = SearchFallbackOrchestrator(
            search, relational, retry_policy=retry_policy, num_typos=num_typos, prefix=prefix
        )

    @property
    def registry(self) -> ResourceRegistry:
        return self._registry

    @property
    def scope(self) -> ScopeStore:
        return self._scope

    @property
    def search_backend(self) -> SearchBackend | None:
        return self._search

    def with_access_token(self, access_token: str) -> CompositeDataProvider:
        """Provider whose relational calls run as the token's user.

        Scope, classification and the search backend are shared.
        """
        return CompositeDataProvider(
            relational=self._relational.with_access_token(access_token),
            search=self._search,
            scope=self._scope,
            registry=self._registry,
            retry_policy=self._retry_policy,
            num_typos=self._num_typos,
            prefix=self._prefix,
        )

    def _native_provider(self, resource: str) -> NativeSearchProvider | None:
        if self._registry.classify(resource) is not ResourceClass.NATIVE_SEARCH:
            return None
        if self._search is None:
            logger.error("search_backend_missing", resource=resource)
            raise ConfigurationError(
                f"Search backend is not configured; {resource} has no relational equivalent"
            )
        return self._native

    async def get_list(self, resource: str, params: ListParams) -> ListResult:
        native = self._native_provider(resource)
        if native is not None:
            return await native.get_list(resource, params)
        scoped = self._injector.inject_filter(resource, params, self._scope.snapshot())
        config = self._registry.search_config(resource)
        if config is not None and scoped.query is not None:
            return await self._fallback.get_list(resource, scoped, config)
        return await self._relational.get_list(resource, scoped)

    async def get_one(self, resource: str, params: GetOneParams) -> RecordResult:
        native = self._native_provider(resource)
        if native is not None:
            return await native.get_one(resource, params)
        return await self._relational.get_one(resource, params)

    async def get_many(self, resource: str, params: GetManyParams) -> RecordsResult:
        native = self._native_provider(resource)
        if native is not None:
            return await native.get_many(resource, params)
        return await self._relational.get_many(resource, params)

    async def get_many_reference(
        self, resource: str, params: GetManyReferenceParams
    ) -> ListResult:
        native = self._native_provider(resource)
        if native is not None:
            return await native.get_many_reference(resource, params)
        scoped = self._injector.inject_filter(resource, params, self._scope.snapshot())
        config = self._registry.search_config(resource)
        if config is not None and scoped.query is not None:
            return await self._fallback.get_many_reference(resource, scoped, config)
        return await self._relational.get_many_reference(resource, scoped)

    async def create(self, resource: str, params: CreateParams) -> RecordResult:
        native = self._native_provider(resource)
        if native is not None:
            return await native.create(resource, params)
        scoped = self._injector.inject_payload(resource, params, self._scope.snapshot())
        return await self._relational.create(resource, scoped)

    async def update(self, resource: str, params: UpdateParams) -> RecordResult:
        native = self._native_provider(resource)
        if native is not None:
            return await native.update(resource, params)
        return await self._relational.update(resource, params)

    async def update_many(self, resource: str, params: UpdateManyParams) -> IdsResult:
        native = self._native_provider(resource)
        if native is not None:
            return await native.update_many(resource, params)
        return await self._relational.update_many(resource, params)

    async def delete(self, resource: str, params: DeleteParams) -> RecordResult:
        native = self._native_provider(resource)
        if native is not None:
            return await native.delete(resource, params)
        return await self._relational.delete(resource, params)

    async def delete_many(self, resource: str, params: DeleteManyParams) -> IdsResult:
        native = self._native_provider(resource)
        if native is not None:
            return await native.delete_many(resource, params)
        return await self._relational.delete_many(resource, params)


def create_data_provider(
    settings: Settings | None = None, scope: ScopeStore | None = None
) -> CompositeDataProvider:
    """Factory: wire backends, scope and classification from settings."""
    settings = settings or get_settings()
    relational = SupabaseBackend(
        settings.supabase_url or "",
        settings.supabase_key or "",
        schema=settings.supabase_schema,
        timeout=settings.supabase_timeout_seconds,
        search_columns=settings.relational_search_columns,
    )
    search = create_search_backend(
        settings.typesense_url,
        settings.typesense_api_key,
        additional_nodes=settings.typesense_additional_nodes,
        timeout=settings.typesense_timeout_seconds,
        num_retries=settings.typesense_num_retries,
        retry_interval_seconds=settings.typesense_retry_interval_seconds,
        healthcheck_interval_seconds=settings.typesense_healthcheck_interval_seconds,
    )
    registry = ResourceRegistry(
        native_search=settings.native_search_resources,
        tenant_scoped=settings.tenant_scoped_resources,
        search_resources=DEFAULT_SEARCH_RESOURCES,
    )
    if scope is None:
        scope = ScopeStore(JsonFileStorage(Path(settings.scope_state_path)))
    return CompositeDataProvider(
        relational=relational,
        search=search,
        scope=scope,
        registry=registry,
        retry_policy=RetryPolicy(
            max_attempts=settings.search_retry_attempts,
            delay_ms=settings.search_retry_delay_ms,
            backoff_factor=settings.search_retry_backoff,
            max_delay_ms=settings.search_retry_max_delay_ms,
        ),
        num_typos=settings.search_num_typos,
        prefix=settings.search_prefix,
    )
