"""Resource classification: which backend owns a resource."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import structlog
from pydantic import ValidationError

from tenantroute.exceptions import ConfigurationError
from tenantroute.models.search import SearchResourceConfig
from tenantroute.types import ResourceClass

logger = structlog.get_logger(__name__)

DEFAULT_SEARCH_RESOURCES: dict[str, SearchResourceConfig] = {
    "documents": SearchResourceConfig(
        collection_name="documents",
        search_fields=("title", "content", "url"),
        filter_fields=frozenset({"tenant_id", "status", "created_at"}),
        sort_fields=frozenset({"created_at", "updated_at", "title"}),
        facet_fields=("status", "tenant_id"),
    ),
    "search_logs": SearchResourceConfig(
        collection_name="search_logs",
        search_fields=("query", "user_id"),
        filter_fields=frozenset({"tenant_id", "created_at", "result_count"}),
        sort_fields=frozenset({"created_at", "result_count"}),
        facet_fields=("tenant_id",),
    ),
}


class ResourceRegistry:
    """Static classification of resource names plus hybrid search configs.

    Native search resources take precedence over tenant-scoped ones when a
    name appears in both sets.
    """

    def __init__(
        self,
        *,
        native_search: Iterable[str] = (),
        tenant_scoped: Iterable[str] = (),
        search_resources: Mapping[str, SearchResourceConfig] | None = None,
    ) -> None:
        self._native_search = frozenset(native_search)
        self._tenant_scoped = frozenset(tenant_scoped)
        self._search_resources: dict[str, SearchResourceConfig] = dict(search_resources or {})

    def classify(self, resource: str) -> ResourceClass:
        if resource in self._native_search:
            return ResourceClass.NATIVE_SEARCH
        if resource in self._tenant_scoped:
            return ResourceClass.TENANT_SCOPED
        return ResourceClass.PLAIN

    def search_config(self, resource: str) -> SearchResourceConfig | None:
        return self._search_resources.get(resource)

    def register_search_resource(
        self, resource: str, config: SearchResourceConfig | Mapping[str, object]
    ) -> SearchResourceConfig:
        """Add a hybrid search config. Existing entries cannot be replaced."""
        if resource in self._search_resources:
            raise ConfigurationError(f"Search resource already registered: {resource}")
        if resource in self._native_search:
            raise ConfigurationError(f"{resource} is a native search resource")
        if not isinstance(config, SearchResourceConfig):
            try:
                config = SearchResourceConfig.model_validate(config)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid search config for {resource}: {e}") from e
        self._search_resources[resource] = config
        logger.info(
            "search_resource_registered",
            resource=resource,
            collection=config.collection_name,
        )
        return config

    def search_resources(self) -> list[str]:
        return sorted(self._search_resources)

    @property
    def native_search_resources(self) -> frozenset[str]:
        return self._native_search

    @property
    def tenant_scoped_resources(self) -> frozenset[str]:
        return self._tenant_scoped
