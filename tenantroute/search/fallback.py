"""Try the search engine for free-text listings, fall back to the relational store.

A search attempt produces an explicit outcome. Only a ``SearchFulfilled``
outcome is returned to the caller; every other outcome hands the original
params to the relational backend, so exactly one backend serves each call.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import structlog

from tenantroute.backends.relational import RelationalBackend
from tenantroute.backends.search import SearchBackend
from tenantroute.models.params import GetManyReferenceParams, ListParams, ListResult
from tenantroute.models.search import SearchResourceConfig, SearchResponse
from tenantroute.routing.tenant_filter import TENANT_FIELD
from tenantroute.search.query_builder import SearchQuery, build_search_query
from tenantroute.utils.retry import with_retry

logger = structlog.get_logger(__name__)


class SkipReason(StrEnum):
    NO_QUERY = "no_query"
    NOT_SEARCHABLE = "not_searchable"
    SCOPE_NOT_FILTERABLE = "scope_not_filterable"
    SEARCH_UNAVAILABLE = "search_unavailable"


@dataclass(frozen=True, slots=True)
class SearchFulfilled:
    result: ListResult


@dataclass(frozen=True, slots=True)
class SearchSkipped:
    reason: SkipReason


@dataclass(frozen=True, slots=True)
class SearchFailed:
    error: Exception


SearchOutcome = SearchFulfilled | SearchSkipped | SearchFailed


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_ms: int = 500
    backoff_factor: float = 2.0
    max_delay_ms: int = 10_000


def to_list_result(response: SearchResponse) -> ListResult:
    return ListResult(
        data=[hit.document for hit in response.hits],
        total=response.found,
        facets=response.facet_counts or None,
    )


class SearchFallbackOrchestrator:
    """Runs the search-then-fallback sequence for hybrid search resources."""

    def __init__(
        self,
        search: SearchBackend | None,
        relational: RelationalBackend,
        *,
        retry_policy: RetryPolicy | None = None,
        num_typos: int = 2,
        prefix: bool = True,
    ) -> None:
        self._search = search
        self._relational = relational
        self._retry = retry_policy or RetryPolicy()
        self._num_typos = num_typos
        self._prefix = prefix

    def plan(
        self,
        resource: str,
        params: ListParams,
        config: SearchResourceConfig,
        required_filters: Mapping[str, Any] | None = None,
    ) -> SearchQuery | SearchSkipped:
        """Build the engine query or explain why search does not apply.

        ``required_filters`` must reach the engine intact; if any of them is
        outside the allow-list the search would return a wider result set
        than the relational path, so it is skipped instead.
        """
        for key in required_filters or {}:
            if not config.allows_filter(key):
                reason = (
                    SkipReason.SCOPE_NOT_FILTERABLE
                    if key == TENANT_FIELD
                    else SkipReason.NOT_SEARCHABLE
                )
                return SearchSkipped(reason)
        query = build_search_query(
            resource,
            params,
            config,
            extra_filters=required_filters,
            num_typos=self._num_typos,
            prefix=self._prefix,
        )
        if query is None:
            return SearchSkipped(SkipReason.NO_QUERY)
        return query

    async def attempt(self, resource: str, query: SearchQuery) -> SearchOutcome:
        """Execute the query with bounded retry. Never raises."""
        search = self._search
        if search is None:
            return SearchSkipped(SkipReason.SEARCH_UNAVAILABLE)
        try:
            response = await with_retry(
                lambda: search.search(query.collection, query.params),
                max_attempts=self._retry.max_attempts,
                delay_ms=self._retry.delay_ms,
                backoff_factor=self._retry.backoff_factor,
                max_delay_ms=self._retry.max_delay_ms,
                name=f"search:{resource}",
            )
        except Exception as e:  # noqa: BLE001 - every search failure becomes a fallback
            return SearchFailed(e)
        return SearchFulfilled(to_list_result(response))

    async def get_list(
        self, resource: str, params: ListParams, config: SearchResourceConfig
    ) -> ListResult:
        tenant_id = params.filter.get(TENANT_FIELD)
        required = {TENANT_FIELD: tenant_id} if tenant_id is not None else None
        outcome = await self._run(resource, params, config, required)
        if isinstance(outcome, SearchFulfilled):
            return outcome.result
        self._log_fallback(resource, outcome)
        return await self._relational.get_list(resource, params)

    async def get_many_reference(
        self, resource: str, params: GetManyReferenceParams, config: SearchResourceConfig
    ) -> ListResult:
        required: dict[str, Any] = {params.target: params.id}
        tenant_id = params.filter.get(TENANT_FIELD)
        if tenant_id is not None:
            required[TENANT_FIELD] = tenant_id
        outcome = await self._run(resource, params, config, required)
        if isinstance(outcome, SearchFulfilled):
            return outcome.result
        self._log_fallback(resource, outcome)
        return await self._relational.get_many_reference(resource, params)

    async def _run(
        self,
        resource: str,
        params: ListParams,
        config: SearchResourceConfig,
        required: Mapping[str, Any] | None,
    ) -> SearchOutcome:
        planned = self.plan(resource, params, config, required)
        if isinstance(planned, SearchSkipped):
            return planned
        return await self.attempt(resource, planned)

    @staticmethod
    def _log_fallback(resource: str, outcome: SearchSkipped | SearchFailed) -> None:
        if isinstance(outcome, SearchFailed):
            logger.error(
                "search_fallback",
                resource=resource,
                reason="search_failed",
                error=str(outcome.error),
                error_type=type(outcome.error).__name__,
            )
        else:
            logger.debug("search_fallback", resource=resource, reason=str(outcome.reason))
