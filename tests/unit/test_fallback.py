"""Unit tests for the search-then-fallback orchestrator."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from structlog.testing import capture_logs

from tenantroute.exceptions import SearchRuntimeError
from tenantroute.models.params import GetManyReferenceParams, ListParams
from tenantroute.models.search import SearchResourceConfig
from tenantroute.search.fallback import (
    RetryPolicy,
    SearchFailed,
    SearchFallbackOrchestrator,
    SearchFulfilled,
    SearchSkipped,
    SkipReason,
)
from tenantroute.search.query_builder import SearchQuery

UNSCOPED_CONFIG = SearchResourceConfig(
    collection_name="search_logs",
    search_fields=("query",),
    filter_fields=frozenset({"status"}),
)


@pytest.mark.unit
class TestPlan:
    def test_no_query_is_skipped(
        self, search: AsyncMock, relational: AsyncMock, documents_config: SearchResourceConfig
    ) -> None:
        orchestrator = SearchFallbackOrchestrator(search, relational)
        planned = orchestrator.plan("documents", ListParams(), documents_config)
        assert planned == SearchSkipped(SkipReason.NO_QUERY)

    def test_tenant_not_filterable_is_skipped(
        self, search: AsyncMock, relational: AsyncMock
    ) -> None:
        orchestrator = SearchFallbackOrchestrator(search, relational)
        params = ListParams(filter={"q": "x", "tenant_id": "t1"})
        planned = orchestrator.plan("search_logs", params, UNSCOPED_CONFIG, {"tenant_id": "t1"})
        assert planned == SearchSkipped(SkipReason.SCOPE_NOT_FILTERABLE)

    def test_reference_target_not_filterable_is_skipped(
        self, search: AsyncMock, relational: AsyncMock, documents_config: SearchResourceConfig
    ) -> None:
        orchestrator = SearchFallbackOrchestrator(search, relational)
        params = ListParams(filter={"q": "x"})
        planned = orchestrator.plan("documents", params, documents_config, {"author_id": 3})
        assert planned == SearchSkipped(SkipReason.NOT_SEARCHABLE)

    def test_query_carries_tenant(
        self, search: AsyncMock, relational: AsyncMock, documents_config: SearchResourceConfig
    ) -> None:
        orchestrator = SearchFallbackOrchestrator(search, relational, num_typos=1, prefix=False)
        params = ListParams(filter={"q": "invoice", "tenant_id": "t1"})
        planned = orchestrator.plan("documents", params, documents_config, {"tenant_id": "t1"})
        assert isinstance(planned, SearchQuery)
        assert planned.params.filter_by == "tenant_id:=`t1`"
        assert planned.params.num_typos == 1
        assert planned.params.prefix is False


@pytest.mark.unit
class TestAttempt:
    @pytest.mark.asyncio
    async def test_success(
        self,
        search: AsyncMock,
        relational: AsyncMock,
        documents_config: SearchResourceConfig,
        fast_retry: RetryPolicy,
    ) -> None:
        orchestrator = SearchFallbackOrchestrator(search, relational, retry_policy=fast_retry)
        query = orchestrator.plan("documents", ListParams(filter={"q": "x"}), documents_config)
        assert isinstance(query, SearchQuery)
        outcome = await orchestrator.attempt("documents", query)
        assert isinstance(outcome, SearchFulfilled)
        assert outcome.result.data == [{"id": "s1", "title": "Invoice 42"}]
        assert outcome.result.total == 1
        assert outcome.result.facets is not None

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(
        self,
        search: AsyncMock,
        relational: AsyncMock,
        documents_config: SearchResourceConfig,
        fast_retry: RetryPolicy,
    ) -> None:
        ok = search.search.return_value
        search.search.side_effect = [SearchRuntimeError("timeout"), ok]
        orchestrator = SearchFallbackOrchestrator(search, relational, retry_policy=fast_retry)
        query = orchestrator.plan("documents", ListParams(filter={"q": "x"}), documents_config)
        assert isinstance(query, SearchQuery)
        outcome = await orchestrator.attempt("documents", query)
        assert isinstance(outcome, SearchFulfilled)
        assert search.search.call_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_return_failure(
        self,
        search: AsyncMock,
        relational: AsyncMock,
        documents_config: SearchResourceConfig,
        fast_retry: RetryPolicy,
    ) -> None:
        search.search.side_effect = SearchRuntimeError("down")
        orchestrator = SearchFallbackOrchestrator(search, relational, retry_policy=fast_retry)
        query = orchestrator.plan("documents", ListParams(filter={"q": "x"}), documents_config)
        assert isinstance(query, SearchQuery)
        outcome = await orchestrator.attempt("documents", query)
        assert isinstance(outcome, SearchFailed)
        assert isinstance(outcome.error, SearchRuntimeError)
        assert search.search.call_count == 3

    @pytest.mark.asyncio
    async def test_missing_backend_is_skipped(
        self, relational: AsyncMock, documents_config: SearchResourceConfig
    ) -> None:
        orchestrator = SearchFallbackOrchestrator(None, relational)
        query = orchestrator.plan("documents", ListParams(filter={"q": "x"}), documents_config)
        assert isinstance(query, SearchQuery)
        outcome = await orchestrator.attempt("documents", query)
        assert outcome == SearchSkipped(SkipReason.SEARCH_UNAVAILABLE)

    @pytest.mark.asyncio
    async def test_missing_backend_falls_back_quietly(
        self, relational: AsyncMock, documents_config: SearchResourceConfig
    ) -> None:
        orchestrator = SearchFallbackOrchestrator(None, relational)
        params = ListParams(filter={"q": "x"})
        with capture_logs() as logs:
            result = await orchestrator.get_list("documents", params, documents_config)
        assert result.data == [{"id": "r1"}]
        relational.get_list.assert_awaited_once_with("documents", params)
        assert [e["log_level"] for e in logs] == ["debug"]
        assert logs[0]["reason"] == "search_unavailable"


@pytest.mark.unit
class TestFallback:
    @pytest.mark.asyncio
    async def test_failure_falls_back_with_original_params(
        self,
        search: AsyncMock,
        relational: AsyncMock,
        documents_config: SearchResourceConfig,
        fast_retry: RetryPolicy,
    ) -> None:
        search.search.side_effect = SearchRuntimeError("down")
        orchestrator = SearchFallbackOrchestrator(search, relational, retry_policy=fast_retry)
        params = ListParams(filter={"q": "invoice", "tenant_id": "t1", "secret": "x"})
        result = await orchestrator.get_list("documents", params, documents_config)
        assert result.data == [{"id": "r1"}]
        relational.get_list.assert_awaited_once_with("documents", params)

    @pytest.mark.asyncio
    async def test_success_does_not_touch_relational(
        self,
        search: AsyncMock,
        relational: AsyncMock,
        documents_config: SearchResourceConfig,
        fast_retry: RetryPolicy,
    ) -> None:
        orchestrator = SearchFallbackOrchestrator(search, relational, retry_policy=fast_retry)
        params = ListParams(filter={"q": "invoice"})
        result = await orchestrator.get_list("documents", params, documents_config)
        assert result.data[0]["id"] == "s1"
        relational.get_list.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unfilterable_scope_goes_straight_to_relational(
        self, search: AsyncMock, relational: AsyncMock, fast_retry: RetryPolicy
    ) -> None:
        orchestrator = SearchFallbackOrchestrator(search, relational, retry_policy=fast_retry)
        params = ListParams(filter={"q": "invoice", "tenant_id": "t1"})
        await orchestrator.get_list("search_logs", params, UNSCOPED_CONFIG)
        search.search.assert_not_awaited()
        relational.get_list.assert_awaited_once_with("search_logs", params)

    @pytest.mark.asyncio
    async def test_reference_search_filters_on_target(
        self, search: AsyncMock, relational: AsyncMock, fast_retry: RetryPolicy
    ) -> None:
        config = SearchResourceConfig(
            collection_name="documents",
            search_fields=("title",),
            filter_fields=frozenset({"tenant_id", "folder_id"}),
        )
        orchestrator = SearchFallbackOrchestrator(search, relational, retry_policy=fast_retry)
        params = GetManyReferenceParams(
            target="folder_id", id="f1", filter={"q": "x", "tenant_id": "t1"}
        )
        await orchestrator.get_many_reference("documents", params, config)
        _, sent = search.search.await_args.args
        assert sent.filter_by == "tenant_id:=`t1` && folder_id:=`f1`"
        relational.get_many_reference.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reference_failure_falls_back(
        self,
        search: AsyncMock,
        relational: AsyncMock,
        fast_retry: RetryPolicy,
    ) -> None:
        config = SearchResourceConfig(
            collection_name="documents",
            search_fields=("title",),
            filter_fields=frozenset({"folder_id"}),
        )
        search.search.side_effect = SearchRuntimeError("down")
        orchestrator = SearchFallbackOrchestrator(search, relational, retry_policy=fast_retry)
        params = GetManyReferenceParams(target="folder_id", id="f1", filter={"q": "x"})
        result = await orchestrator.get_many_reference("documents", params, config)
        assert result.data == [{"id": "r2"}]
        relational.get_many_reference.assert_awaited_once_with("documents", params)
