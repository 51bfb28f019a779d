"""Relational backend contract and its Supabase implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import httpx
import structlog
from postgrest.exceptions import APIError
from supabase import AsyncClient, AsyncClientOptions, acreate_client

from tenantroute.exceptions import ConfigurationError, RelationalError
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
    RecordResult,
    RecordsResult,
    UpdateManyParams,
    UpdateParams,
)
from tenantroute.types import Identifier, SortOrder

logger = structlog.get_logger(__name__)

_RANGE_OPERATORS = ("gte", "lte", "gt", "lt")

# PostgREST and Postgres error codes that map onto a caller-facing status.
_STATUS_BY_CODE = {
    "PGRST116": 404,
    "42P01": 404,
    "PGRST301": 401,
    "42501": 403,
}


class RelationalBackend(ABC):
    """Generic CRUD + filter client against the primary store."""

    @abstractmethod
    async def get_list(self, resource: str, params: ListParams) -> ListResult: ...

    @abstractmethod
    async def get_one(self, resource: str, params: GetOneParams) -> RecordResult: ...

    @abstractmethod
    async def get_many(self, resource: str, params: GetManyParams) -> RecordsResult: ...

    @abstractmethod
    async def get_many_reference(
        self, resource: str, params: GetManyReferenceParams
    ) -> ListResult: ...

    @abstractmethod
    async def create(self, resource: str, params: CreateParams) -> RecordResult: ...

    @abstractmethod
    async def update(self, resource: str, params: UpdateParams) -> RecordResult: ...

    @abstractmethod
    async def update_many(self, resource: str, params: UpdateManyParams) -> IdsResult: ...

    @abstractmethod
    async def delete(self, resource: str, params: DeleteParams) -> RecordResult: ...

    @abstractmethod
    async def delete_many(self, resource: str, params: DeleteManyParams) -> IdsResult: ...

    @abstractmethod
    def with_access_token(self, access_token: str) -> RelationalBackend:
        """Copy of this backend that acts on behalf of the token's user."""


def apply_filters(query: Any, filters: Mapping[str, Any]) -> Any:
    """Chain a filter map onto a PostgREST query builder.

    Keys may carry an explicit operator as ``column@op`` (``name@ilike``).
    Lists become ``in``, ``None`` and booleans become ``is``, and mappings
    with ``gte``/``lte``/``gt``/``lt`` become range conditions.
    """
    for key, value in filters.items():
        if key == QUERY_KEY:
            continue
        column, _, operator = key.partition("@")
        if operator:
            if operator in ("like", "ilike"):
                query = getattr(query, operator)(column, f"*{value}*")
            elif isinstance(value, (list, tuple)):
                query = query.filter(column, operator, f"({','.join(map(str, value))})")
            else:
                query = query.filter(column, operator, value)
        elif value is None:
            query = query.is_(column, "null")
        elif isinstance(value, bool):
            query = query.is_(column, str(value).lower())
        elif isinstance(value, (list, tuple)):
            query = query.in_(column, list(value))
        elif isinstance(value, Mapping):
            for op in _RANGE_OPERATORS:
                if value.get(op) is not None:
                    query = getattr(query, op)(column, value[op])
        else:
            query = query.eq(column, value)
    return query


def status_for(code: str | None) -> int | None:
    """Caller-facing status for a PostgREST/Postgres error code."""
    if not code:
        return None
    if code in _STATUS_BY_CODE:
        return _STATUS_BY_CODE[code]
    if code.startswith("23"):
        return 409
    if code.startswith("22"):
        return 400
    return None


class SupabaseBackend(RelationalBackend):
    """Talks to Supabase through the async ``supabase`` client.

    Row-level security applies when ``access_token`` is a user JWT; the
    publishable key alone only sees rows the anon role may see. The client
    is created on first use.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        schema: str = "public",
        timeout: float = 10.0,
        primary_key: str = "id",
        search_columns: Mapping[str, list[str]] | None = None,
        client: AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._access_token = access_token
        self._schema = schema
        self._timeout = timeout
        self._pk = primary_key
        self._search_columns = {k: list(v) for k, v in (search_columns or {}).items()}
        self._client = client

    def with_access_token(self, access_token: str) -> SupabaseBackend:
        return SupabaseBackend(
            self._url,
            self._api_key,
            access_token=access_token,
            schema=self._schema,
            timeout=self._timeout,
            primary_key=self._pk,
            search_columns=self._search_columns,
        )

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            if not self._url or not self._api_key:
                raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must both be set")
            headers: dict[str, str] = {}
            if self._access_token:
                headers["Authorization"] = f"Bearer {self._access_token}"
            self._client = await acreate_client(
                self._url,
                self._api_key,
                options=AsyncClientOptions(
                    schema=self._schema,
                    headers=headers,
                    postgrest_client_timeout=self._timeout,
                ),
            )
        return self._client

    async def _table(self, resource: str) -> Any:
        return (await self._get_client()).table(resource)

    async def _execute(self, query: Any, resource: str, action: str) -> Any:
        try:
            return await query.execute()
        except APIError as e:
            status = status_for(e.code)
            logger.warning(
                "relational_request_rejected",
                resource=resource,
                action=action,
                code=e.code,
                status_code=status,
                detail=e.message,
            )
            raise RelationalError(f"{action} {resource}: {e.message}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.error(
                "relational_request_failed", resource=resource, action=action, error=str(e)
            )
            raise RelationalError(f"{action} {resource} failed: {e}") from e

    def _text_search(self, query: Any, resource: str, filters: Mapping[str, Any]) -> Any:
        term = filters.get(QUERY_KEY)
        if term is None or not str(term).strip():
            return query
        columns = self._search_columns.get(resource)
        if not columns:
            logger.warning("relational_text_search_unsupported", resource=resource)
            return query
        pattern = str(term).strip().replace(",", " ")
        return query.or_(",".join(f"{c}.ilike.*{pattern}*" for c in columns))

    async def _select_page(
        self, resource: str, params: ListParams, extra: Mapping[str, Any]
    ) -> ListResult:
        query = (await self._table(resource)).select("*", count="exact")
        query = apply_filters(query, params.filter)
        query = self._text_search(query, resource, params.filter)
        query = apply_filters(query, extra)
        field = params.sort.field or self._pk
        query = query.order(field, desc=params.sort.order is SortOrder.DESC)
        start = params.pagination.offset
        query = query.range(start, start + params.pagination.per_page - 1)
        response = await self._execute(query, resource, "list")
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return ListResult(data=rows, total=total)

    async def get_list(self, resource: str, params: ListParams) -> ListResult:
        return await self._select_page(resource, params, {})

    async def get_one(self, resource: str, params: GetOneParams) -> RecordResult:
        query = (await self._table(resource)).select("*").eq(self._pk, params.id).limit(1)
        rows = (await self._execute(query, resource, "get")).data
        if not rows:
            raise RelationalError(f"{resource} {params.id} not found", status_code=404)
        return RecordResult(data=rows[0])

    async def get_many(self, resource: str, params: GetManyParams) -> RecordsResult:
        if not params.ids:
            return RecordsResult(data=[])
        query = (await self._table(resource)).select("*").in_(self._pk, list(params.ids))
        return RecordsResult(data=(await self._execute(query, resource, "get many")).data or [])

    async def get_many_reference(
        self, resource: str, params: GetManyReferenceParams
    ) -> ListResult:
        return await self._select_page(resource, params, {params.target: params.id})

    async def create(self, resource: str, params: CreateParams) -> RecordResult:
        query = (await self._table(resource)).insert(params.data)
        rows = (await self._execute(query, resource, "create")).data
        return RecordResult(data=_first(rows, params.data))

    async def update(self, resource: str, params: UpdateParams) -> RecordResult:
        query = (await self._table(resource)).update(params.data).eq(self._pk, params.id)
        rows = (await self._execute(query, resource, "update")).data
        if not rows:
            raise RelationalError(f"{resource} {params.id} not found", status_code=404)
        return RecordResult(data=rows[0])

    async def update_many(self, resource: str, params: UpdateManyParams) -> IdsResult:
        if not params.ids:
            return IdsResult(data=[])
        query = (await self._table(resource)).update(params.data).in_(self._pk, list(params.ids))
        rows = (await self._execute(query, resource, "update many")).data
        return IdsResult(data=_ids(rows, self._pk))

    async def delete(self, resource: str, params: DeleteParams) -> RecordResult:
        query = (await self._table(resource)).delete().eq(self._pk, params.id)
        rows = (await self._execute(query, resource, "delete")).data
        fallback = params.previous_data or {self._pk: params.id}
        return RecordResult(data=_first(rows, fallback))

    async def delete_many(self, resource: str, params: DeleteManyParams) -> IdsResult:
        if not params.ids:
            return IdsResult(data=[])
        query = (await self._table(resource)).delete().in_(self._pk, list(params.ids))
        rows = (await self._execute(query, resource, "delete many")).data
        return IdsResult(data=_ids(rows, self._pk))


def _first(rows: Any, fallback: dict[str, Any]) -> dict[str, Any]:
    if isinstance(rows, list) and rows:
        return rows[0]
    return fallback


def _ids(rows: Any, pk: str) -> list[Identifier]:
    if not isinstance(rows, list):
        return []
    return [row[pk] for row in rows if pk in row]
