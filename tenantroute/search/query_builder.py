"""Translate uniform list params into a search engine query.

Filter and sort fields outside a resource's allow-list are dropped with a
warning instead of failing the call.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from tenantroute.models.params import QUERY_KEY, ListParams, Sort
from tenantroute.models.search import SearchParams, SearchResourceConfig
from tenantroute.types import SortOrder

logger = structlog.get_logger(__name__)

_RANGE_OPERATORS = (("gte", ">="), ("lte", "<="), ("gt", ">"), ("lt", "<"))


def _quote(value: Any) -> str:
    return f"`{value}`"


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _clause(key: str, value: Any) -> list[str]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return [f"{key}:[{','.join(_quote(v) for v in value)}]"]
    if isinstance(value, str):
        return [f"{key}:={_quote(value)}"]
    if isinstance(value, (bool, int, float)):
        return [f"{key}:={_literal(value)}"]
    if isinstance(value, Mapping):
        return [
            f"{key}:{symbol}{_literal(value[name])}"
            for name, symbol in _RANGE_OPERATORS
            if value.get(name) is not None
        ]
    return []


def build_filter_by(
    filters: Mapping[str, Any], config: SearchResourceConfig, resource: str = ""
) -> tuple[str | None, frozenset[str]]:
    """Return the ``filter_by`` expression and the set of dropped keys."""
    clauses: list[str] = []
    dropped: set[str] = set()
    for key, value in filters.items():
        if key == QUERY_KEY:
            continue
        if not config.allows_filter(key):
            dropped.add(key)
            continue
        if value is None:
            continue
        clauses.extend(_clause(key, value))
    for key in sorted(dropped):
        logger.warning("search_field_dropped", resource=resource, field=key, kind="filter")
    return (" && ".join(clauses) or None), frozenset(dropped)


def build_sort_by(sort: Sort, config: SearchResourceConfig, resource: str = "") -> str | None:
    if sort.field is None:
        return None
    if not config.allows_sort(sort.field):
        logger.warning("search_field_dropped", resource=resource, field=sort.field, kind="sort")
        return None
    order = "asc" if sort.order is SortOrder.ASC else "desc"
    return f"{sort.field}:{order}"


@dataclass(frozen=True)
class SearchQuery:
    collection: str
    params: SearchParams
    dropped_fields: frozenset[str] = field(default_factory=frozenset)


def build_search_query(
    resource: str,
    params: ListParams,
    config: SearchResourceConfig,
    *,
    extra_filters: Mapping[str, Any] | None = None,
    num_typos: int = 2,
    prefix: bool = True,
) -> SearchQuery | None:
    """Build the engine query, or None when there is no free-text term."""
    query = params.query
    if query is None:
        return None
    filters = {**params.filter, **(extra_filters or {})}
    filter_by, dropped = build_filter_by(filters, config, resource)
    sort_by = build_sort_by(params.sort, config, resource)
    if sort_by is None and params.sort.field is not None:
        dropped = dropped | {params.sort.field}
    search_params = SearchParams(
        q=query,
        query_by=",".join(config.search_fields),
        filter_by=filter_by,
        sort_by=sort_by,
        per_page=params.pagination.per_page,
        page=params.pagination.page,
        facet_by=",".join(config.facet_fields) or None,
        num_typos=num_typos,
        prefix=prefix,
        drop_tokens_threshold=1,
        typo_tokens_threshold=1,
    )
    return SearchQuery(
        collection=config.collection_name, params=search_params, dropped_fields=dropped
    )
