"""CRUD over the search engine's own administrative objects.

Each admin resource name maps 1:1 onto a family of search engine objects
reached through the client. These resources have no relational
counterpart, so errors are never converted into a fallback.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from tenantroute.backends.search import SearchBackend
from tenantroute.exceptions import ConfigurationError, UnsupportedOperationError
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
from tenantroute.types import Identifier, SortOrder

logger = structlog.get_logger(__name__)

DEFAULT_SYNONYM_COLLECTION = "products"
DEFAULT_SNAPSHOT_PATH = "/tmp/typesense-snapshot"  # nosec B108

Group = Callable[[Any], Any]


class AdminEndpoint:
    """An admin object family reached through ``group(client)``.

    The group must offer ``retrieve()``, ``upsert(id, body)`` and item
    access by id. ``list_key`` names the array in the list response (None
    when the response is the array itself) and ``id_field`` names the
    attribute that identifies a record.
    """

    def __init__(
        self, name: str, group: Group, list_key: str | None, id_field: str = "id"
    ) -> None:
        self.name = name
        self.group = group
        self.list_key = list_key
        self.id_field = id_field

    def normalize(self, record: dict[str, Any]) -> dict[str, Any]:
        if self.id_field in record:
            return {**record, "id": str(record[self.id_field])}
        return record

    async def list_records(
        self, backend: SearchBackend, filters: dict[str, Any]
    ) -> list[dict[str, Any]]:
        body = await backend.run(lambda c: self.group(c).retrieve(), action=f"list {self.name}")
        items = body if self.list_key is None else (body or {}).get(self.list_key, [])
        return [self.normalize(item) for item in items or []]

    async def get(self, backend: SearchBackend, record_id: str) -> dict[str, Any]:
        body = await backend.run(
            lambda c: self.group(c)[record_id].retrieve(), action=f"get {self.name}"
        )
        return self.normalize(body)

    def record_id(self, data: dict[str, Any]) -> str:
        value = data.get(self.id_field) or data.get("id")
        if not value:
            raise UnsupportedOperationError(f"{self.id_field} is required")
        return str(value)

    def body(self, data: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in data.items() if k not in ("id", self.id_field)}

    async def _upsert(
        self, backend: SearchBackend, record_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        body = self.body(data)
        result = await backend.run(
            lambda c: self.group(c).upsert(record_id, body), action=f"upsert {self.name}"
        )
        return self.normalize({self.id_field: record_id, **(result or {})})

    async def create(self, backend: SearchBackend, data: dict[str, Any]) -> dict[str, Any]:
        return await self._upsert(backend, self.record_id(data), data)

    async def update(
        self, backend: SearchBackend, record_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._upsert(backend, record_id, data)

    async def delete(self, backend: SearchBackend, record_id: str) -> dict[str, Any]:
        result = await backend.run(
            lambda c: self.group(c)[record_id].delete(), action=f"delete {self.name}"
        )
        return self.normalize({self.id_field: record_id, **(result or {})})


class CollectionsEndpoint(AdminEndpoint):
    def __init__(self) -> None:
        super().__init__("collections", lambda c: c.collections, None, "name")

    async def create(self, backend: SearchBackend, data: dict[str, Any]) -> dict[str, Any]:
        schema = {k: v for k, v in data.items() if k != "id"}
        schema.setdefault("name", self.record_id(data))
        result = await backend.run(
            lambda c: c.collections.create(schema), action="create collection"
        )
        return self.normalize(result)

    async def update(
        self, backend: SearchBackend, record_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        # Only the field list of a collection can be altered in place.
        fields = {"fields": data.get("fields", [])}
        result = await backend.run(
            lambda c: c.collections[record_id].update(fields), action="update collection"
        )
        return self.normalize({"name": record_id, **(result or {})})


class KeysEndpoint(AdminEndpoint):
    def __init__(self) -> None:
        super().__init__("keys", lambda c: c.keys, "keys", "id")

    async def create(self, backend: SearchBackend, data: dict[str, Any]) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "description": data.get("description", ""),
            "actions": data.get("actions") or ["documents:search"],
            "collections": data.get("collections") or ["*"],
        }
        expires_at = data.get("expires_at")
        if expires_at:
            schema["expires_at"] = _epoch_seconds(expires_at)
        result = await backend.run(lambda c: c.keys.create(schema), action="create key")
        logger.info("typesense_key_created", key_id=result.get("id"))
        # The key value is only returned once, on creation.
        return self.normalize(result)

    async def update(
        self, backend: SearchBackend, record_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        raise UnsupportedOperationError(
            "Search API keys cannot be updated. Delete and create a new key."
        )


class StopwordsEndpoint(AdminEndpoint):
    def __init__(self) -> None:
        super().__init__("stopwords", lambda c: c.stopwords, "stopwords", "id")

    async def get(self, backend: SearchBackend, record_id: str) -> dict[str, Any]:
        body = await backend.run(
            lambda c: c.stopwords[record_id].retrieve(), action="get stopwords"
        )
        return self.normalize(body.get("stopwords", body))

    def body(self, data: dict[str, Any]) -> dict[str, Any]:
        words = data.get("stopwords", [])
        if isinstance(words, str):
            words = [w.strip() for w in words.split(",") if w.strip()]
        body: dict[str, Any] = {"stopwords": words}
        if data.get("locale"):
            body["locale"] = data["locale"]
        return body


class CollectionScopedEndpoint(AdminEndpoint):
    """Objects that live under a collection; ids read ``collection:name``."""

    def __init__(self, child: str) -> None:
        super().__init__(child, lambda c: c.collections, child, "id")
        self.child = child

    def _group(self, client: Any, collection: str) -> Any:
        return getattr(client.collections[collection], self.child)

    @staticmethod
    def split_id(record_id: str) -> tuple[str, str]:
        collection, sep, name = record_id.partition(":")
        if not sep or not collection or not name:
            msg = f"Expected id of the form collection:name, got {record_id}"
            raise UnsupportedOperationError(msg)
        return collection, name

    def _scoped(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        name = str(record.get("id", ""))
        return {**record, "id": f"{collection}:{name}", "name": name, "collection": collection}

    async def list_records(
        self, backend: SearchBackend, filters: dict[str, Any]
    ) -> list[dict[str, Any]]:
        collection = str(filters.get("collection") or DEFAULT_SYNONYM_COLLECTION)
        body = await backend.run(
            lambda c: self._group(c, collection).retrieve(), action=f"list {self.child}"
        )
        return [self._scoped(collection, item) for item in (body or {}).get(self.child, [])]

    async def get(self, backend: SearchBackend, record_id: str) -> dict[str, Any]:
        collection, name = self.split_id(record_id)
        body = await backend.run(
            lambda c: self._group(c, collection)[name].retrieve(), action=f"get {self.child}"
        )
        return self._scoped(collection, {**body, "id": name})

    async def _put(
        self, backend: SearchBackend, collection: str, name: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        body = self.body(data)
        result = await backend.run(
            lambda c: self._group(c, collection).upsert(name, body),
            action=f"upsert {self.child}",
        )
        return self._scoped(collection, {**(result or {}), "id": name})

    async def create(self, backend: SearchBackend, data: dict[str, Any]) -> dict[str, Any]:
        collection = str(data.get("collection") or DEFAULT_SYNONYM_COLLECTION)
        name = str(data.get("name") or data.get("id") or "")
        if not name:
            raise UnsupportedOperationError("name is required")
        return await self._put(backend, collection, name, data)

    async def update(
        self, backend: SearchBackend, record_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        collection, name = self.split_id(record_id)
        return await self._put(backend, collection, name, data)

    async def delete(self, backend: SearchBackend, record_id: str) -> dict[str, Any]:
        collection, name = self.split_id(record_id)
        await backend.run(
            lambda c: self._group(c, collection)[name].delete(), action=f"delete {self.child}"
        )
        return {"id": record_id, "name": name, "collection": collection}

    def body(self, data: dict[str, Any]) -> dict[str, Any]:
        return {
            k: v for k, v in data.items() if k not in ("id", "name", "collection")
        }


class SynonymsEndpoint(CollectionScopedEndpoint):
    def __init__(self) -> None:
        super().__init__("synonyms")

    def body(self, data: dict[str, Any]) -> dict[str, Any]:
        synonyms = data.get("synonyms") or []
        if isinstance(synonyms, str):
            synonyms = [s.strip() for s in synonyms.split(",") if s.strip()]
        body: dict[str, Any] = {"synonyms": synonyms}
        if data.get("synonym_type") == "one-way" and data.get("root"):
            body["root"] = data["root"]
        return body


class EmptyEndpoint(AdminEndpoint):
    """A listed resource the search engine does not expose yet."""

    def __init__(self, name: str) -> None:
        super().__init__(name, lambda c: None, None)

    async def list_records(
        self, backend: SearchBackend, filters: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return []

    def _unsupported(self) -> UnsupportedOperationError:
        return UnsupportedOperationError(f"{self.name} is list-only and always empty")

    async def get(self, backend: SearchBackend, record_id: str) -> dict[str, Any]:
        raise self._unsupported()

    async def create(self, backend: SearchBackend, data: dict[str, Any]) -> dict[str, Any]:
        raise self._unsupported()

    async def update(
        self, backend: SearchBackend, record_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        raise self._unsupported()

    async def delete(self, backend: SearchBackend, record_id: str) -> dict[str, Any]:
        raise self._unsupported()


class SystemEndpoint(AdminEndpoint):
    """Health, metrics and maintenance operations of the search cluster."""

    _READS: dict[str, Callable[[Any], dict[str, Any]]] = {
        "health": lambda c: {"ok": c.operations.is_healthy()},
        "metrics": lambda c: c.metrics.retrieve(),
        "stats": lambda c: c.stats.retrieve(),
        "debug": lambda c: c.debug.retrieve(),
    }
    _OPERATIONS = {
        "snapshot": "Snapshot created successfully",
        "cache/clear": "Cache cleared successfully",
        "db/compact": "Database compaction initiated",
        "vote": "Leader re-election triggered",
    }

    def __init__(self) -> None:
        super().__init__("system", lambda c: c.operations, None)

    async def list_records(
        self, backend: SearchBackend, filters: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return []

    async def get(self, backend: SearchBackend, record_id: str) -> dict[str, Any]:
        read = self._READS.get(record_id)
        if read is None:
            raise UnsupportedOperationError(f"Unknown system endpoint: {record_id}")
        return {**(await backend.run(read, action=f"system {record_id}")), "id": record_id}

    async def create(self, backend: SearchBackend, data: dict[str, Any]) -> dict[str, Any]:
        operation = str(data.get("operation") or data.get("id") or "")
        message = self._OPERATIONS.get(operation)
        if message is None:
            raise UnsupportedOperationError(f"Unknown operation: {operation}")
        query: dict[str, Any] = {}
        if operation == "snapshot":
            query["snapshot_path"] = data.get("snapshot_path", DEFAULT_SNAPSHOT_PATH)
        result = await backend.run(
            lambda c: c.operations.perform(operation, query), action=f"operation {operation}"
        )
        logger.info("typesense_operation_performed", operation=operation)
        return {
            **(result or {}),
            "id": operation.split("/", 1)[0],
            "success": True,
            "message": message,
        }

    async def update(
        self, backend: SearchBackend, record_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        raise UnsupportedOperationError("System endpoints cannot be updated")

    async def delete(self, backend: SearchBackend, record_id: str) -> dict[str, Any]:
        raise UnsupportedOperationError("System endpoints cannot be deleted")


def default_endpoints() -> dict[str, AdminEndpoint]:
    presets = AdminEndpoint("presets", lambda c: c.presets, "presets", "name")
    return {
        "typesense-collections": CollectionsEndpoint(),
        "typesense-keys": KeysEndpoint(),
        "typesense-aliases": AdminEndpoint("aliases", lambda c: c.aliases, "aliases", "name"),
        "typesense-synonyms": SynonymsEndpoint(),
        "typesense-curations": CollectionScopedEndpoint("overrides"),
        "typesense-stopwords": StopwordsEndpoint(),
        "typesense-presets": presets,
        "presets": presets,
        "typesense-analytics-rules": AdminEndpoint(
            "analytics rules", lambda c: c.analytics.rules, "rules", "name"
        ),
        "typesense-nl-models": EmptyEndpoint("typesense-nl-models"),
        "typesense-stemming": EmptyEndpoint("typesense-stemming"),
        "typesense-system": SystemEndpoint(),
    }


def _epoch_seconds(value: Any) -> int:
    if isinstance(value, (int, float)):
        return int(value)
    return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp())


def _sort_key(field: str) -> Any:
    def key(record: dict[str, Any]) -> tuple[bool, str]:
        value = record.get(field)
        return (value is None, "" if value is None else str(value))

    return key


def _page(records: list[dict[str, Any]], params: ListParams) -> ListResult:
    if params.sort.field and any(params.sort.field in r for r in records):
        records = sorted(
            records,
            key=_sort_key(params.sort.field),
            reverse=params.sort.order is SortOrder.DESC,
        )
    start = params.pagination.offset
    return ListResult(
        data=records[start : start + params.pagination.per_page], total=len(records)
    )


class NativeSearchProvider:
    """Uniform CRUD over admin resources, dispatched by resource name."""

    def __init__(
        self,
        backend: SearchBackend | None,
        endpoints: dict[str, AdminEndpoint] | None = None,
    ) -> None:
        self._backend = backend
        self._endpoints = endpoints if endpoints is not None else default_endpoints()

    @property
    def resources(self) -> frozenset[str]:
        return frozenset(self._endpoints)

    def _resolve(self, resource: str) -> tuple[SearchBackend, AdminEndpoint]:
        if self._backend is None:
            raise ConfigurationError(
                f"Search backend is not configured; cannot serve {resource}"
            )
        endpoint = self._endpoints.get(resource)
        if endpoint is None:
            raise UnsupportedOperationError(f"No search admin mapping for {resource}")
        return self._backend, endpoint

    async def get_list(self, resource: str, params: ListParams) -> ListResult:
        backend, endpoint = self._resolve(resource)
        records = await endpoint.list_records(backend, params.filter)
        return _page(records, params)

    async def get_one(self, resource: str, params: GetOneParams) -> RecordResult:
        backend, endpoint = self._resolve(resource)
        return RecordResult(data=await endpoint.get(backend, str(params.id)))

    async def get_many(self, resource: str, params: GetManyParams) -> RecordsResult:
        backend, endpoint = self._resolve(resource)
        records = await asyncio.gather(*(endpoint.get(backend, str(i)) for i in params.ids))
        return RecordsResult(data=list(records))

    async def get_many_reference(
        self, resource: str, params: GetManyReferenceParams
    ) -> ListResult:
        backend, endpoint = self._resolve(resource)
        records = await endpoint.list_records(backend, params.filter)
        matching = [r for r in records if str(r.get(params.target)) == str(params.id)]
        return _page(matching, params)

    async def create(self, resource: str, params: CreateParams) -> RecordResult:
        backend, endpoint = self._resolve(resource)
        return RecordResult(data=await endpoint.create(backend, params.data))

    async def update(self, resource: str, params: UpdateParams) -> RecordResult:
        backend, endpoint = self._resolve(resource)
        return RecordResult(data=await endpoint.update(backend, str(params.id), params.data))

    async def update_many(self, resource: str, params: UpdateManyParams) -> IdsResult:
        backend, endpoint = self._resolve(resource)
        ids: list[Identifier] = []
        for record_id in params.ids:
            await endpoint.update(backend, str(record_id), params.data)
            ids.append(record_id)
        return IdsResult(data=ids)

    async def delete(self, resource: str, params: DeleteParams) -> RecordResult:
        backend, endpoint = self._resolve(resource)
        return RecordResult(data=await endpoint.delete(backend, str(params.id)))

    async def delete_many(self, resource: str, params: DeleteManyParams) -> IdsResult:
        backend, endpoint = self._resolve(resource)
        ids: list[Identifier] = []
        for record_id in params.ids:
            await endpoint.delete(backend, str(record_id))
            ids.append(record_id)
        return IdsResult(data=ids)
