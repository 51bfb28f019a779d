"""Search backend contract and its Typesense implementation."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar
from urllib.parse import urlsplit

import requests
import structlog
import typesense
from typesense.exceptions import (
    ObjectAlreadyExists,
    ObjectNotFound,
    ObjectUnprocessable,
    RequestMalformed,
    RequestUnauthorized,
    TypesenseClientError,
)

from tenantroute.exceptions import SearchRuntimeError
from tenantroute.models.search import SearchParams, SearchResponse

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_STATUS_BY_ERROR: tuple[tuple[type[TypesenseClientError], int], ...] = (
    (RequestMalformed, 400),
    (RequestUnauthorized, 401),
    (ObjectNotFound, 404),
    (ObjectAlreadyExists, 409),
    (ObjectUnprocessable, 422),
)


class SearchBackend(ABC):
    """Collection search, document access and admin calls on the search engine."""

    @abstractmethod
    async def run(self, operation: Callable[[typesense.Client], T], *, action: str) -> T:
        """Run a blocking client operation and translate its failures."""

    async def search(self, collection: str, params: SearchParams) -> SearchResponse:
        body = await self.run(
            lambda c: c.collections[collection].documents.search(params.to_query()),
            action=f"search {collection}",
        )
        return SearchResponse.model_validate(body)

    async def list_collections(self) -> list[dict[str, Any]]:
        return await self.run(lambda c: c.collections.retrieve(), action="list collections")

    async def retrieve_document(self, collection: str, doc_id: str) -> dict[str, Any]:
        return await self.run(
            lambda c: c.collections[collection].documents[doc_id].retrieve(),
            action=f"retrieve {collection}/{doc_id}",
        )

    async def upsert_document(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        return await self.run(
            lambda c: c.collections[collection].documents.upsert(document),
            action=f"upsert {collection}",
        )

    async def delete_document(self, collection: str, doc_id: str) -> dict[str, Any]:
        return await self.run(
            lambda c: c.collections[collection].documents[doc_id].delete(),
            action=f"delete {collection}/{doc_id}",
        )

    async def import_documents(
        self, collection: str, documents: Iterable[dict[str, Any]], action: str = "upsert"
    ) -> list[dict[str, Any]]:
        """Bulk import. Returns one result object per document."""
        docs = list(documents)
        results = await self.run(
            lambda c: c.collections[collection].documents.import_(docs, {"action": action}),
            action=f"import {collection}",
        )
        failed = sum(1 for r in results if not r.get("success", False))
        logger.info(
            "typesense_import_completed",
            collection=collection,
            documents=len(results),
            failed=failed,
        )
        return results

    async def export_documents(self, collection: str) -> list[dict[str, Any]]:
        text = await self.run(
            lambda c: c.collections[collection].documents.export(),
            action=f"export {collection}",
        )
        return [json.loads(line) for line in text.splitlines() if line.strip()]


@dataclass(frozen=True, slots=True)
class Node:
    host: str
    port: int
    protocol: str = "http"

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    def to_config(self) -> dict[str, Any]:
        return {"host": self.host, "port": self.port, "protocol": self.protocol}

    @classmethod
    def from_url(cls, url: str) -> Node:
        parts = urlsplit(url)
        if not parts.hostname or parts.scheme not in ("http", "https"):
            msg = f"Invalid search node URL: {url}"
            raise ValueError(msg)
        port = parts.port or (443 if parts.scheme == "https" else 80)
        return cls(host=parts.hostname, port=port, protocol=parts.scheme)


def parse_additional_nodes(raw: str | None) -> list[Node]:
    """Parse a JSON array of ``{host, port, protocol}`` objects or URLs.

    Malformed input is logged and ignored.
    """
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except ValueError as e:
        logger.warning("typesense_additional_nodes_invalid", error=str(e))
        return []
    if not isinstance(items, list):
        logger.warning("typesense_additional_nodes_invalid", error="expected a JSON array")
        return []
    nodes: list[Node] = []
    for item in items:
        try:
            if isinstance(item, str):
                nodes.append(Node.from_url(item))
            else:
                nodes.append(
                    Node(
                        host=str(item["host"]),
                        port=int(item["port"]),
                        protocol=str(item.get("protocol", "http")),
                    )
                )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("typesense_additional_node_skipped", node=item, error=str(e))
    return nodes


def _status_for(error: TypesenseClientError) -> int | None:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return None


class TypesenseBackend(SearchBackend):
    """Typesense through the official client.

    The client fails over across its nodes and retries on its own; calls are
    blocking, so each one runs in a worker thread.
    """

    def __init__(self, client: typesense.Client) -> None:
        self._client = client

    async def run(self, operation: Callable[[typesense.Client], T], *, action: str) -> T:
        try:
            return await asyncio.to_thread(operation, self._client)
        except TypesenseClientError as e:
            status = _status_for(e)
            logger.warning(
                "typesense_request_failed", action=action, status_code=status, error=str(e)
            )
            raise SearchRuntimeError(f"{action}: {e}", status_code=status) from e
        except requests.RequestException as e:
            logger.warning("typesense_unreachable", action=action, error=str(e))
            raise SearchRuntimeError(f"{action} failed on all nodes: {e}") from e


def create_search_backend(
    url: str | None,
    api_key: str | None,
    *,
    additional_nodes: str | None = None,
    timeout: float = 10.0,
    num_retries: int = 3,
    retry_interval_seconds: float = 0.1,
    healthcheck_interval_seconds: int = 60,
) -> TypesenseBackend | None:
    """Build the search backend, or None when it is not configured."""
    if not url or not api_key:
        logger.warning("typesense_not_configured")
        return None
    nodes = [Node.from_url(url), *parse_additional_nodes(additional_nodes)]
    client = typesense.Client(
        {
            "nodes": [node.to_config() for node in nodes],
            "api_key": api_key,
            "connection_timeout_seconds": timeout,
            "num_retries": num_retries,
            "retry_interval_seconds": retry_interval_seconds,
            "healthcheck_interval_seconds": healthcheck_interval_seconds,
        }
    )
    logger.info(
        "typesense_configured",
        nodes=[n.base_url for n in nodes],
        num_retries=num_retries,
    )
    return TypesenseBackend(client)
