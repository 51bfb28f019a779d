"""Search engine availability check."""

from __future__ import annotations

from typing import Any

import structlog

from tenantroute.backends.search import SearchBackend

logger = structlog.get_logger(__name__)


async def check_search_availability(backend: SearchBackend | None) -> dict[str, Any]:
    """Report whether the search engine answers and which collections it has."""
    if backend is None:
        return {
            "available": False,
            "collections": [],
            "error": "Search backend is not configured",
        }
    try:
        collections = await backend.list_collections()
    except Exception as exc:
        logger.warning("search_health_check_failed", error=str(exc))
        return {"available": False, "collections": [], "error": str(exc)}
    return {
        "available": True,
        "collections": [c.get("name", "") for c in collections or []],
    }
