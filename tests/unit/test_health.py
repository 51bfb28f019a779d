from unittest.mock import AsyncMock

import pytest

from tenantroute.exceptions import SearchRuntimeError
from tenantroute.health import check_search_availability


@pytest.mark.unit
class TestSearchAvailability:
    @pytest.mark.asyncio
    async def test_not_configured(self) -> None:
        status = await check_search_availability(None)
        assert status["available"] is False
        assert status["collections"] == []

    @pytest.mark.asyncio
    async def test_available(self, search: AsyncMock) -> None:
        search.list_collections.return_value = [{"name": "documents"}, {"name": "search_logs"}]
        status = await check_search_availability(search)
        assert status == {"available": True, "collections": ["documents", "search_logs"]}

    @pytest.mark.asyncio
    async def test_unreachable_never_raises(self, search: AsyncMock) -> None:
        search.list_collections.side_effect = SearchRuntimeError("connection refused")
        status = await check_search_availability(search)
        assert status["available"] is False
        assert "connection refused" in status["error"]
