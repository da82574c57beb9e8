"""Tests for the station HTTP endpoints."""

import pytest
from httpx import AsyncClient

from subway_api.services.feeds.fetcher import FeedFetchError

from fixtures.stub_fetcher import StubFetcher


class TestResolveEndpoint:
    @pytest.mark.asyncio
    async def test_resolve_with_suffix(self, client: AsyncClient) -> None:
        response = await client.get("/api/stations/resolve/A27N")

        assert response.status_code == 200
        data = response.json()
        assert data["matched_key"] == "A27"
        assert data["strategy"] == "direction_suffix"
        assert data["station"]["display_name"] == "Times Sq-42 St (A,C,E)"

    @pytest.mark.asyncio
    async def test_resolve_miss_is_404(self, client: AsyncClient) -> None:
        response = await client.get("/api/stations/resolve/ZZZ")

        assert response.status_code == 404
        assert response.json()["detail"]["stop_code"] == "ZZZ"

    @pytest.mark.asyncio
    async def test_list_stations(self, client: AsyncClient) -> None:
        data = (await client.get("/api/stations")).json()

        assert data["count"] == len(data["stations"])
        assert any(s["id"] == "A27" for s in data["stations"])


class TestPlacementEndpoint:
    @pytest.mark.asyncio
    async def test_placement_groups_and_keeps_unplaced(
        self, client: AsyncClient, stub_fetcher: StubFetcher
    ) -> None:
        stub_fetcher.responses["nqrw"] = FeedFetchError("down")

        response = await client.get("/api/stations/placement")

        assert response.status_code == 200
        data = response.json()
        ids = {group["station"]["id"] for group in data["stations"]}
        assert ids == {"A27", "A28"}
        assert data["placed_count"] == 2
        assert data["unplaced"] == []
        assert data["failed_feeds"] == ["nqrw"]
