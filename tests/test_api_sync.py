"""Tests for GET /api/sync and the health endpoint."""

from __future__ import annotations

import pytest

from notememo.config import Settings, get_settings
from tests.conftest import AUTH_HEADERS


class TestSyncStatusEndpoint:
    @pytest.mark.asyncio
    async def test_enabled_returns_stable_user_id(self, test_client):
        first = await test_client.get("/api/sync", headers=AUTH_HEADERS)
        second = await test_client.get("/api/sync", headers=AUTH_HEADERS)

        assert first.status_code == 200
        body = first.json()
        assert body["enabled"] is True
        assert body["userId"]
        assert body["syncInfo"] == []
        assert second.json()["userId"] == body["userId"]

    @pytest.mark.asyncio
    async def test_distinct_codes_map_to_distinct_users(self, test_client):
        a = (await test_client.get("/api/sync", headers=AUTH_HEADERS)).json()["userId"]
        b = (await test_client.get("/api/sync", headers={"x-access-code": "other-code"})).json()["userId"]
        assert a != b

    @pytest.mark.asyncio
    async def test_disabled_server_answers_without_code(self, test_app, test_client):
        test_app.dependency_overrides[get_settings] = lambda: Settings(SYNC_ENABLED=False)

        response = await test_client.get("/api/sync", headers={"Accept-Language": "en"})

        assert response.status_code == 200
        assert response.json() == {
            "enabled": False,
            "userId": None,
            "syncInfo": [],
            "message": "Multi-device sync is disabled",
        }

    @pytest.mark.asyncio
    async def test_invalid_code(self, test_client):
        response = await test_client.get("/api/sync", headers={"x-access-code": "nope"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_lists_devices_most_recent_first(self, test_client, server_clock):
        server_clock.set("2024-01-01T00:00:00Z")
        await test_client.post("/api/notes", json=[], headers={**AUTH_HEADERS, "x-device-id": "a"})
        server_clock.set("2024-01-02T00:00:00Z")
        await test_client.post("/api/categories", json=[], headers={**AUTH_HEADERS, "x-device-id": "b"})

        body = (await test_client.get("/api/sync", headers=AUTH_HEADERS)).json()

        assert [d["deviceId"] for d in body["syncInfo"]] == ["b", "a"]


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
