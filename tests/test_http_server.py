"""Tests for the bot's internal HTTP server."""
import pytest
from aiohttp import test_utils

import config
from squash.http_server import create_app, start_http_server

AUTH = {"Authorization": "Bearer test-secret"}


@pytest.fixture
async def bot_http(services):
    async with test_utils.TestClient(test_utils.TestServer(create_app(services))) as client:
        yield client


@pytest.mark.asyncio
async def test_health(bot_http):
    r = await bot_http.get("/internal/health")
    assert r.status == 200
    assert await r.json() == {"ok": True}


@pytest.mark.asyncio
async def test_check_events_requires_secret(bot_http):
    r = await bot_http.post("/internal/check-events")
    assert r.status == 401
    r = await bot_http.post("/internal/check-events", headers={"Authorization": "Bearer wrong"})
    assert r.status == 401


@pytest.mark.asyncio
async def test_check_events_unconfigured(bot_http, monkeypatch):
    monkeypatch.setattr(config, "INTERNAL_API_SECRET", "")
    r = await bot_http.post("/internal/check-events", headers=AUTH)
    assert r.status == 503


@pytest.mark.asyncio
async def test_check_events_with_nothing_due(bot_http):
    r = await bot_http.post("/internal/check-events", headers=AUTH)
    assert r.status == 200
    assert await r.json() == {"ok": True, "events_created": 0}


@pytest.mark.asyncio
async def test_check_events_runs_spawner(bot_http, services, transport):
    # An eight-day lead means the next occurrence is always due
    await services.lifecycle.scaffolds.create_scaffold("Mon", "12:00", 2, announcement_deadline="-8d")
    r = await bot_http.post("/internal/check-events", headers=AUTH)
    assert await r.json() == {"ok": True, "events_created": 1}
    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_server_not_started_without_secret(services, monkeypatch):
    monkeypatch.setattr(config, "INTERNAL_API_SECRET", "")
    assert await start_http_server(services) is None
