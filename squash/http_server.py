"""Internal HTTP server for web-triggered bot actions (scaffold check)."""
from __future__ import annotations

import logging

import aiohttp.web

import config

logger = logging.getLogger("squash.http")


def _authorized(request: aiohttp.web.Request) -> aiohttp.web.Response | None:
    """None if the request carries the internal secret, else the error response."""
    if not config.INTERNAL_API_SECRET:
        logger.warning("INTERNAL_API_SECRET not set - rejecting internal request")
        return aiohttp.web.json_response({"error": "Internal API not configured"}, status=503)
    if request.headers.get("Authorization") != f"Bearer {config.INTERNAL_API_SECRET}":
        return aiohttp.web.json_response({"error": "Unauthorized"}, status=401)
    return None


async def _handle_health(request: aiohttp.web.Request) -> aiohttp.web.Response:
    """GET /internal/health"""
    return aiohttp.web.json_response({"ok": True})


async def _handle_check_events(request: aiohttp.web.Request) -> aiohttp.web.Response:
    """POST /internal/check-events - run the scaffold check now (called by the web API)."""
    denied = _authorized(request)
    if denied is not None:
        return denied
    spawner = request.app["services"].spawner
    created = await spawner.check_and_create_events_from_scaffolds()
    logger.info("Scaffold check triggered over HTTP: %d event(s) created", created)
    return aiohttp.web.json_response({"ok": True, "events_created": created})


def create_app(services) -> aiohttp.web.Application:
    """Create aiohttp app with a reference to the bot's services."""
    app = aiohttp.web.Application()
    app["services"] = services
    app.router.add_get("/internal/health", _handle_health)
    app.router.add_post("/internal/check-events", _handle_check_events)
    return app


async def start_http_server(services, host: str = "0.0.0.0", port: int = 8001) -> aiohttp.web.AppRunner | None:
    """Start the internal HTTP server (run alongside the bot)."""
    if not config.INTERNAL_API_SECRET:
        logger.info("INTERNAL_API_SECRET not set - skipping internal HTTP server")
        return None
    runner = aiohttp.web.AppRunner(create_app(services))
    await runner.setup()
    site = aiohttp.web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Internal HTTP server listening on %s:%d", host, port)
    return runner
