from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable

from aiohttp import web

from store_scrap.core.errors import UnknownKeyError
from store_scrap.core.models import StoreResult
from store_scrap.core.utils import format_rfc3339, utc_now
from store_scrap.refresh.orchestrator import RefreshOrchestrator
from store_scrap.storage.codec import encode_result

logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY: web.AppKey[RefreshOrchestrator] = web.AppKey("orchestrator", RefreshOrchestrator)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _default(value: Any) -> Any:
    if isinstance(value, StoreResult):
        return encode_result(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_response(body: Any, *, status: int = 200) -> web.Response:
    return web.Response(
        status=status,
        text=json.dumps(body, indent=2, default=_default) + "\n",
        content_type="application/json",
        headers={**CORS_HEADERS, "Cache-Control": "no-store"},
    )


def _is_truthy(value: str | None) -> bool:
    return value in {"1", "true"}


@web.middleware
async def api_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)
    if request.method != "GET":
        return json_response({"error": "Method not allowed"}, status=405)
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return json_response({"error": "Not found"}, status=404)
    except web.HTTPMethodNotAllowed:
        return json_response({"error": "Method not allowed"}, status=405)


async def handle_summary(request: web.Request) -> web.Response:
    return json_response(request.app[ORCHESTRATOR_KEY].get_summary())


async def handle_health(request: web.Request) -> web.Response:
    return json_response({"ok": True, "timestamp": format_rfc3339(utc_now())})


async def handle_country(request: web.Request) -> web.Response:
    orchestrator = request.app[ORCHESTRATOR_KEY]
    force = _is_truthy(request.query.get("refresh"))
    try:
        payload = await orchestrator.get_country(request.match_info["code"], force=force)
    except UnknownKeyError:
        return json_response({"error": "Unknown country code"}, status=404)
    except Exception as e:
        logger.exception("Country request failed. code=%s", request.match_info["code"])
        return json_response({"error": str(e)}, status=500)
    return json_response(payload)


def create_app(orchestrator: RefreshOrchestrator) -> web.Application:
    app = web.Application(middlewares=[api_middleware])
    app[ORCHESTRATOR_KEY] = orchestrator
    app.router.add_get("/api/summary", handle_summary, allow_head=False)
    app.router.add_get("/api/health", handle_health, allow_head=False)
    app.router.add_get("/api/country/{code}", handle_country, allow_head=False)
    return app
