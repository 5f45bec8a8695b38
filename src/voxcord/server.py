"""Health-check and usage statistics server for voxcord."""

import logging
import os
from collections.abc import Awaitable, Callable

from aiohttp import web

from voxcord.core.config import get_config
from voxcord.core.error_handling import COMMON_HANDLER_EXCEPTIONS, log_exception
from voxcord.services.database import AppDB
from voxcord.services.database.core import DATABASE_ERRORS

logger = logging.getLogger(__name__)

RequestHandler = Callable[[web.Request], Awaitable[web.StreamResponse]]
SERVER_HANDLER_EXCEPTIONS = (*COMMON_HANDLER_EXCEPTIONS, *DATABASE_ERRORS)
DB_APP_KEY = web.AppKey("db", AppDB)


@web.middleware
async def _error_middleware(
    request: web.Request,
    handler: RequestHandler,
) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except SERVER_HANDLER_EXCEPTIONS as exc:
        log_exception(
            logger=logger,
            message="Unhandled health-check server error",
            error=exc,
            context={
                "method": request.method,
                "path": request.path,
            },
        )
        return web.Response(status=500, text="Internal server error")


async def health_check(_request: web.Request) -> web.Response:
    """Return a basic liveness response."""
    return web.Response(text="I'm alive")


async def usage_stats(request: web.Request) -> web.Response:
    """Return totals and per-region counters of handled messages."""
    db = request.app[DB_APP_KEY]
    return web.json_response(db.get_usage_stats())


def build_app(db: AppDB) -> web.Application:
    """Create the aiohttp application serving ``/`` and ``/stats``."""
    app = web.Application(middlewares=[_error_middleware])
    app[DB_APP_KEY] = db
    app.add_routes([web.get("/", health_check), web.get("/stats", usage_stats)])
    return app


async def start_server(db: AppDB) -> web.AppRunner:
    """Start the HTTP server.

    Returns the underlying aiohttp runner so callers can clean it up on shutdown.
    """
    config = get_config()
    runner = web.AppRunner(build_app(db))
    await runner.setup()
    port = int(os.environ.get("PORT", str(config.get("port", 8001))))
    host = os.environ.get("HOST", config.get("host"))
    site = web.TCPSite(runner, host, port)
    await site.start()
    return runner
