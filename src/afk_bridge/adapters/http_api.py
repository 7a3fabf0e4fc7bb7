from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.commands import CommandSurface

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "GET /": "This endpoint",
    "GET /health": "Health check",
    "GET /status": "Detailed bot status",
    "POST /connect": "Connect to the game server",
    "POST /disconnect": "Disconnect from the game server",
    "POST /chat": 'Send chat message (requires {"message": "text"})',
    "POST /safety": 'Toggle safety monitoring (requires {"enabled": true|false})',
}


def create_app(
    commands: CommandSurface,
    *,
    service_info: Callable[[], dict[str, Any]] | None = None,
) -> FastAPI:
    """Build the HTTP control plane around ``commands``.

    ``service_info`` contributes extra fields (e.g. chat-platform state) to
    ``/health`` and ``/status``.
    """
    app = FastAPI(title="afk-bridge control API", version="1.0.0")
    started = time.monotonic()
    manager = commands.manager

    def _extra() -> dict[str, Any]:
        if service_info is None:
            return {}
        try:
            return dict(service_info())
        except Exception:
            logger.debug("service_info provider failed", exc_info=True)
            return {}

    @app.get("/")
    async def index():
        status = manager.status()
        return {
            "name": "afk-bridge control API",
            "version": "1.0.0",
            "endpoints": ENDPOINTS,
            "game": {"server": status.server, "connected": status.connected},
        }

    @app.get("/health")
    async def health():
        status = manager.status()
        pos = status.snapshot.position
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "game": {
                "connected": status.connected,
                "username": status.username,
                "world": status.snapshot.world,
                "coordinates": {"x": pos.x, "y": pos.y, "z": pos.z},
            },
            **_extra(),
        }

    @app.get("/status")
    async def status():
        current = await commands.get_status()
        return {
            "game": current.to_dict(),
            "uptime": time.monotonic() - started,
            "pid": os.getpid(),
            **_extra(),
        }

    @app.post("/connect")
    async def connect():
        result = await commands.connect()
        return result.to_dict()

    @app.post("/disconnect")
    async def disconnect():
        result = await commands.disconnect()
        return result.to_dict()

    @app.post("/chat")
    async def chat(payload: dict | None = None):
        message = (payload or {}).get("message")
        result = await commands.send_chat(message)
        return result.to_dict()

    @app.post("/safety")
    async def safety(payload: dict | None = None):
        enabled = (payload or {}).get("enabled")
        result = await commands.set_safety(enabled)
        return result.to_dict()

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                {
                    "success": False,
                    "message": "Endpoint not found",
                    "availableEndpoints": sorted({key.split(" ", 1)[1] for key in ENDPOINTS}),
                },
                status_code=404,
            )
        return JSONResponse({"success": False, "message": str(exc.detail)}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        logger.error("Web server error on %s: %s", request.url.path, exc, exc_info=exc)
        body: dict[str, Any] = {"success": False, "message": "Internal server error"}
        if os.environ.get("AFK_BRIDGE_ENV") == "development":
            body["error"] = str(exc)
        return JSONResponse(body, status_code=500)

    return app
