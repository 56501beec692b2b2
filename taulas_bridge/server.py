#!/usr/bin/env python3
"""
Taulas bridge HTTP server.

Endpoints, relative to the configured prefix (default ``taulas``):
- GET /                          -> list of available endpoints
- GET /<prefix>?command=relay/1  -> forwards <relay/1> to the device, returns its JSON reply
- GET /<prefix>/alertCb?url=...  -> sets the URL alerts are forwarded to

Reply status: 200 on success, 404 when the device answers with an ``error``
field, 500 when the device could not be reached or answered garbage.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .alerts import AlertMonitor
from .device_manager import DeviceManager
from .errors import BridgeError, ProtocolParseFailure

logger = logging.getLogger(__name__)


def _endpoints(prefix: str) -> Dict[str, str]:
    return {
        "command_url": f"/{prefix}?command=<YOUR_COMMAND>",
        "set_alert_url": f"/{prefix}/alertCb?url=<YOUR_URL_CALLBACK>",
    }


def create_app(prefix: str, mgr: DeviceManager, monitor: Optional[AlertMonitor] = None) -> FastAPI:
    prefix = prefix.strip("/")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if monitor is not None:
            monitor.start()
        try:
            yield
        finally:
            if monitor is not None:
                monitor.stop(timeout_s=5.0)
            mgr.close()
            logger.info("Exit program")

    app = FastAPI(title="Taulas bridge", version="1.0.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"])
    app.state.mgr = mgr
    app.state.monitor = monitor

    @app.exception_handler(StarletteHTTPException)
    async def not_found(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return JSONResponse(_endpoints(prefix), status_code=404)
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.get("/")
    def root() -> Dict[str, str]:
        return _endpoints(prefix)

    @app.get(f"/{prefix}")
    def send_command(command: Optional[str] = None) -> JSONResponse:
        if not command:
            return JSONResponse({"error": "missing 'command' parameter"}, status_code=400)
        if not command.isascii():
            return JSONResponse({"error": "command must be ASCII text"}, status_code=400)
        try:
            reply: Any = mgr.send_command(command)
        except ProtocolParseFailure as e:
            return JSONResponse({"error": str(e), "payload": e.payload}, status_code=500)
        except BridgeError as e:
            logger.error("Error sending command %r: %s", command, e)
            return JSONResponse({"error": str(e)}, status_code=500)
        if isinstance(reply, dict) and "error" in reply:
            return JSONResponse(reply, status_code=404)
        return JSONResponse(reply)

    @app.get(f"/{prefix}/alertCb")
    def set_alert_url(url: Optional[str] = None) -> JSONResponse:
        if monitor is None:
            return JSONResponse({"error": "alerts are disabled"}, status_code=500)
        if url:
            monitor.alert_url = url
        return JSONResponse({"alert_url": monitor.alert_url})

    return app
