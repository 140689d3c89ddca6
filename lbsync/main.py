from __future__ import annotations

import threading
from time import perf_counter
from typing import Awaitable, Callable
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Request, Response

from lbsync.logger import get_logger
from lbsync.routes import render, system
from lbsync.runtime import RuntimeController

logger = get_logger("api")


def create_app(controller: RuntimeController) -> FastAPI:
    settings = controller.settings
    app = FastAPI(title=settings.app_name, version=settings.app_version)
    app.state.controller = controller

    @app.middleware("http")
    async def request_logging(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid4())
        start = perf_counter()
        with logger.context(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.exception(
                    "request.error",
                    "Failed",
                    method=request.method,
                    path=request.url.path,
                    duration_ms=round((perf_counter() - start) * 1000, 1),
                    error_type=type(exc).__name__,
                )
                raise
            logger.debug(
                "request.complete",
                "Completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((perf_counter() - start) * 1000, 1),
            )
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(system.router)
    app.include_router(render.router)
    return app


def serve_in_background(controller: RuntimeController) -> threading.Thread:
    settings = controller.settings
    config = uvicorn.Config(
        create_app(controller),
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="status-api", daemon=True)
    thread.start()
    logger.info(
        "api.start",
        "Serving status API",
        host=settings.api_host,
        port=settings.api_port,
    )
    return thread
