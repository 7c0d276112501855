"""
FastAPI application entry point for the Touchline backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from touchline.config import get_settings
from touchline.errors import TouchlineError
from touchline.routes import router

logger = logging.getLogger(__name__)


async def handle_touchline_error(request: Request, exc: TouchlineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Touchline Backend (FastAPI)", version="0.1.0")
    app.add_exception_handler(TouchlineError, handle_touchline_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
