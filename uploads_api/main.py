# uploads_api/main.py

from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from uploads_api.config import get_settings
from uploads_api.errors import InvalidAccess, InvalidParameters, NotFound, StoreError, UploadsError
from uploads_api.logging_config import configure_logging, request_id_var
from uploads_api.routers import uploads_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

    app = FastAPI(title="Uploads API")
    app.include_router(uploads_router)

    # -------------------------------------------------------------------------
    # Request correlation
    # -------------------------------------------------------------------------

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-Id"] = request_id
        return response

    # -------------------------------------------------------------------------
    # Error mapping
    # -------------------------------------------------------------------------

    @app.exception_handler(InvalidParameters)
    async def invalid_parameters(request: Request, exc: InvalidParameters) -> JSONResponse:
        return JSONResponse({"errors": [str(exc) or "Invalid parameters"]}, status_code=exc.status_code)

    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound) -> Response:
        logger.debug(f"404 for {request.url.path}: {exc}")
        return Response(status_code=exc.status_code)

    @app.exception_handler(InvalidAccess)
    async def invalid_access(request: Request, exc: InvalidAccess) -> Response:
        logger.info(f"403 for {request.url.path}: {exc}")
        return Response(status_code=exc.status_code)

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error(f"Store failure on {request.url.path}: {exc}", extra={"event": "store_error"})
        return JSONResponse({"errors": ["Internal server error"]}, status_code=exc.status_code)

    @app.exception_handler(UploadsError)
    async def uploads_error(request: Request, exc: UploadsError) -> JSONResponse:
        logger.error(f"Unhandled upload error on {request.url.path}: {exc}")
        return JSONResponse({"errors": ["Internal server error"]}, status_code=exc.status_code)

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "service": "uploads-api", "store": settings.STORAGE_PROVIDER}

    return app


app = create_app()
