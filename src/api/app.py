"""HTTP surface: the two processing endpoints the authenticated front end calls."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from digitaldna import __version__
from digitaldna.api.routes import router
from digitaldna.shared.errors import (
    AuthenticationError,
    BlobNotFoundError,
    ConfigurationError,
    DigitalDnaError,
    InvalidKeyError,
    StorageError,
)

if TYPE_CHECKING:
    from digitaldna.config import DigitalDnaConfig
    from digitaldna.pipeline import PipelineRuntime

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


def status_for(exc: DigitalDnaError) -> int:
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, InvalidKeyError):
        return 400
    if isinstance(exc, BlobNotFoundError):
        return 404
    if isinstance(exc, ConfigurationError):
        return 500
    if isinstance(exc, StorageError):
        return 502
    return 500


def request_id(request: Request) -> str:
    return request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())


def error_response(
    request: Request, status_code: int, message: str, code: str, detail: str | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "message": message,
            "error": {
                "message": detail or message,
                "code": code,
                "requestId": request_id(request),
            },
        },
    )


def create_app(
    config: DigitalDnaConfig | None = None,
    runtime: PipelineRuntime | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    The runtime is created on startup from *config* (or the loaded config)
    unless one is passed in.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if runtime is None:
            from digitaldna.config import load_config
            from digitaldna.pipeline import PipelineRuntime

            owned = PipelineRuntime(config or load_config(), inline=True)
            app.state.runtime = owned
        else:
            app.state.runtime = runtime
        logger.info("API startup complete")
        yield
        if owned is not None:
            owned.close()
        logger.info("API shutdown")

    app = FastAPI(title="digitaldna", version=__version__, lifespan=lifespan)
    app.include_router(router)

    @app.exception_handler(DigitalDnaError)
    async def _domain_error(request: Request, exc: DigitalDnaError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("Request failed: %s", exc, exc_info=exc)
        else:
            logger.info("Request rejected (%d): %s", status_code, exc)
        return error_response(request, status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) for err in exc.errors())
        return error_response(
            request,
            400,
            "Missing or invalid parameters",
            "VALIDATION_ERROR",
            f"Invalid fields: {fields}" if fields else None,
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error", exc_info=exc)
        return error_response(request, 500, "Internal server error", "INTERNAL_ERROR", str(exc))

    return app
