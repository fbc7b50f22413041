"""Application factory and server runner for ``tokenwarden serve``.

Builds the FastAPI app: OAuth endpoints at ``/oauth/*``, discovery metadata
at ``/.well-known/*``, and the REST API at ``/api/v1/``. Settings are loaded
eagerly so a bad signing secret stops the process before it accepts traffic.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tokenwarden.api.oauth2.errors import SERVER_ERROR, StoreError
from tokenwarden.config import Settings

logger = logging.getLogger(__name__)


def install_exception_handlers(app: FastAPI) -> None:
    """Render errors in the OAuth ``{error, error_description}`` shape."""

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError):
        # Infrastructure failure: log everything, tell the client nothing.
        logger.error(
            "Store failure while handling %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": SERVER_ERROR,
                "error_description": "The server could not complete the request",
            },
        )

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            content = exc.detail
        else:
            content = {"detail": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "invalid_request", "error_description": str(exc.errors()[0]["msg"])},
        )


def create_api_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application."""
    from fastapi.middleware.cors import CORSMiddleware

    from tokenwarden import __version__
    from tokenwarden.api.v1 import mount_v1_routers
    from tokenwarden.api.v1.oauth2 import router as oauth_router
    from tokenwarden.config import get_settings
    from tokenwarden.logging_setup import setup_logging

    # Fails loudly on missing or weak secrets
    settings = settings or get_settings()
    setup_logging(level=settings.log_level, json_output=settings.json_logs)

    app = FastAPI(
        title="tokenwarden",
        description="OAuth 2.0 authorization server with PKCE and refresh token rotation.",
        version=__version__,
        docs_url=None if settings.is_production else "/api/v1/docs",
        redoc_url=None,
        openapi_url=None if settings.is_production else "/api/v1/openapi.json",
    )
    app.state.settings = settings
    app.state.rate_limit_enabled = settings.rate_limit_enabled

    # --- Security headers -------------------------------------------------
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # --- CORS -------------------------------------------------------------
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    install_exception_handlers(app)

    app.include_router(oauth_router)
    mount_v1_routers(app)

    logger.info("tokenwarden %s ready (issuer %s)", __version__, settings.issuer)
    return app


def run_api_server(host: str = "127.0.0.1", port: int = 8000, dev: bool = False) -> None:
    """Start the server with uvicorn."""
    import uvicorn

    if dev:
        import pathlib

        src_dir = str(pathlib.Path(__file__).resolve().parent.parent)
        uvicorn.run(
            "tokenwarden.api.serve:create_api_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            reload_dirs=[src_dir],
            reload_includes=["*.py"],
            log_level="debug",
        )
    else:
        app = create_api_app()
        uvicorn.run(app, host=host, port=port, proxy_headers=True)
