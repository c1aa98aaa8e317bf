"""FastAPI application factory for kubesim.

Usage::

    from kubesim.api.app import create_app

    app = create_app(session=session, config=config)

The factory is used by both the ``kubesim serve`` bootstrap
(``kubesim.app``) and unit tests.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubesim.api.routes import router
from kubesim.api.schemas import ErrorResponse
from kubesim.models.config import KubeSimConfig
from kubesim.session import SimulationSession

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(session: SimulationSession, config: KubeSimConfig | None = None) -> FastAPI:
    """Create and configure the kubesim FastAPI application.

    Args:
        session: The SimulationSession every route reads and advances.
        config:  KubeSimConfig, exposed to routes for metadata only.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kubesim import __version__

    app = FastAPI(
        title="kubesim",
        summary="Kubernetes control-plane reconciliation simulator",
        version=__version__,
        description=(
            "Issue structured commands against an in-memory cluster and advance "
            "discrete reconcile ticks to watch controllers converge."
        ),
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.session = session
    app.state.config = config or session.config

    app.include_router(router, prefix=_API_PREFIX)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map Pydantic validation errors to the error envelope."""
        errors = exc.errors()
        detail = ""
        if errors:
            locs = errors[0].get("loc", ())
            field = ".".join(str(part) for part in locs[1:]) if len(locs) > 1 else ""
            msg = str(errors[0].get("msg", ""))
            detail = f"{field}: {msg}" if field else msg

        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_REQUEST", detail=detail).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
