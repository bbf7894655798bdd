from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from metapage import __version__
from metapage.api.middleware.context import RequestContextMiddleware
from metapage.api.routers.debug import router as debug_router
from metapage.api.routers.health import router as health_router
from metapage.api.routers.pages import router as pages_router
from metapage.exceptions import PageRuntimeException
from metapage.page_engine.runtime import PageRuntime

logger = logging.getLogger(__name__)


def create_app(runtime: Optional[PageRuntime] = None) -> FastAPI:
    app = FastAPI(title="metapage", version=__version__)
    app.state.runtime = runtime
    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(pages_router, prefix="/api/v1")
    app.include_router(debug_router, prefix="/api/v1")

    @app.exception_handler(PageRuntimeException)
    async def _runtime_error(request: Request, exc: PageRuntimeException) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    return app


app = create_app()
