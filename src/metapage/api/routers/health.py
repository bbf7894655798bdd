from __future__ import annotations

from fastapi import APIRouter, Depends

from metapage import __version__
from metapage.api.dependencies.runtime import get_runtime
from metapage.config import get_settings
from metapage.context import get_request_context
from metapage.page_engine.runtime import PageRuntime

router = APIRouter(tags=["system"])


@router.get("/health")
def health(runtime: PageRuntime = Depends(get_runtime)) -> dict:
    ctx = get_request_context()
    settings = get_settings()
    return {
        "ok": True,
        "service": "metapage",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "conn_code": ctx.conn_code,
        "pages_loaded": len(runtime.registry),
        "debug_enabled": runtime.engine.debug_enabled,
    }
