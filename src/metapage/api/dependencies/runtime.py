from __future__ import annotations

from fastapi import Request

from metapage.integrations.data_service import DataServiceClient
from metapage.page_engine.runtime import PageRuntime


def get_runtime(request: Request) -> PageRuntime:
    """The application's page runtime, created on first use."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        runtime = PageRuntime(DataServiceClient())
        request.app.state.runtime = runtime
    return runtime
