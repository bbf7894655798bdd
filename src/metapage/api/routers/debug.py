from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from metapage.api.dependencies.runtime import get_runtime
from metapage.page_engine.runtime import PageRuntime

router = APIRouter(prefix="/debug", tags=["debug"])


class EnabledRequest(BaseModel):
    enabled: bool


def _session(runtime: PageRuntime, run: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"session": runtime.debugger.snapshot(), "run": run}


@router.get("/snapshot")
async def debug_snapshot(runtime: PageRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    return runtime.debug_snapshot()


@router.get("/db-log")
async def db_log(
    prj_id: Optional[str] = None, runtime: PageRuntime = Depends(get_runtime)
) -> List[Dict[str, Any]]:
    return runtime.get_db_log(prj_id)


@router.put("/enabled")
async def set_enabled(
    payload: EnabledRequest, runtime: PageRuntime = Depends(get_runtime)
) -> Dict[str, bool]:
    runtime.debugger.set_enabled(payload.enabled)
    return {"enabled": runtime.debugger.enabled}


@router.get("/session")
async def get_session(runtime: PageRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    return _session(runtime)


@router.post("/step")
async def step_one(runtime: PageRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    result = await runtime.debugger.step_one()
    return _session(runtime, result.to_dict())


@router.post("/run-all")
async def run_all(runtime: PageRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    result = await runtime.debugger.run_all()
    return _session(runtime, result.to_dict())


@router.post("/close")
async def close(runtime: PageRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    result = await runtime.debugger.close()
    return _session(runtime, result.to_dict() if result else None)
