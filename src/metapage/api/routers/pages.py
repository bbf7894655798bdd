from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from metapage.api.dependencies.runtime import get_runtime
from metapage.page_engine.runtime import PageRuntime

router = APIRouter(tags=["pages"])


class RunActionRequest(BaseModel):
    start_index: int = Field(default=0, ge=0)
    debug_level: int = Field(default=0, ge=0, le=3)


class AnswerRequest(BaseModel):
    answer: str = Field(..., description="OK | Cancel | Close")


class ViewRequest(BaseModel):
    is_previous: bool = False


class RuleRequest(BaseModel):
    cond_value: int


class SelectRowsRequest(BaseModel):
    keys: List[Dict[str, Any]] = Field(default_factory=list)


class ReloadRequest(BaseModel):
    grid_filters: List[Any] = Field(default_factory=list)
    skip_initial_limit: bool = True


@router.post("/pages/{prj_id}/{form_id}/load")
async def load_page(
    prj_id: str, form_id: int, runtime: PageRuntime = Depends(get_runtime)
) -> Dict[str, Any]:
    result = await runtime.run_page(prj_id, form_id)
    ctx = result.context
    return {
        "prjId": ctx.prj_id,
        "formId": ctx.form_id,
        "loaded": result.loaded,
        "actualView": ctx.active_view,
        "init": result.init_result.to_dict() if result.init_result else None,
    }


@router.post("/pages/{prj_id}/{form_id}/actions/{action_name}/run")
async def run_action(
    prj_id: str,
    form_id: int,
    action_name: str,
    payload: Optional[RunActionRequest] = None,
    runtime: PageRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    payload = payload or RunActionRequest()
    result = await runtime.run_action(
        prj_id, form_id, action_name, payload.start_index, payload.debug_level
    )
    return result.to_dict()


@router.post("/pages/{prj_id}/{form_id}/messages/answer")
async def answer_message(
    prj_id: str,
    form_id: int,
    payload: AnswerRequest,
    runtime: PageRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    runtime.page(prj_id, form_id)
    result = await runtime.answer_message(payload.answer, prj_id, form_id)
    return {
        "messageStatus": runtime.gate.status.value,
        "run": result.to_dict() if result else None,
    }


@router.post("/pages/{prj_id}/{form_id}/views/{view_name}")
async def set_view(
    prj_id: str,
    form_id: int,
    view_name: str,
    payload: Optional[ViewRequest] = None,
    runtime: PageRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    payload = payload or ViewRequest()
    changed = await runtime.set_view(prj_id, form_id, view_name, payload.is_previous)
    return {"changed": changed, "actualView": runtime.page(prj_id, form_id).active_view}


@router.get("/pages/{prj_id}/{form_id}/rules")
async def get_rules(
    prj_id: str, form_id: int, runtime: PageRuntime = Depends(get_runtime)
) -> List[Dict[str, int]]:
    return runtime.get_rules(prj_id, form_id)


@router.put("/pages/{prj_id}/{form_id}/rules/{cond_id}")
async def set_rule(
    prj_id: str,
    form_id: int,
    cond_id: int,
    payload: RuleRequest,
    runtime: PageRuntime = Depends(get_runtime),
) -> List[Dict[str, int]]:
    await runtime.set_page_rule(prj_id, form_id, cond_id, payload.cond_value)
    return runtime.get_rules(prj_id, form_id)


@router.get("/pages/{prj_id}/{form_id}/data")
async def get_page_data(
    prj_id: str, form_id: int, runtime: PageRuntime = Depends(get_runtime)
) -> List[Dict[str, Any]]:
    return runtime.get_page_data(prj_id, form_id)


@router.post("/pages/{prj_id}/{form_id}/datasets/{data_set_name}/selection")
async def select_rows(
    prj_id: str,
    form_id: int,
    data_set_name: str,
    payload: SelectRowsRequest,
    runtime: PageRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    await runtime.set_selected_rows(prj_id, form_id, data_set_name, payload.keys)
    ds = runtime.page(prj_id, form_id).get_dataset(data_set_name)
    return {"dataSetName": data_set_name, "selectedRows": ds.selected_rows}


@router.post("/pages/{prj_id}/{form_id}/adapters/{adapter_name}/datasets/{data_set_name}/reload")
async def reload_dataset(
    prj_id: str,
    form_id: int,
    adapter_name: str,
    data_set_name: str,
    payload: Optional[ReloadRequest] = None,
    runtime: PageRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    payload = payload or ReloadRequest()
    response = await runtime.reload_with_filters(
        prj_id, form_id, adapter_name, data_set_name,
        payload.grid_filters, payload.skip_initial_limit,
    )
    if response is None:
        return {"valid": False, "data": []}
    return response.to_json_dict()


@router.delete("/pages/{prj_id}/{form_id}/data")
async def remove_page_data(
    prj_id: str, form_id: int, runtime: PageRuntime = Depends(get_runtime)
) -> Dict[str, Any]:
    await runtime.remove_page_data(prj_id, form_id)
    return {"ok": True}


@router.delete("/projects/{prj_id}")
async def remove_project(prj_id: str, runtime: PageRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    return {"prjId": prj_id, "removed": runtime.remove_project(prj_id)}
