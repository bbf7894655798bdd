"""
Action steps.

A closed tagged union discriminated on `actionType`. Steps sharing a
primitive share a class; the literal lists every tag that class accepts.
"""

from typing import Annotated, List, Literal, Optional, Union, get_args

from pydantic import ConfigDict, Field

from metapage.page_engine.schemas.base import CondCheck, PageModel, ParamSource


class StepBase(PageModel):
    model_config = ConfigDict(frozen=True)

    action_order: Optional[int] = None
    exec_cond: List[CondCheck] = Field(default_factory=list)

    @property
    def kind(self) -> str:
        return getattr(self, "action_type")


class GetDataStep(StepBase, ParamSource):
    action_type: Literal["getData"]
    data_adapter: str


class RemoveDataStep(StepBase):
    action_type: Literal["removeData"]
    data_adapter: str


class SetViewStep(StepBase):
    action_type: Literal["setView"]
    view_name: str


class SetPreviousViewStep(StepBase):
    action_type: Literal["setPreviousView"]


class SelectionStep(StepBase):
    action_type: Literal["selectDS", "unselectDS", "goToFirstRow", "goToLastRow"]
    data_set_name: str


class ExecProcStep(StepBase, ParamSource):
    action_type: Literal["execProc"]
    sql_id: int


class ExecCustomStep(StepBase):
    action_type: Literal["execCustom"]
    custom_code: Optional[str] = None


class SetRuleStep(StepBase):
    action_type: Literal["setRule"]
    cond_id: int
    cond_value: int


class FormStep(StepBase):
    action_type: Literal[
        "getFormData", "clearFields", "pkLock", "pkUnlock", "saveFormData"
    ]
    cl_fld_grp_id: int


class GetExportedDataStep(StepBase):
    action_type: Literal["getExportedData"]
    cl_fld_grp_id: int


class DataSetStatusStep(StepBase, ParamSource):
    action_type: Literal["dsInsert", "dsEdit", "dsCancel"]
    data_set_name: str


class DataSetRefreshStep(StepBase):
    action_type: Literal["dsRefresh", "dsRefreshSel"]
    data_set_name: str


class DataSetActionStep(StepBase, ParamSource):
    action_type: Literal["dsPost", "dsDelete"]
    data_set_name: str
    cl_fld_grp_id: Optional[int] = None


class MessageStep(StepBase):
    action_type: Literal["showMsg", "showOKCancel"]
    msg_text: Optional[str] = None
    msg_type: Optional[str] = None


class GridModeStep(StepBase):
    action_type: Literal[
        "gridSetIdle", "gridSetEdit", "gridSetInsert", "gridAllowDelete", "gridRollback"
    ]
    data_set_name: Optional[str] = None
    grid_name: Optional[str] = None


class GridPostChangesStep(StepBase):
    action_type: Literal["gridPostChanges"]
    data_set_name: str
    grid_name: str


class AiAssistStep(StepBase):
    """Open the AI chat to import grid rows (`gridSetAIMode`) or fill a form (`formAIAssist`)."""

    action_type: Literal["gridSetAIMode", "formAIAssist"]
    custom_code: Optional[str] = None
    data_set_name: Optional[str] = None
    grid_name: Optional[str] = None
    cl_fld_grp_id: Optional[int] = None


ActionStep = Annotated[
    Union[
        GetDataStep,
        RemoveDataStep,
        SetViewStep,
        SetPreviousViewStep,
        SelectionStep,
        ExecProcStep,
        ExecCustomStep,
        SetRuleStep,
        FormStep,
        GetExportedDataStep,
        DataSetStatusStep,
        DataSetRefreshStep,
        DataSetActionStep,
        MessageStep,
        GridModeStep,
        GridPostChangesStep,
        AiAssistStep,
    ],
    Field(discriminator="action_type"),
]

STEP_CLASSES = get_args(get_args(ActionStep)[0])

# Grid mode tag -> flag sent with the grid reload notification
GRID_MODE_FLAGS = {
    "gridSetIdle": "Idle",
    "gridSetEdit": "Edit",
    "gridSetInsert": "Insert",
    "gridAllowDelete": "Delete",
}
