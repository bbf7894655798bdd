from metapage.page_engine.schemas.base import CondCheck, PageModel, ParamSource, SqlParam
from metapage.page_engine.schemas.page import (
    Action,
    CondRuleDef,
    DataSetDef,
    FieldDetail,
    Form,
    FormField,
    Grid,
    GridChange,
    PageField,
    PageInfo,
    PageMetadata,
    Report,
    ReportGroup,
    SqlDef,
    Tab,
    Toolbar,
    ToolbarItem,
    View,
    ViewObject,
)
from metapage.page_engine.schemas.steps import STEP_CLASSES, ActionStep

__all__ = [
    "Action",
    "ActionStep",
    "CondCheck",
    "CondRuleDef",
    "DataSetDef",
    "FieldDetail",
    "Form",
    "FormField",
    "Grid",
    "GridChange",
    "PageField",
    "PageInfo",
    "PageMetadata",
    "PageModel",
    "ParamSource",
    "Report",
    "ReportGroup",
    "STEP_CLASSES",
    "SqlDef",
    "SqlParam",
    "Tab",
    "Toolbar",
    "ToolbarItem",
    "View",
    "ViewObject",
]
