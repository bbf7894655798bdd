from typing import Any, Dict, List, Optional

from pydantic import Field

from metapage.page_engine.schemas.base import PageModel


class GetDataRequest(PageModel):
    prj_id: str
    form_id: Optional[int] = None
    data_adapter_name: Optional[str] = None
    lookup_sql_id: Optional[int] = None
    lookup_field: Optional[str] = None
    lookup_value: Any = None
    params: Dict[str, Any] = Field(default_factory=dict)
    conn_code: Optional[str] = None
    # filtered re-fetch of one dataset
    grid_filters: Optional[List[Any]] = None
    skip_initial_limit: Optional[bool] = None
    data_set_name: Optional[str] = None


class ExecProcRequest(PageModel):
    prj_id: str
    sql_id: int
    params: Dict[str, Any] = Field(default_factory=dict)
    conn_code: Optional[str] = None


class ColumnMetaData(PageModel):
    name: str
    db_type: Optional[Any] = None

    @property
    def is_number(self) -> bool:
        kind = self.db_type
        if isinstance(kind, dict):
            kind = kind.get("name")
        return kind == "DB_TYPE_NUMBER"


class DataSetPayload(PageModel):
    """One dataset of a getData reply."""

    data_set_name: Optional[str] = None
    sql_id: Optional[int] = None
    op_field_name: Optional[str] = None
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    meta_data: List[ColumnMetaData] = Field(default_factory=list)
    total_count: Optional[int] = None
    limit: Optional[int] = None
    # set when the server capped the first load of a large dataset
    limit_applied: Optional[bool] = None
    limit_initial_load: Optional[bool] = None
    initial_load_limit: Optional[int] = None


class DataResponse(PageModel):
    valid: bool = False
    data: List[DataSetPayload] = Field(default_factory=list)
    message: Optional[str] = None


class ExecProcResponse(PageModel):
    valid: bool = False
    out_binds: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class PageDataResponse(PageModel):
    valid: bool = False
    page_data: Dict[str, Any] = Field(default_factory=dict)
    message: Optional[str] = None
