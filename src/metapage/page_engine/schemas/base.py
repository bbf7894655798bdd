from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PageModel(BaseModel):
    """
    Base for everything parsed out of the page metadata document.

    The server speaks camelCase JSON; attributes are snake_case. Keys the
    runtime does not know about are kept so the document round-trips to UI
    collaborators unchanged.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class CondCheck(PageModel):
    """One `{condId, value}` pair of an execCond list."""

    cond_id: int = Field(validation_alias=AliasChoices("condId", "Id", "cond_id"))
    value: int = Field(
        validation_alias=AliasChoices("value", "Value", "condValue", "cond_value")
    )


class SqlParam(PageModel):
    """
    Binding of a SQL parameter to its source.

    Either `paramObjectName` (a page field) or the pair
    `paramDataSetName`/`paramDataSetField` (a field of a dataset's current row).
    """

    param_name: str
    param_object_name: Optional[str] = None
    param_data_set_name: Optional[str] = None
    param_data_set_field: Optional[str] = None


class ParamSource(PageModel):
    """Parameter declarations shared by steps that talk to the server."""

    sql_type: Optional[str] = "SQL"
    sql_params: List[SqlParam] = Field(default_factory=list)
    doc: List[Dict[str, Any]] = Field(default_factory=list)
    query_params: List[Dict[str, Any]] = Field(default_factory=list)
