"""
Page metadata document.

One `PageMetadata` per (prjId, formId), fetched from the data service on the
first navigation to the page. UI flags (`visible`, `disabled`, `tabIndex`,
field values) are mutated in place by the runtime; everything else is
read-only for the life of the page.
"""

from typing import Any, Dict, Iterator, List, Optional

from pydantic import AliasChoices, Field

from metapage.exceptions import MetadataNotFoundError
from metapage.page_engine.schemas.base import CondCheck, PageModel, SqlParam
from metapage.page_engine.schemas.steps import ActionStep


class PageField(PageModel):
    page_field_name: str
    page_field_label: Optional[str] = None
    data_type: Optional[str] = None
    value: Any = None
    data_set_name: Optional[str] = None
    db_field_name: Optional[str] = None


class FieldDetail(PageModel):
    page_field_name: Optional[str] = None
    detail_field_name: Optional[str] = None
    value: Any = None


class FormField(PageModel):
    object_name: str
    field_name: Optional[str] = None
    editor_type: Optional[str] = None
    data_type: Optional[str] = None
    value: Any = None
    is_pk: bool = Field(default=False, alias="isPK")
    read_only: bool = False
    init_as_read_only: bool = False
    disabled: bool = False
    init_as_disabled: bool = False
    value_checked: Any = None
    value_unchecked: Any = None
    sql_id: Optional[int] = None
    sql_params: List[SqlParam] = Field(default_factory=list)
    details: Optional[List[FieldDetail]] = None
    drop_down_rows: Optional[List[Dict[str, Any]]] = None

    @property
    def has_details(self) -> bool:
        return bool(self.details)


class Form(PageModel):
    """Data-entry form; its fields bind to page fields named by `objectName`."""

    object_name: str
    group_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("groupId", "clFldGrpId", "group_id")
    )
    visible: bool = False
    fields: List[FormField] = Field(default_factory=list)

    def find_field(self, object_name: str) -> Optional[FormField]:
        return next((f for f in self.fields if f.object_name == object_name), None)


class GridChange(PageModel):
    type: str
    data_params: Dict[str, Any] = Field(default_factory=dict)
    key_params: Dict[str, Any] = Field(default_factory=dict)


class Grid(PageModel):
    object_name: str
    data_set_name: Optional[str] = None
    visible: bool = False
    disabled: bool = False
    change_array: List[GridChange] = Field(default_factory=list)


class ToolbarItem(PageModel):
    object_name: str
    visible: bool = False
    disabled: bool = False


class Toolbar(PageModel):
    object_name: str
    visible: bool = False
    items_list: List[ToolbarItem] = Field(default_factory=list)


class Tab(PageModel):
    object_name: str
    tab_index: int = 0
    visible: bool = False


class Report(PageModel):
    report_name: Optional[str] = None
    exec_cond: List[CondCheck] = Field(default_factory=list)
    visible: bool = True


class ReportGroup(PageModel):
    field_grp_id: str
    visible: bool = False
    reports: List[Report] = Field(default_factory=list)


class ViewObject(PageModel):
    object_type: str
    object_name: str
    selected: str = "U"
    selected_object_name: Optional[str] = None
    exec_cond: List[CondCheck] = Field(default_factory=list)
    exec_cond_not_visible: bool = False
    tabs_name: Optional[str] = None
    tab_rn: Optional[int] = Field(default=None, alias="tabRN")


class View(PageModel):
    view_name: str
    view_level: int = 0
    view_flag_always_active: bool = False
    objects: List[ViewObject] = Field(default_factory=list)


class CondRuleDef(PageModel):
    """
    Condition rule declaration.

    `condValue` is the initial live value. When `dataSetName`/`fieldName` are
    set the rule is re-derived from that dataset's selected row: the first
    `fieldValues[j]` (a `;`-separated list) containing the row's value gives
    `dataSetCondValues[j]`.
    """

    cond_id: int
    cond_value: int = 0
    data_set_name: Optional[str] = None
    field_name: Optional[str] = None
    field_values: List[str] = Field(default_factory=list)
    data_set_cond_values: List[int] = Field(default_factory=list)


class DataSetDef(PageModel):
    data_set_name: str
    data_adapter_name: Optional[str] = None
    sql_id: Optional[int] = None
    sql_insert_id: Optional[int] = None
    sql_update_id: Optional[int] = None
    sql_delete_id: Optional[int] = None
    sql_keys: List[str] = Field(default_factory=list)
    filter_object: Optional[Dict[str, Any]] = None


class SqlDef(PageModel):
    sql_id: int
    op_field_name: Optional[str] = None


class PageInfo(PageModel):
    init_action: Optional[str] = None


class Action(PageModel):
    object_name: str
    steps: List[ActionStep] = Field(
        default_factory=list, validation_alias=AliasChoices("steps", "actions")
    )


class PageMetadata(PageModel):
    page: PageInfo = Field(default_factory=PageInfo)
    actions: List[Action] = Field(default_factory=list)
    views: List[View] = Field(default_factory=list)
    cond_rules: List[CondRuleDef] = Field(default_factory=list)
    data_sets: List[DataSetDef] = Field(default_factory=list)
    forms: List[Form] = Field(default_factory=list)
    grids: List[Grid] = Field(default_factory=list)
    toolbars: List[Toolbar] = Field(default_factory=list)
    tabs: List[Tab] = Field(default_factory=list)
    reports_groups: List[ReportGroup] = Field(default_factory=list)
    sqls: List[SqlDef] = Field(default_factory=list)
    page_fields: List[PageField] = Field(default_factory=list)
    custom_msg: Optional[str] = None

    # -- lookups ---------------------------------------------------------------

    def find_action(self, name: str) -> Optional[Action]:
        return next((a for a in self.actions if a.object_name == name), None)

    def find_view(self, name: str) -> Optional[View]:
        return next((v for v in self.views if v.view_name == name), None)

    def get_dataset_def(self, name: str) -> DataSetDef:
        for ds in self.data_sets:
            if ds.data_set_name == name:
                return ds
        raise MetadataNotFoundError("dataset", name)

    def find_dataset_def(self, name: str) -> Optional[DataSetDef]:
        return next((d for d in self.data_sets if d.data_set_name == name), None)

    def get_form(self, group_id: int) -> Form:
        for form in self.forms:
            if form.group_id == group_id:
                return form
        raise MetadataNotFoundError("form", group_id)

    def get_form_by_name(self, object_name: str) -> Form:
        for form in self.forms:
            if form.object_name == object_name:
                return form
        raise MetadataNotFoundError("form", object_name)

    def get_page_field(self, name: str) -> PageField:
        field = self.find_page_field(name)
        if field is None:
            raise MetadataNotFoundError("page field", name)
        return field

    def find_page_field(self, name: str) -> Optional[PageField]:
        return next((f for f in self.page_fields if f.page_field_name == name), None)

    def find_grid(self, name: str) -> Optional[Grid]:
        return next((g for g in self.grids if g.object_name == name), None)

    def find_sql(self, sql_id: Optional[int]) -> Optional[SqlDef]:
        return next((s for s in self.sqls if s.sql_id == sql_id), None)

    def fields_bound_to(self, data_set_name: str) -> Iterator[PageField]:
        return (f for f in self.page_fields if f.data_set_name == data_set_name)

    def iter_form_fields(self) -> Iterator[FormField]:
        for form in self.forms:
            yield from form.fields

    # -- load-time normalization -----------------------------------------------

    def flatten_always_active_views(self) -> None:
        """Copy the objects of always-active views into every other view."""
        always = [v for v in self.views if v.view_flag_always_active]
        if not always:
            return
        for view in self.views:
            if view.view_flag_always_active:
                continue
            names = {(o.object_type, o.object_name) for o in view.objects}
            for active in always:
                for obj in active.objects:
                    if (obj.object_type, obj.object_name) not in names:
                        view.objects.append(obj.model_copy())
