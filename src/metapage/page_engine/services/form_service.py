from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from metapage.exceptions import MetadataNotFoundError
from metapage.page_engine.models.dataset import DataSetStatus, Row
from metapage.page_engine.models.page_context import PageContext
from metapage.page_engine.schemas.page import Form, FormField
from metapage.page_engine.schemas.remote import GetDataRequest
from metapage.page_engine.services.gateway import RemoteGateway

logger = logging.getLogger(__name__)

ALL = "*"


class FormService:
    """Data-entry form primitives: forms <-> page fields <-> dataset rows."""

    def __init__(self, gateway: RemoteGateway):
        self.gateway = gateway

    # -- form <-> page fields --------------------------------------------------

    def get_form_data(self, ctx: PageContext, group_id: int) -> None:
        """Load page field values into the form."""
        for field in ctx.metadata.get_form(group_id).fields:
            page_field = ctx.metadata.find_page_field(field.object_name)
            if page_field is not None:
                field.value = page_field.value

    def clear_fields(self, ctx: PageContext, group_id: int) -> None:
        for field in ctx.metadata.get_form(group_id).fields:
            page_field = ctx.metadata.find_page_field(field.object_name)
            if page_field is not None:
                page_field.value = None
            for detail in field.details or []:
                detail.value = None

    def pk_lock(self, ctx: PageContext, group_id: int) -> None:
        self._set_pk_read_only(ctx, group_id, True)

    def pk_unlock(self, ctx: PageContext, group_id: int) -> None:
        self._set_pk_read_only(ctx, group_id, False)

    def _set_pk_read_only(self, ctx: PageContext, group_id: int, read_only: bool) -> None:
        for field in ctx.metadata.get_form(group_id).fields:
            if not field.is_pk:
                continue
            field.read_only = read_only
            field.init_as_read_only = read_only
            field.disabled = False
            field.init_as_disabled = False

    def save_form_data_values(self, ctx: PageContext, group_id: int) -> Dict[str, Any]:
        """Write form values (and detail values) into page fields; returns what was written."""
        form = ctx.metadata.get_form(group_id)
        written: Dict[str, Any] = {}
        for field in form.fields:
            page_field = ctx.metadata.find_page_field(field.object_name)
            if page_field is None:
                continue
            page_field.value = self._form_value(field)
            written[page_field.page_field_name] = page_field.value

        for field in form.fields:
            for detail in field.details or []:
                page_field = ctx.metadata.find_page_field(detail.page_field_name or "")
                if page_field is not None:
                    page_field.value = detail.value
                    written[page_field.page_field_name] = detail.value
        return written

    @staticmethod
    def _form_value(field: FormField) -> Any:
        if field.editor_type != "CheckBox":
            return field.value
        if field.value_checked in ("true", "false"):
            return field.value
        return field.value_checked if field.value else field.value_unchecked

    def save_form_data(
        self,
        ctx: PageContext,
        group_id: Optional[int],
        set_dataset: bool = False,
        data_set_name: str = "",
        status: str = "",
    ) -> None:
        """
        Save the form into page fields and, with `set_dataset`, into the dataset.

        insert -> new row at the top built from the bound page fields;
        edit -> the selected row gets the bound fields the form wrote;
        delete -> selected rows are removed (form values are not saved).
        """
        if status == DataSetStatus.DELETE.value:
            ds = ctx.get_dataset(data_set_name)
            ds.remove_rows(list(ds.selected_row_ids))
            return

        written = self.save_form_data_values(ctx, group_id) if group_id is not None else {}
        if not set_dataset:
            return

        if status == DataSetStatus.INSERT.value:
            self.insert_dataset_value(ctx, data_set_name)
        elif status == DataSetStatus.EDIT.value:
            values = {
                f.db_field_name: written[f.page_field_name]
                for f in ctx.metadata.fields_bound_to(data_set_name)
                if f.db_field_name and f.page_field_name in written
            }
            self.set_dataset_value(ctx, data_set_name, values)

    def insert_dataset_value(self, ctx: PageContext, data_set_name: str) -> int:
        row: Row = {}
        for field in ctx.metadata.fields_bound_to(data_set_name):
            value = field.value
            if field.data_type in ("Date", "DateTime") and isinstance(value, (date, datetime)):
                value = value.isoformat()
            row[field.db_field_name] = value
        return ctx.get_dataset(data_set_name).add_row(row, at=0)

    def set_dataset_value(self, ctx: PageContext, data_set_name: str, values: Row) -> None:
        ds = ctx.get_dataset(data_set_name)
        for row_id in ds.selected_row_ids:
            ds.update_row(row_id, values)

    def set_dataset_field_value(
        self, ctx: PageContext, data_set_name: str, field_name: str, value: Any
    ) -> None:
        self.set_dataset_value(ctx, data_set_name, {field_name: value})

    # -- form field access -----------------------------------------------------

    def set_data_entry_field_value(
        self, ctx: PageContext, group_id: int, object_name: str, value: Any
    ) -> None:
        field = ctx.metadata.get_form(group_id).find_field(object_name)
        if field is None:
            raise MetadataNotFoundError("form field", object_name, group_id=group_id)
        field.value = value

    def set_form_field_value(
        self, ctx: PageContext, form_name: str, page_field_name: str, value: Any
    ) -> None:
        """Set a form field, or the detail field of that name when no form field matches."""
        form = ctx.metadata.get_form_by_name(form_name)
        field = form.find_field(page_field_name)
        if field is not None:
            field.value = value
            return
        for candidate in form.fields:
            for detail in candidate.details or []:
                if detail.page_field_name == page_field_name:
                    detail.value = value

    def get_form_field_value(self, ctx: PageContext, form_name: str, page_field_name: str) -> Any:
        form = ctx.metadata.get_form_by_name(form_name)
        field = form.find_field(page_field_name)
        if field is not None:
            return field.value
        for candidate in form.fields:
            for detail in candidate.details or []:
                if detail.page_field_name == page_field_name:
                    return detail.value
        raise MetadataNotFoundError("form field", page_field_name, form=form_name)

    def set_fields_value(self, ctx: PageContext, fields: List[Dict[str, Any]]) -> None:
        for item in fields:
            page_field = ctx.metadata.find_page_field(item.get("pageFieldName", ""))
            if page_field is not None:
                page_field.value = item.get("value")

    def get_next_field_value(self, ctx: PageContext, data_set_name: str, db_field_name: str) -> int:
        """max(field) + 1 over the dataset's (filtered) rows, 1 when empty."""
        found = ctx.find_dataset(data_set_name)
        if found is None:
            return 1
        ds_def = ctx.metadata.find_dataset_def(data_set_name)
        rows = found[1].to_dict(ds_def.filter_object if ds_def else None)["rows"]
        values = [r.get(db_field_name) for r in rows if r.get(db_field_name) is not None]
        return max(values) + 1 if values else 1

    # -- server lookups --------------------------------------------------------

    def _lookup_params(
        self, ctx: PageContext, form: Form, field: FormField, form_data: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        for param in field.sql_params:
            name = param.param_object_name or ""
            if form_data is not None and name in form_data:
                params[param.param_name] = form_data[name]
                continue
            form_field = form.find_field(name)
            if form_data is None and form_field is not None:
                params[param.param_name] = form_field.value
            else:
                page_field = ctx.metadata.find_page_field(name)
                params[param.param_name] = page_field.value if page_field else None
        return params

    async def get_exported_data(
        self,
        ctx: PageContext,
        group_id: int,
        field_name: str = ALL,
        field_value: Any = ALL,
        field_caller: str = ALL,
    ) -> bool:
        """
        Fill detail fields of lookup-backed form fields from the server.

        Returns False only when a server call failed; a lookup returning no
        rows or a field with no value clears the details instead.
        """
        form = ctx.metadata.get_form(group_id)
        if field_name == ALL:
            fields = [f for f in form.fields if f.sql_id is not None and f.details]
        else:
            fields = [
                f for f in form.fields
                if f.sql_id is not None and f.field_name == field_name and f.object_name == field_caller
            ]

        ok = True
        for field in fields:
            value = field.value if field_value == ALL else field_value
            if value is None or value == "":
                for detail in field.details or []:
                    detail.value = None
                continue

            params = self._lookup_params(ctx, form, field, None)
            sql = ctx.metadata.find_sql(field.sql_id)
            if sql is not None and sql.op_field_name:
                page_field = ctx.metadata.find_page_field(sql.op_field_name)
                params[sql.op_field_name] = page_field.value if page_field else None

            response = await self.gateway.get_data(
                GetDataRequest(
                    prj_id=ctx.prj_id,
                    form_id=ctx.form_id,
                    params=params,
                    lookup_sql_id=field.sql_id,
                    lookup_field=field.field_name,
                    lookup_value=value,
                    conn_code=self.gateway.conn_code_for(ctx.prj_id),
                )
            )
            if not response.valid:
                ok = False
                continue

            first = response.data[0].rows[0] if response.data and response.data[0].rows else None
            for payload in response.data:
                if first is not None:
                    ctx.push_op_field_rows(payload.op_field_name, payload.rows)
            for detail in field.details or []:
                detail.value = first.get(detail.detail_field_name) if first else None
        return ok

    async def get_lookup_rows(
        self,
        ctx: PageContext,
        group_id: int,
        field_name: str,
        object_name: str,
        form_data: Optional[Dict[str, Any]] = None,
    ) -> List[Row]:
        """All rows of a lookup field's SQL (lookup/dropdown editors)."""
        form = ctx.metadata.get_form(group_id)
        field = next(
            (
                f for f in form.fields
                if f.sql_id is not None and f.field_name == field_name and f.object_name == object_name
            ),
            None,
        )
        if field is None:
            raise MetadataNotFoundError("lookup field", f"{object_name}.{field_name}")

        response = await self.gateway.get_data(
            GetDataRequest(
                prj_id=ctx.prj_id,
                form_id=ctx.form_id,
                params=self._lookup_params(ctx, form, field, form_data or {}),
                lookup_sql_id=field.sql_id,
                lookup_field=field.field_name,
                lookup_value=ALL,
                conn_code=self.gateway.conn_code_for(ctx.prj_id),
            )
        )
        if not response.valid or not response.data:
            return []
        for payload in response.data:
            if payload.rows:
                ctx.push_op_field_rows(payload.op_field_name, payload.rows)
        return list(response.data[0].rows)
