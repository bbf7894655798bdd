"""
Dataset/adapter mutation primitives.

Every primitive that talks to the server returns the `can_run` flag of the
step that invoked it: True on success, False when the server rejected the
call or the transport failed. Nothing is rolled back on failure.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from metapage.exceptions import MetadataNotFoundError
from metapage.page_engine.events import (
    DbErrorEvent,
    EventBus,
    GridReloadEvent,
    GridRowUpdateEvent,
    GridSelectEvent,
)
from metapage.page_engine.models.audit import DbLog, DbLogEntry
from metapage.page_engine.models.dataset import (
    DataAdapter,
    DataSet,
    DataSetStatus,
    OutBind,
    Row,
)
from metapage.page_engine.models.page_context import PageContext
from metapage.page_engine.rules import derive_dataset_rules
from metapage.page_engine.schemas.base import ParamSource, SqlParam
from metapage.page_engine.schemas.remote import (
    DataResponse,
    DataSetPayload,
    ExecProcRequest,
    GetDataRequest,
)
from metapage.page_engine.schemas.steps import (
    DataSetActionStep,
    DataSetStatusStep,
    GetDataStep,
)
from metapage.page_engine.services.form_service import FormService
from metapage.page_engine.services.gateway import RemoteGateway
from metapage.page_engine.services.params import ParamBuilder
from metapage.page_engine.services.view_resolver import ViewResolver

logger = logging.getLogger(__name__)

DB_ERROR_TITLE = "Database error"


def to_number(value: Any) -> Any:
    if value is None or value == "" or isinstance(value, (int, float)):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def coerce_numeric_columns(payload: DataSetPayload) -> List[Row]:
    """Convert the columns the server flags as DB_TYPE_NUMBER from string to number."""
    numeric = [m.name for m in payload.meta_data if m.is_number]
    if numeric:
        for row in payload.rows:
            for name in numeric:
                if name in row:
                    row[name] = to_number(row[name])
    return payload.rows


class DataSetService:
    def __init__(
        self,
        gateway: RemoteGateway,
        params: ParamBuilder,
        forms: FormService,
        views: ViewResolver,
        bus: EventBus,
        db_log: DbLog,
    ):
        self.gateway = gateway
        self.params = params
        self.forms = forms
        self.views = views
        self.bus = bus
        self.db_log = db_log

    # -- helpers ---------------------------------------------------------------

    def _conn_code(self, ctx: PageContext) -> Optional[str]:
        return self.gateway.conn_code_for(ctx.prj_id)

    def sql_id_for(self, ctx: PageContext, data_set_name: str, status: str) -> int:
        ds_def = ctx.metadata.get_dataset_def(data_set_name)
        if status == DataSetStatus.INSERT.value:
            sql_id = ds_def.sql_insert_id
        elif status in (DataSetStatus.EDIT.value, "update"):
            sql_id = ds_def.sql_update_id
        elif status == DataSetStatus.DELETE.value:
            sql_id = ds_def.sql_delete_id
        else:
            sql_id = ds_def.sql_id
        if sql_id is None:
            raise MetadataNotFoundError("sql", f"{data_set_name}:{status or 'select'}")
        return sql_id

    def _new_dataset(self, ctx: PageContext, payload: DataSetPayload, adapter_name: str) -> DataSet:
        name = payload.data_set_name or adapter_name
        ds_def = ctx.metadata.find_dataset_def(name)
        ds = DataSet(
            data_set_name=name,
            key_fields=list(ds_def.sql_keys) if ds_def else [],
        )
        self._fill(ds, payload)
        return ds

    @staticmethod
    def _fill(ds: DataSet, payload: DataSetPayload) -> None:
        ds.replace_rows(payload.rows)
        ds.status = DataSetStatus.IDLE
        ds.op_field_name = payload.op_field_name
        if payload.total_count is not None:
            ds.total_count = payload.total_count
        if payload.limit is not None:
            ds.limit = payload.limit
        if payload.limit_applied is not None:
            ds.limit_applied = payload.limit_applied
        if payload.limit_initial_load is not None:
            ds.limit_initial_load = payload.limit_initial_load
        if payload.initial_load_limit is not None:
            ds.initial_load_limit = payload.initial_load_limit

    # -- getData / removeData --------------------------------------------------

    async def get_data(self, ctx: PageContext, step: GetDataStep) -> bool:
        return await self.fetch_adapter(ctx, step.data_adapter, self.params.build(ctx, step))

    async def fetch_adapter(self, ctx: PageContext, adapter_name: str, params: Dict[str, Any]) -> bool:
        conn_code = self._conn_code(ctx)
        response = await self.gateway.get_data(
            GetDataRequest(
                prj_id=ctx.prj_id,
                form_id=ctx.form_id,
                data_adapter_name=adapter_name,
                params=params,
                conn_code=conn_code,
            )
        )
        if not response.valid:
            logger.info(f"getData {adapter_name} rejected on {ctx.prj_id}/{ctx.form_id}")
            return False

        for payload in response.data:
            coerce_numeric_columns(payload)
            if payload.rows:
                ctx.push_op_field_rows(payload.op_field_name, payload.rows)

        self.db_log.append(
            DbLogEntry(
                prj_id=ctx.prj_id,
                form_id=ctx.form_id,
                action="getData",
                data_adapter=adapter_name,
                params=params,
                conn_code=conn_code,
            )
        )

        adapter = ctx.adapters.get(adapter_name)
        if adapter is None:
            ctx.adapters[adapter_name] = DataAdapter(
                prj_id=ctx.prj_id,
                form_id=ctx.form_id,
                data_adapter=adapter_name,
                datasets=[self._new_dataset(ctx, p, adapter_name) for p in response.data],
            )
            return True

        for payload in response.data:
            ds = adapter.find(payload.data_set_name or adapter_name)
            if ds is None:
                adapter.datasets.append(self._new_dataset(ctx, payload, adapter_name))
            else:
                self._fill(ds, payload)
        return True

    async def reload_with_filters(
        self,
        ctx: PageContext,
        adapter_name: str,
        data_set_name: str,
        grid_filters: Optional[List[Any]] = None,
        skip_initial_limit: bool = True,
    ) -> Optional[DataResponse]:
        """
        Re-read one dataset with grid filters, by default past the initial load limit.

        Params are rebuilt from the adapter's getData step so they reflect the
        current page fields. Only an already loaded dataset of that name is
        updated; the reply is returned for the grid, or None when rejected.
        """
        params = self.params.build(ctx, self._get_data_step_for(ctx, adapter_name))
        conn_code = self._conn_code(ctx)
        response = await self.gateway.get_data(
            GetDataRequest(
                prj_id=ctx.prj_id,
                form_id=ctx.form_id,
                data_adapter_name=adapter_name,
                params=params,
                conn_code=conn_code,
                grid_filters=list(grid_filters or []),
                skip_initial_limit=skip_initial_limit,
                data_set_name=data_set_name,
            )
        )
        if not response.valid:
            logger.info(
                f"Filtered reload of {data_set_name} rejected on {ctx.prj_id}/{ctx.form_id}"
            )
            return None

        adapter = ctx.adapters.get(adapter_name)
        ds = adapter.find(data_set_name) if adapter is not None else None
        for payload in response.data:
            if payload.data_set_name != data_set_name or ds is None:
                continue
            coerce_numeric_columns(payload)
            ds.replace_rows(payload.rows, keep_selection=True)
            ds.total_count = payload.total_count
            ds.limit_applied = payload.limit_applied
            ds.limit_initial_load = payload.limit_initial_load
            ds.initial_load_limit = payload.initial_load_limit
            ds.status = DataSetStatus.IDLE

        self.db_log.append(
            DbLogEntry(
                prj_id=ctx.prj_id,
                form_id=ctx.form_id,
                action="getData",
                data_adapter=adapter_name,
                data_set_name=data_set_name,
                params=params,
                conn_code=conn_code,
            )
        )
        return response

    def remove_data(self, ctx: PageContext, adapter_name: str) -> bool:
        ctx.adapters.pop(adapter_name, None)
        return True

    # -- status / post / delete ------------------------------------------------

    def set_dataset_status(
        self, ctx: PageContext, data_set_name: str, status: DataSetStatus, step: DataSetStatusStep
    ) -> None:
        """Record the status and the step's params for the next dsPost."""
        found = ctx.find_dataset(data_set_name)
        if found is None:
            logger.warning(f"Status {status.value} on unloaded dataset {data_set_name}")
            return
        ds = found[1]
        ds.status = status
        ds.pending = ParamSource(
            sql_type=step.sql_type,
            sql_params=list(step.sql_params),
            doc=list(step.doc),
            query_params=list(step.query_params),
        )

    async def exec_proc(
        self,
        ctx: PageContext,
        sql_id: int,
        params: Dict[str, Any],
        sql_params: List[SqlParam],
        ds: Optional[DataSet] = None,
    ) -> bool:
        conn_code = self._conn_code(ctx)
        if ds is not None:
            # only bindings returned by this call may reach the dataset
            ds.out_binds = []
        response = await self.gateway.exec_proc(
            ExecProcRequest(prj_id=ctx.prj_id, sql_id=sql_id, params=params, conn_code=conn_code)
        )

        if response.valid and response.out_binds is not None:
            binds: List[OutBind] = []
            for key, value in response.out_binds.items():
                bound = value[0] if isinstance(value, list) and value else value
                if isinstance(value, list) and not value:
                    bound = None
                for param in sql_params:
                    if param.param_name != key:
                        continue
                    for field in ctx.metadata.page_fields:
                        if field.page_field_name == param.param_object_name:
                            field.value = bound
                            binds.append(
                                OutBind(
                                    param_name=key,
                                    page_field_name=field.page_field_name,
                                    db_field_name=field.db_field_name,
                                    value=bound,
                                )
                            )
            if ds is not None:
                ds.out_binds = binds

        if response.valid:
            self.db_log.append(
                DbLogEntry(
                    prj_id=ctx.prj_id,
                    form_id=ctx.form_id,
                    action="execProc",
                    sql_id=sql_id,
                    params=params,
                    conn_code=conn_code,
                )
            )
        elif response.message:
            self.bus.publish(
                DbErrorEvent(
                    prj_id=ctx.prj_id,
                    form_id=ctx.form_id,
                    title=DB_ERROR_TITLE,
                    message=response.message,
                )
            )
        return response.valid

    async def dataset_action(self, ctx: PageContext, step: DataSetActionStep) -> bool:
        """dsPost / dsDelete."""
        name = step.data_set_name
        ds = ctx.get_dataset(name)

        source: Optional[ParamSource]
        if step.action_type == "dsPost":
            status = ds.status.value
            self.forms.save_form_data(ctx, step.cl_fld_grp_id, True, name, status)
            source = ds.pending
        else:
            self.forms.save_form_data(ctx, step.cl_fld_grp_id, True, name, DataSetStatus.DELETE.value)
            source = step
            status = DataSetStatus.DELETE.value

        sql_id = self.sql_id_for(ctx, name, status)
        params = self.params.build(ctx, source)
        sql_params = list(source.sql_params) if source is not None else []
        valid = await self.exec_proc(ctx, sql_id, params, sql_params, ds)

        if valid and status == DataSetStatus.INSERT.value and ds.out_binds:
            first_row = ds.first_row_id
            if first_row is not None:
                ds.update_row(
                    first_row,
                    {b.db_field_name: b.value for b in ds.out_binds if b.db_field_name},
                )
            pk = next((b for b in ds.out_binds if b.db_field_name), None)
            if pk is not None and pk.value is not None and first_row is not None:
                ds.select([first_row])
                ds.selected_keys = [{pk.db_field_name: pk.value}]

        if valid:
            ds.status = DataSetStatus.IDLE
        if valid and status == DataSetStatus.INSERT.value:
            await self.dataset_refresh(ctx, name, all_rows=False)

        self.bus.publish(GridReloadEvent(prj_id=ctx.prj_id, form_id=ctx.form_id, data_set_name=name))

        if valid:
            self.db_log.append(
                DbLogEntry(
                    prj_id=ctx.prj_id,
                    form_id=ctx.form_id,
                    action="dsPost",
                    sql_id=sql_id,
                    data_set_action=step.action_type,
                    data_set_name=name,
                    params=params,
                )
            )
        return valid

    # -- refresh ---------------------------------------------------------------

    def _get_data_step_for(self, ctx: PageContext, adapter_name: str) -> Optional[GetDataStep]:
        found: Optional[GetDataStep] = None
        for action in ctx.metadata.actions:
            for step in action.steps:
                if isinstance(step, GetDataStep) and step.data_adapter == adapter_name:
                    found = step
        return found

    async def dataset_refresh(self, ctx: PageContext, data_set_name: str, all_rows: bool) -> bool:
        """
        Re-read the whole dataset (`all_rows`) or just its selected row.

        A single-row refresh with nothing selected is a successful no-op.
        """
        sql_id = self.sql_id_for(ctx, data_set_name, DataSetStatus.IDLE.value)
        adapter = ctx.adapter_of(data_set_name)
        ds = ctx.get_dataset(data_set_name)
        params = self.params.build(ctx, self._get_data_step_for(ctx, adapter.data_adapter))

        lookup_field, lookup_value = "", "*"
        if not all_rows:
            keys = ds.selected_keys[0] if ds.selected_keys else None
            if not keys:
                return True
            lookup_field, lookup_value = next(iter(keys.items()))

        response = await self.gateway.get_data(
            GetDataRequest(
                prj_id=ctx.prj_id,
                form_id=ctx.form_id,
                params=params,
                lookup_sql_id=sql_id,
                lookup_field=lookup_field,
                lookup_value=lookup_value,
                conn_code=self._conn_code(ctx),
            )
        )
        if not (response.valid and response.data and response.data[0].rows):
            return False

        for payload in response.data:
            coerce_numeric_columns(payload)
            ctx.push_op_field_rows(payload.op_field_name, payload.rows)
        rows = response.data[0].rows

        if not all_rows:
            db_row = rows[0]
            row_id = ds.find_row_id(lookup_field, lookup_value)
            if row_id is not None:
                ds.update_row(row_id, db_row)
            self.bus.publish(
                GridRowUpdateEvent(
                    prj_id=ctx.prj_id,
                    form_id=ctx.form_id,
                    data_set_name=data_set_name,
                    row=dict(db_row),
                    key_field=lookup_field,
                    key_value=lookup_value,
                )
            )
            ctx.sync_fields_from_row(data_set_name, db_row)
        else:
            ds.replace_rows(rows, keep_selection=True)
            self.bus.publish(
                GridReloadEvent(prj_id=ctx.prj_id, form_id=ctx.form_id, data_set_name=data_set_name)
            )

        self.set_page_dataset_rule(ctx, data_set_name)
        return True

    # -- selection -------------------------------------------------------------

    def set_dataset_selected(
        self,
        ctx: PageContext,
        data_set_name: str,
        is_selected: bool,
        go_to_first_row: bool = False,
        go_to_last_row: bool = False,
    ) -> None:
        found = ctx.find_dataset(data_set_name)
        if found is None:
            # declared but not fetched yet: nothing to select
            ctx.metadata.get_dataset_def(data_set_name)
            ctx.sync_fields_from_row(data_set_name, None)
        else:
            ds = found[1]
            if go_to_first_row:
                row_id = ds.first_row_id
            elif go_to_last_row:
                row_id = ds.last_row_id
            else:
                row_id = ds.selected_row_ids[0] if ds.selected_row_ids else None

            if not is_selected:
                ds.clear_selection()
                ctx.sync_fields_from_row(data_set_name, None)
            elif row_id is not None:
                ds.select([row_id])
                ctx.sync_fields_from_row(data_set_name, ds.get_row(row_id))
            else:
                ds.clear_selection()

        self.set_page_dataset_rule(ctx, data_set_name)
        self.bus.publish(
            GridSelectEvent(
                prj_id=ctx.prj_id,
                form_id=ctx.form_id,
                data_set_name=data_set_name,
                is_selected=ctx.has_selection(data_set_name),
            )
        )

    def set_selected_rows(self, ctx: PageContext, data_set_name: str, keys: List[Row]) -> None:
        """Grid-driven selection; falls back to the first row when no key matches."""
        ds = ctx.get_dataset(data_set_name)
        ds.set_selected_keys(keys)
        if not ds.selected_row_ids and ds.first_row_id is not None:
            ds.select([ds.first_row_id])
        ctx.sync_fields_from_row(data_set_name, ds.selected_row)

    # -- rules -----------------------------------------------------------------

    def set_page_rule(self, ctx: PageContext, cond_id: int, cond_value: int) -> None:
        ctx.rules.set(cond_id, cond_value)
        self.views.set_view(ctx, ctx.active_view)

    def set_page_dataset_rule(self, ctx: PageContext, data_set_name: str) -> None:
        found = ctx.find_dataset(data_set_name)
        row = found[1].selected_row if found else None
        derive_dataset_rules(ctx.rules, ctx.metadata.cond_rules, data_set_name, row)
        self.views.set_view(ctx, ctx.active_view)

    # -- grid changes ----------------------------------------------------------

    async def dataset_post(self, ctx: PageContext, data_set_name: str, grid_name: str) -> bool:
        """Post a grid's pending change list, stopping at the first failure."""
        grid = ctx.metadata.find_grid(grid_name)
        if grid is None:
            raise MetadataNotFoundError("grid", grid_name)
        ds = ctx.get_dataset(data_set_name)

        valid = True
        for change in grid.change_array:
            sql_id = self.sql_id_for(ctx, data_set_name, change.type)
            params = change.data_params if change.type in ("insert", "update") else change.key_params
            valid = await self.exec_proc(ctx, sql_id, dict(params), [], ds)
            if not valid:
                break

        if ds.selected_row is not None:
            ctx.sync_fields_from_row(data_set_name, ds.selected_row)
        return valid
