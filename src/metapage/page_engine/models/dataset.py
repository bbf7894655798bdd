"""In-memory page data: adapters of datasets of rows."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from metapage.page_engine.schemas.base import ParamSource

Row = Dict[str, Any]


class DataSetStatus(str, enum.Enum):
    """Edit status of a dataset; selects the SQL used by the next post."""

    IDLE = "idle"
    INSERT = "insert"
    EDIT = "edit"
    DELETE = "delete"


@dataclass
class OutBind:
    param_name: str
    page_field_name: Optional[str]
    db_field_name: Optional[str]
    value: Any


@dataclass
class DataSet:
    """
    Rows are held in a map keyed by a dataset-local row id.

    Selection stores row ids, so a selected row and the dataset row are the
    same dict: edits through either are visible through both.
    """

    data_set_name: str
    key_fields: List[str] = field(default_factory=list)
    status: DataSetStatus = DataSetStatus.IDLE
    is_selected: bool = False
    op_field_name: Optional[str] = None
    total_count: Optional[int] = None
    limit: Optional[int] = None
    limit_applied: Optional[bool] = None
    limit_initial_load: Optional[bool] = None
    initial_load_limit: Optional[int] = None
    # params recorded by dsInsert/dsEdit/dsCancel, used by the next dsPost
    pending: Optional[ParamSource] = None
    out_binds: List[OutBind] = field(default_factory=list)
    selected_row_ids: List[int] = field(default_factory=list)
    selected_keys: List[Row] = field(default_factory=list)
    _rows: Dict[int, Row] = field(default_factory=dict, repr=False)
    _order: List[int] = field(default_factory=list, repr=False)
    _next_id: int = field(default=0, repr=False)

    # -- rows ------------------------------------------------------------------

    @property
    def rows(self) -> List[Row]:
        return [self._rows[row_id] for row_id in self._order]

    @property
    def row_ids(self) -> List[int]:
        return list(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def get_row(self, row_id: int) -> Row:
        return self._rows[row_id]

    def add_row(self, row: Row, *, at: Optional[int] = None) -> int:
        row_id = self._next_id
        self._next_id += 1
        self._rows[row_id] = row
        if at is None:
            self._order.append(row_id)
        else:
            self._order.insert(at, row_id)
        return row_id

    def replace_rows(self, rows: Iterable[Row], *, keep_selection: bool = False) -> None:
        """
        Swap the whole row set.

        With `keep_selection` the previous selection is re-located by key in
        the new rows; keys that no longer match are dropped.
        """
        keys = list(self.selected_keys) if keep_selection else []
        self._rows.clear()
        self._order.clear()
        for row in rows:
            self.add_row(row)
        self.selected_row_ids = []
        self.selected_keys = []
        if keys:
            found = [rid for rid in (self.find_by_keys(k) for k in keys) if rid is not None]
            if found:
                self.select(found)
                return
        self.is_selected = False

    def remove_rows(self, row_ids: Iterable[int]) -> None:
        doomed = set(row_ids)
        for row_id in doomed:
            self._rows.pop(row_id, None)
        self._order = [rid for rid in self._order if rid not in doomed]
        remaining = [rid for rid in self.selected_row_ids if rid not in doomed]
        if remaining:
            self.select(remaining)
        else:
            self.clear_selection()

    def update_row(self, row_id: int, values: Row) -> Row:
        row = self._rows[row_id]
        row.update(values)
        return row

    def find_row_id(self, field_name: str, value: Any) -> Optional[int]:
        for row_id in self._order:
            if self._rows[row_id].get(field_name) == value:
                return row_id
        return None

    def find_by_keys(self, keys: Row) -> Optional[int]:
        if not keys:
            return None
        for row_id in self._order:
            row = self._rows[row_id]
            if all(row.get(k) == v for k, v in keys.items()):
                return row_id
        return None

    @property
    def first_row_id(self) -> Optional[int]:
        return self._order[0] if self._order else None

    @property
    def last_row_id(self) -> Optional[int]:
        return self._order[-1] if self._order else None

    # -- selection -------------------------------------------------------------

    def key_of(self, row_id: int) -> Row:
        row = self._rows[row_id]
        if self.key_fields:
            return {k: row.get(k) for k in self.key_fields}
        if not row:
            return {}
        first = next(iter(row))
        return {first: row[first]}

    @property
    def selected_rows(self) -> List[Row]:
        return [self._rows[rid] for rid in self.selected_row_ids if rid in self._rows]

    @property
    def selected_row(self) -> Optional[Row]:
        rows = self.selected_rows
        return rows[0] if rows else None

    def select(self, row_ids: Iterable[int]) -> None:
        ids = [rid for rid in row_ids if rid in self._rows]
        self.selected_row_ids = ids
        self.selected_keys = [self.key_of(rid) for rid in ids]
        self.is_selected = bool(ids)

    def set_selected_keys(self, keys: List[Row]) -> None:
        """Select the rows matching `keys` (grid-driven selection)."""
        ids = [rid for rid in (self.find_by_keys(k) for k in keys) if rid is not None]
        self.selected_row_ids = ids
        self.selected_keys = [dict(k) for k in keys] if ids else []
        self.is_selected = bool(ids)

    def clear_selection(self) -> None:
        self.selected_row_ids = []
        self.selected_keys = []
        self.is_selected = False

    def to_dict(self, filter_object: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        rows = self.rows
        if filter_object:
            rows = [
                row for row in rows
                if all(row.get(k) == v for k, v in filter_object.items())
            ]
        return {
            "dataSetName": self.data_set_name,
            "rows": [dict(r) for r in rows],
            "selectedRows": [dict(r) for r in self.selected_rows],
            "selectedKeys": [dict(k) for k in self.selected_keys],
            "isSelected": self.is_selected,
            "status": self.status.value,
            "totalCount": self.total_count,
            "limit": self.limit,
            "limitApplied": self.limit_applied,
            "limitInitialLoad": self.limit_initial_load,
            "initialLoadLimit": self.initial_load_limit,
            "outBinds": [
                {
                    "paramName": b.param_name,
                    "pageFieldName": b.page_field_name,
                    "dbFieldName": b.db_field_name,
                    "value": b.value,
                }
                for b in self.out_binds
            ],
        }


@dataclass
class DataAdapter:
    prj_id: str
    form_id: int
    data_adapter: str
    datasets: List[DataSet] = field(default_factory=list)

    def find(self, data_set_name: str) -> Optional[DataSet]:
        for ds in self.datasets:
            if ds.data_set_name == data_set_name:
                return ds
        return None
