"""
Per-page state.

A `PageContext` bundles everything the runtime mutates for one
(prjId, formId): metadata, rule store, page data and the view back-stack.
The `PageRegistry` owns the contexts of a session.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from metapage.exceptions import MetadataNotFoundError
from metapage.page_engine.models.dataset import DataAdapter, DataSet, Row
from metapage.page_engine.models.rules import RuleStore
from metapage.page_engine.schemas.page import PageMetadata

logger = logging.getLogger(__name__)

PageKey = Tuple[str, int]


class PageContext:
    def __init__(self, prj_id: str, form_id: int, metadata: PageMetadata):
        self.prj_id = prj_id
        self.form_id = form_id
        self.metadata = metadata
        self.rules = RuleStore(prj_id, form_id)
        self.rules.seed(metadata.cond_rules)
        self.adapters: Dict[str, DataAdapter] = {}
        self.active_view: str = ""
        self.view_stack: List[str] = []
        self.dd_rules: List[Dict[str, Any]] = []
        # held by the action engine for a whole run
        self.lock = asyncio.Lock()

    @property
    def key(self) -> PageKey:
        return (self.prj_id, self.form_id)

    # -- datasets --------------------------------------------------------------

    def find_dataset(self, data_set_name: str) -> Optional[Tuple[DataAdapter, DataSet]]:
        for adapter in self.adapters.values():
            ds = adapter.find(data_set_name)
            if ds is not None:
                return adapter, ds
        return None

    def get_dataset(self, data_set_name: str) -> DataSet:
        found = self.find_dataset(data_set_name)
        if found is None:
            raise MetadataNotFoundError(
                "dataset", data_set_name, prj_id=self.prj_id, form_id=self.form_id
            )
        return found[1]

    def adapter_of(self, data_set_name: str) -> DataAdapter:
        found = self.find_dataset(data_set_name)
        if found is None:
            raise MetadataNotFoundError(
                "dataset", data_set_name, prj_id=self.prj_id, form_id=self.form_id
            )
        return found[0]

    def has_selection(self, data_set_name: Optional[str]) -> bool:
        if not data_set_name:
            return False
        found = self.find_dataset(data_set_name)
        return bool(found and found[1].is_selected and found[1].selected_row_ids)

    # -- page fields -----------------------------------------------------------

    def page_field_value(self, name: str) -> Any:
        return self.metadata.get_page_field(name).value

    def set_page_field(self, name: str, value: Any) -> None:
        self.metadata.get_page_field(name).value = value

    def sync_fields_from_row(self, data_set_name: str, row: Optional[Row]) -> None:
        """Copy `row` into every page field bound to the dataset, or null them."""
        for field in self.metadata.fields_bound_to(data_set_name):
            field.value = row.get(field.db_field_name) if row is not None else None

    def push_op_field_rows(self, op_field_name: Optional[str], rows: List[Row]) -> None:
        """Datasets carrying `opFieldName` publish their rows into that page field."""
        if not op_field_name:
            return
        for field in self.metadata.page_fields:
            if field.page_field_name == op_field_name:
                field.value = rows

    def bound_row(self, data_set_name: str) -> Row:
        """Row built from the page fields bound to the dataset."""
        return {
            f.db_field_name: f.value
            for f in self.metadata.fields_bound_to(data_set_name)
            if f.db_field_name
        }

    # -- snapshots -------------------------------------------------------------

    def page_data(self) -> List[Dict[str, Any]]:
        """Copy of the page data with each dataset's `filterObject` applied."""
        result = []
        for adapter in self.adapters.values():
            datasets = []
            for ds in adapter.datasets:
                ds_def = self.metadata.find_dataset_def(ds.data_set_name)
                datasets.append(ds.to_dict(ds_def.filter_object if ds_def else None))
            result.append(
                {
                    "prjId": adapter.prj_id,
                    "formId": adapter.form_id,
                    "dataAdapter": adapter.data_adapter,
                    "data": datasets,
                }
            )
        return result

    def set_dd_rules(self, object_name: str, dd_data: Any) -> None:
        if any(r["objectName"] == object_name for r in self.dd_rules):
            return
        self.dd_rules.append({"objectName": object_name, "DDdata": dd_data})

    def get_dd_rules(self) -> List[Dict[str, Any]]:
        return [dict(r) for r in self.dd_rules]


class PageRegistry:
    def __init__(self) -> None:
        self._pages: Dict[PageKey, PageContext] = {}

    def __contains__(self, key: PageKey) -> bool:
        return key in self._pages

    def __iter__(self) -> Iterator[PageContext]:
        return iter(list(self._pages.values()))

    def __len__(self) -> int:
        return len(self._pages)

    def register(self, context: PageContext) -> PageContext:
        self._pages[context.key] = context
        logger.info(f"Registered page {context.prj_id}/{context.form_id}")
        return context

    def find(self, prj_id: str, form_id: int) -> Optional[PageContext]:
        return self._pages.get((prj_id, form_id))

    def get(self, prj_id: str, form_id: int) -> PageContext:
        context = self._pages.get((prj_id, form_id))
        if context is None:
            raise MetadataNotFoundError("page", f"{prj_id}/{form_id}")
        return context

    def remove(self, prj_id: str, form_id: int) -> None:
        self._pages.pop((prj_id, form_id), None)

    def remove_project(self, prj_id: str) -> int:
        doomed = [key for key in self._pages if key[0] == prj_id]
        for key in doomed:
            del self._pages[key]
        if doomed:
            logger.info(f"Removed {len(doomed)} page(s) of project {prj_id}")
        return len(doomed)

    def clear(self) -> None:
        self._pages.clear()
