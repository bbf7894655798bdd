from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from metapage.page_engine.models.page_context import PageContext
from metapage.page_engine.schemas.base import ParamSource
from metapage.page_engine.schemas.page import PageField

logger = logging.getLogger(__name__)

DATE_TYPES = {"Date", "DateTime"}


class ParamBuilder:
    """Builds the `params` object of a server call from a step's bindings."""

    def __init__(self, date_format: str = "%d/%m/%Y"):
        self.date_format = date_format

    def build(self, ctx: PageContext, source: Optional[ParamSource]) -> Dict[str, Any]:
        if source is None:
            return {}
        if source.sql_type == "SQL":
            return self._build_sql(ctx, source)
        if source.sql_type == "MongoDB":
            return self._build_mongo(ctx, source)
        return {}

    def format_date(self, value: Any) -> Any:
        if value is None or value == "":
            return value
        if isinstance(value, (datetime, date)):
            return value.strftime(self.date_format)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime(
                    self.date_format
                )
            except ValueError:
                logger.warning(f"Unparseable date parameter value: {value!r}")
                return value
        return value

    def _build_sql(self, ctx: PageContext, source: ParamSource) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        fields = ctx.metadata.page_fields
        for param in source.sql_params:
            if param.param_object_name:
                for field in fields:
                    if field.page_field_name == param.param_object_name:
                        params[param.param_name] = self._scalar(field, DATE_TYPES)
            elif param.param_data_set_name:
                for field in fields:
                    if (
                        field.data_set_name == param.param_data_set_name
                        and field.db_field_name == param.param_data_set_field
                    ):
                        params[param.param_name] = self._scalar(field, {"DateTime"})

        # empty strings go as null so server-side defaults apply
        return {k: (None if v == "" else v) for k, v in params.items()}

    def _scalar(self, field: PageField, date_types: set) -> Any:
        if field.data_type in date_types:
            return self.format_date(field.value)
        return field.value

    def _build_mongo(self, ctx: PageContext, source: ParamSource) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        for entries, target_key in (
            (source.doc, "COLL_FIELD_NAME"),
            (source.query_params, "MDBPOPFLD_QUERY_PARAM"),
        ):
            for entry in entries:
                page_field_name = entry.get("PAGE_FIELD_NAME")
                if not page_field_name:
                    continue
                field = ctx.metadata.find_page_field(page_field_name)
                if field is None:
                    continue
                target = entry.get(target_key)
                if field.data_type == "Object":
                    if field.value not in (None, ""):
                        params[target] = (
                            json.loads(field.value)
                            if isinstance(field.value, str)
                            else field.value
                        )
                else:
                    params[target] = field.value
        return params
