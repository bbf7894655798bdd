from metapage.page_engine.models.audit import DbLog, DbLogEntry
from metapage.page_engine.models.dataset import (
    DataAdapter,
    DataSet,
    DataSetStatus,
    OutBind,
    Row,
)
from metapage.page_engine.models.page_context import PageContext, PageRegistry
from metapage.page_engine.models.rules import ConditionRule, RuleStore

__all__ = [
    "ConditionRule",
    "DataAdapter",
    "DataSet",
    "DataSetStatus",
    "DbLog",
    "DbLogEntry",
    "OutBind",
    "PageContext",
    "PageRegistry",
    "Row",
    "RuleStore",
]
