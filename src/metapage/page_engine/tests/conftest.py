from __future__ import annotations

import copy
from typing import Any, Dict, List
from unittest.mock import AsyncMock

import pytest

from metapage.config import Settings
from metapage.page_engine.events import DomainEvent
from metapage.page_engine.models.page_context import PageContext
from metapage.page_engine.runtime import PageRuntime
from metapage.page_engine.schemas.page import PageMetadata
from metapage.page_engine.schemas.remote import (
    ColumnMetaData,
    DataResponse,
    DataSetPayload,
    ExecProcResponse,
)

PRJ = "P1"
FORM = 100

ORDERS_META = [
    ColumnMetaData(name="ORDER_ID", db_type={"name": "DB_TYPE_NUMBER"}),
    ColumnMetaData(name="CUSTOMER", db_type="DB_TYPE_VARCHAR"),
]

PAGE_DOC: Dict[str, Any] = {
    "page": {"initAction": "init"},
    "condRules": [
        {"condId": 1, "condValue": 2},
        {
            "condId": 2,
            "condValue": 0,
            "dataSetName": "qOrders",
            "fieldName": "STATUS",
            "fieldValues": ["OPEN;NEW", "CLOSED"],
            "dataSetCondValues": [1, 2],
        },
    ],
    "dataSets": [
        {
            "dataSetName": "qOrders",
            "dataAdapterName": "aOrders",
            "sqlId": 10,
            "sqlInsertId": 11,
            "sqlUpdateId": 12,
            "sqlDeleteId": 13,
            "sqlKeys": ["ORDER_ID"],
        }
    ],
    "pageFields": [
        {"pageFieldName": "pfOrderId", "dataSetName": "qOrders", "dbFieldName": "ORDER_ID"},
        {"pageFieldName": "pfCustomer", "dataSetName": "qOrders", "dbFieldName": "CUSTOMER"},
        {"pageFieldName": "pfStatus", "dataSetName": "qOrders", "dbFieldName": "STATUS"},
        {"pageFieldName": "pfFrom", "dataType": "Date"},
        {"pageFieldName": "pfNote"},
    ],
    "views": [
        {
            "viewName": "ALWAYS",
            "viewLevel": 0,
            "viewFlagAlwaysActive": True,
            "objects": [{"objectType": "toolbarItem", "objectName": "btnSave"}],
        },
        {
            "viewName": "V1",
            "viewLevel": 1,
            "objects": [
                {"objectType": "grid", "objectName": "gOrders"},
                {"objectType": "toolbar", "objectName": "tbMain"},
            ],
        },
        {
            "viewName": "V2",
            "viewLevel": 1,
            "objects": [
                {
                    "objectType": "grid",
                    "objectName": "gOrders",
                    "execCond": [{"condId": 1, "value": 1}],
                    "execCondNotVisible": True,
                },
                {"objectType": "form", "objectName": "fOrder"},
            ],
        },
        {
            "viewName": "V3",
            "viewLevel": 1,
            "objects": [
                {
                    "objectType": "form",
                    "objectName": "fOrder",
                    "selected": "Y",
                    "selectedObjectName": "qOrders",
                },
                {"objectType": "tabs", "objectName": "tMain"},
                {
                    "objectType": "grid",
                    "objectName": "gLines",
                    "tabsName": "tMain",
                    "tabRN": 2,
                },
            ],
        },
    ],
    "tabs": [{"objectName": "tMain", "tabIndex": 0}],
    "grids": [
        {"objectName": "gOrders", "dataSetName": "qOrders"},
        {"objectName": "gLines", "dataSetName": "qLines"},
    ],
    "toolbars": [{"objectName": "tbMain", "itemsList": [{"objectName": "btnSave"}]}],
    "forms": [
        {
            "objectName": "fOrder",
            "groupId": 5,
            "fields": [
                {"objectName": "pfOrderId", "fieldName": "ORDER_ID", "isPK": True},
                {"objectName": "pfCustomer", "fieldName": "CUSTOMER"},
            ],
        }
    ],
    "actions": [
        {"objectName": "init", "steps": [{"actionType": "setView", "viewName": "V1"}]},
        {
            "objectName": "A",
            "steps": [
                {"actionType": "getData", "dataAdapter": "aOrders"},
                {"actionType": "setView", "viewName": "V2"},
            ],
        },
        {
            "objectName": "B",
            "steps": [
                {"actionType": "showOKCancel", "msgText": "Continue?"},
                {"actionType": "execProc", "sqlId": 7},
            ],
        },
        {
            "objectName": "D",
            "steps": [
                {
                    "actionType": "setView",
                    "viewName": "V2",
                    "execCond": [{"condId": 1, "value": 9}],
                },
                {"actionType": "setView", "viewName": "V1"},
            ],
        },
        {"objectName": "E", "steps": [{"actionType": "execCustom", "customCode": "openReport"}]},
        {
            "objectName": "F",
            "steps": [
                {"actionType": "dsEdit", "dataSetName": "qOrders"},
                {"actionType": "dsPost", "dataSetName": "qOrders"},
            ],
        },
        {
            "objectName": "G",
            "steps": [
                {"actionType": "gridSetEdit", "dataSetName": "qOrders", "gridName": "gOrders"}
            ],
        },
    ],
}


def page_doc() -> Dict[str, Any]:
    return copy.deepcopy(PAGE_DOC)


def orders_response() -> DataResponse:
    return DataResponse(
        valid=True,
        data=[
            DataSetPayload(
                data_set_name="qOrders",
                rows=[
                    {"ORDER_ID": "1", "CUSTOMER": "ACME", "STATUS": "OPEN"},
                    {"ORDER_ID": "2", "CUSTOMER": "Initech", "STATUS": "CLOSED"},
                    {"ORDER_ID": "3", "CUSTOMER": "Umbrella", "STATUS": "NEW"},
                ],
                meta_data=list(ORDERS_META),
            )
        ],
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(DEBUG_ACTIONS=False, PREFETCH_DROPDOWNS=False, DEFAULT_CONN_CODE="main")


@pytest.fixture
def data_service() -> AsyncMock:
    service = AsyncMock()
    service.get_data.side_effect = lambda request: orders_response()
    service.exec_proc.return_value = ExecProcResponse(valid=True)
    return service


@pytest.fixture
def runtime(data_service: AsyncMock, settings: Settings) -> PageRuntime:
    return PageRuntime(data_service, settings=settings)


@pytest.fixture
def ctx(runtime: PageRuntime) -> PageContext:
    return runtime.loader.register(PRJ, FORM, PageMetadata.model_validate(page_doc()))


@pytest.fixture
def events(runtime: PageRuntime) -> List[DomainEvent]:
    received: List[DomainEvent] = []
    runtime.bus.subscribe(DomainEvent, received.append)
    return received


@pytest.fixture
def make_orders():
    return orders_response


@pytest.fixture
def page_document() -> Dict[str, Any]:
    return page_doc()
