from datetime import date

import pytest

from metapage.page_engine.schemas.base import ParamSource


def _source(**data):
    return ParamSource.model_validate(data)


def test_page_field_params_with_dates(runtime, ctx):
    ctx.set_page_field("pfFrom", date(2024, 3, 9))
    ctx.set_page_field("pfNote", "hello")
    source = _source(
        sqlParams=[
            {"paramName": "P_FROM", "paramObjectName": "pfFrom"},
            {"paramName": "P_NOTE", "paramObjectName": "pfNote"},
        ]
    )
    assert runtime.params.build(ctx, source) == {"P_FROM": "09/03/2024", "P_NOTE": "hello"}


def test_empty_strings_become_null(runtime, ctx):
    ctx.set_page_field("pfNote", "")
    source = _source(sqlParams=[{"paramName": "P_NOTE", "paramObjectName": "pfNote"}])
    assert runtime.params.build(ctx, source) == {"P_NOTE": None}


def test_dataset_bound_params(runtime, ctx):
    ctx.set_page_field("pfCustomer", "ACME")
    source = _source(
        sqlParams=[
            {"paramName": "P_CUST", "paramDataSetName": "qOrders", "paramDataSetField": "CUSTOMER"},
            {"paramName": "P_NONE", "paramDataSetName": "qOrders", "paramDataSetField": "MISSING"},
        ]
    )
    assert runtime.params.build(ctx, source) == {"P_CUST": "ACME"}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-09T10:00:00Z", "09/03/2024"),
        ("not a date", "not a date"),
        (None, None),
        ("", ""),
    ],
)
def test_format_date(runtime, value, expected):
    assert runtime.params.format_date(value) == expected


def test_mongo_params(runtime, ctx):
    ctx.metadata.get_page_field("pfNote").data_type = "Object"
    ctx.set_page_field("pfNote", '{"status": "OPEN"}')
    ctx.set_page_field("pfCustomer", "ACME")
    source = _source(
        sqlType="MongoDB",
        doc=[{"PAGE_FIELD_NAME": "pfCustomer", "COLL_FIELD_NAME": "customer"}],
        queryParams=[
            {"PAGE_FIELD_NAME": "pfNote", "MDBPOPFLD_QUERY_PARAM": "filter"},
            {"PAGE_FIELD_NAME": "", "MDBPOPFLD_QUERY_PARAM": "ignored"},
        ],
    )
    assert runtime.params.build(ctx, source) == {
        "customer": "ACME",
        "filter": {"status": "OPEN"},
    }


def test_unknown_sql_type_sends_nothing(runtime, ctx):
    assert runtime.params.build(ctx, _source(sqlType="REST")) == {}
    assert runtime.params.build(ctx, None) == {}
