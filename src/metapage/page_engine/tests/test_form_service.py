import pytest

from metapage.exceptions import MetadataNotFoundError
from metapage.page_engine.schemas.page import FormField
from metapage.page_engine.schemas.remote import DataResponse, DataSetPayload

GROUP = 5


def _form(ctx):
    return ctx.metadata.get_form(GROUP)


def _add_lookup_field(ctx, **extra):
    field = FormField.model_validate(
        {
            "objectName": "pfCustomer",
            "fieldName": "CUST_CODE",
            "sqlId": 40,
            "value": "AC",
            "sqlParams": [{"paramName": "P_ORDER", "paramObjectName": "pfOrderId"}],
            "details": [
                {"pageFieldName": "pfNote", "detailFieldName": "CUST_NAME"},
            ],
            **extra,
        }
    )
    _form(ctx).fields.append(field)
    return field


def test_get_and_save_form_data(runtime, ctx):
    ctx.set_page_field("pfCustomer", "ACME")
    runtime.forms.get_form_data(ctx, GROUP)
    assert _form(ctx).find_field("pfCustomer").value == "ACME"

    runtime.forms.set_data_entry_field_value(ctx, GROUP, "pfCustomer", "Globex")
    runtime.forms.save_form_data(ctx, GROUP)
    assert ctx.page_field_value("pfCustomer") == "Globex"


def test_clear_fields_nulls_page_fields_and_details(runtime, ctx):
    field = _add_lookup_field(ctx)
    field.details[0].value = "Acme Corp"
    ctx.set_page_field("pfOrderId", 7)

    runtime.forms.clear_fields(ctx, GROUP)

    assert ctx.page_field_value("pfOrderId") is None
    assert field.details[0].value is None


def test_pk_lock_only_touches_key_fields(runtime, ctx):
    runtime.forms.pk_lock(ctx, GROUP)
    pk = _form(ctx).find_field("pfOrderId")
    other = _form(ctx).find_field("pfCustomer")
    assert (pk.read_only, pk.init_as_read_only, pk.disabled) == (True, True, False)
    assert other.read_only is False

    runtime.forms.pk_unlock(ctx, GROUP)
    assert pk.read_only is False


@pytest.mark.parametrize(
    "checked, unchecked, value, expected",
    [
        ("Y", "N", True, "Y"),
        ("Y", "N", False, "N"),
        ("true", "false", "true", "true"),
    ],
)
def test_checkbox_maps_to_configured_values(runtime, ctx, checked, unchecked, value, expected):
    field = _form(ctx).find_field("pfCustomer")
    field.editor_type = "CheckBox"
    field.value_checked, field.value_unchecked = checked, unchecked
    field.value = value

    runtime.forms.save_form_data(ctx, GROUP)

    assert ctx.page_field_value("pfCustomer") == expected


def test_save_details_into_page_fields(runtime, ctx):
    field = _add_lookup_field(ctx)
    field.details[0].value = "Acme Corp"
    written = runtime.forms.save_form_data_values(ctx, GROUP)
    assert written["pfNote"] == "Acme Corp"
    assert ctx.page_field_value("pfNote") == "Acme Corp"


def test_form_field_lookup_falls_back_to_details(runtime, ctx):
    _add_lookup_field(ctx)
    runtime.forms.set_form_field_value(ctx, "fOrder", "pfNote", "x")
    assert runtime.forms.get_form_field_value(ctx, "fOrder", "pfNote") == "x"
    with pytest.raises(MetadataNotFoundError):
        runtime.forms.get_form_field_value(ctx, "fOrder", "pfMissing")


def test_unknown_form_field_raises(runtime, ctx):
    with pytest.raises(MetadataNotFoundError):
        runtime.forms.set_data_entry_field_value(ctx, GROUP, "nope", 1)


@pytest.mark.asyncio
async def test_next_field_value(runtime, ctx):
    assert runtime.forms.get_next_field_value(ctx, "qOrders", "ORDER_ID") == 1
    await runtime.datasets.fetch_adapter(ctx, "aOrders", {})
    assert runtime.forms.get_next_field_value(ctx, "qOrders", "ORDER_ID") == 4


@pytest.mark.asyncio
async def test_exported_data_fills_details(runtime, ctx, data_service):
    field = _add_lookup_field(ctx)
    data_service.get_data.side_effect = None
    data_service.get_data.return_value = DataResponse(
        valid=True,
        data=[DataSetPayload(rows=[{"CUST_CODE": "AC", "CUST_NAME": "Acme Corp"}])],
    )

    assert await runtime.forms.get_exported_data(ctx, GROUP) is True

    assert field.details[0].value == "Acme Corp"
    request = data_service.get_data.await_args.args[0]
    assert request.lookup_sql_id == 40
    assert (request.lookup_field, request.lookup_value) == ("CUST_CODE", "AC")
    assert request.params == {"P_ORDER": None}


@pytest.mark.asyncio
async def test_exported_data_clears_details_for_empty_value(runtime, ctx, data_service):
    field = _add_lookup_field(ctx, value="")
    field.details[0].value = "stale"
    calls = data_service.get_data.await_count

    assert await runtime.forms.get_exported_data(ctx, GROUP) is True

    assert field.details[0].value is None
    assert data_service.get_data.await_count == calls


@pytest.mark.asyncio
async def test_exported_data_reports_failed_call(runtime, ctx, data_service):
    _add_lookup_field(ctx)
    data_service.get_data.side_effect = None
    data_service.get_data.return_value = DataResponse(valid=False)
    assert await runtime.forms.get_exported_data(ctx, GROUP) is False


@pytest.mark.asyncio
async def test_lookup_rows_publish_op_field(runtime, ctx, data_service):
    _add_lookup_field(ctx)
    rows = [{"CUST_CODE": "AC"}, {"CUST_CODE": "GL"}]
    data_service.get_data.side_effect = None
    data_service.get_data.return_value = DataResponse(
        valid=True, data=[DataSetPayload(op_field_name="pfNote", rows=rows)]
    )

    result = await runtime.forms.get_lookup_rows(
        ctx, GROUP, "CUST_CODE", "pfCustomer", {"pfOrderId": 3}
    )

    assert result == rows
    assert ctx.page_field_value("pfNote") == rows
    assert data_service.get_data.await_args.args[0].params == {"P_ORDER": 3}
    assert data_service.get_data.await_args.args[0].lookup_value == "*"
