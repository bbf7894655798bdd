import pytest

from metapage.exceptions import MetadataNotFoundError
from metapage.page_engine.events import ViewChangedEvent
from metapage.page_engine.models.dataset import DataAdapter, DataSet
from metapage.page_engine.services.view_resolver import ViewResolver


def test_failing_exec_cond_disables_and_hides(runtime, ctx):
    # rule 1 is 2, the grid wants 1
    assert runtime.views.set_view(ctx, "V2") is True
    grid = ctx.metadata.find_grid("gOrders")
    assert grid.disabled is True
    assert grid.visible is False
    assert ctx.metadata.get_form_by_name("fOrder").visible is True


def test_matching_exec_cond_keeps_object_enabled(runtime, ctx):
    runtime.datasets.set_page_rule(ctx, 1, 1)
    runtime.views.set_view(ctx, "V2")
    grid = ctx.metadata.find_grid("gOrders")
    assert grid.visible is True
    assert grid.disabled is False


def test_objects_outside_the_view_are_reset(runtime, ctx):
    runtime.views.set_view(ctx, "V1")
    assert ctx.metadata.toolbars[0].visible is True

    runtime.views.set_view(ctx, "V2")
    assert ctx.metadata.toolbars[0].visible is False
    # always-active objects survive every switch
    assert ctx.metadata.toolbars[0].items_list[0].visible is True


def test_set_view_is_idempotent(runtime, ctx):
    runtime.views.set_view(ctx, "V2")
    first = ViewResolver.snapshot(ctx)
    runtime.views.set_view(ctx, "V2")
    assert ViewResolver.snapshot(ctx) == first
    assert ctx.view_stack == []


def test_back_stack_returns_and_never_underflows(runtime, ctx):
    for name in ("V1", "V2", "V3"):
        runtime.views.set_view(ctx, name)

    assert runtime.views.set_view(ctx, "", is_previous=True) is True
    assert ctx.active_view == "V2"
    assert runtime.views.set_view(ctx, "", is_previous=True) is True
    assert ctx.active_view == "V1"

    assert runtime.views.set_view(ctx, "", is_previous=True) is False
    assert ctx.active_view == ""
    assert runtime.views.set_view(ctx, "", is_previous=True) is False
    assert ctx.view_stack == []


def test_empty_view_name_changes_nothing(runtime, ctx, events):
    runtime.views.set_view(ctx, "V1")
    before = ViewResolver.snapshot(ctx)
    events.clear()

    assert runtime.views.set_view(ctx, "") is False
    assert ViewResolver.snapshot(ctx) == before
    assert not [e for e in events if isinstance(e, ViewChangedEvent)]


def test_unknown_view_raises(runtime, ctx):
    with pytest.raises(MetadataNotFoundError):
        runtime.views.set_view(ctx, "NOPE")


def test_selection_gate_follows_dataset(runtime, ctx):
    runtime.views.set_view(ctx, "V3")
    form = ctx.metadata.get_form_by_name("fOrder")
    assert form.visible is False

    ds = DataSet(data_set_name="qOrders", key_fields=["ORDER_ID"])
    row_id = ds.add_row({"ORDER_ID": 1})
    ds.select([row_id])
    ctx.adapters["aOrders"] = DataAdapter(
        prj_id=ctx.prj_id, form_id=ctx.form_id, data_adapter="aOrders", datasets=[ds]
    )
    runtime.views.set_view(ctx, "V3")
    assert form.visible is True


def test_tab_nested_object_needs_active_tab(runtime, ctx):
    runtime.views.set_view(ctx, "V3")
    assert ctx.metadata.tabs[0].visible is True
    assert ctx.metadata.find_grid("gLines").visible is False

    ctx.metadata.tabs[0].tab_index = 1
    runtime.views.set_view(ctx, "V3")
    assert ctx.metadata.find_grid("gLines").visible is True


def test_view_change_is_published(runtime, ctx, events):
    runtime.views.set_view(ctx, "V1")
    changed = [e for e in events if isinstance(e, ViewChangedEvent)]
    assert [e.view_name for e in changed] == ["V1"]
    assert changed[0].prj_id == ctx.prj_id
