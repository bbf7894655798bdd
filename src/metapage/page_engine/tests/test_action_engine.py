import pytest

from metapage.exceptions import ConfigurationError, ResumeTokenError
from metapage.page_engine.events import (
    AiChatRequestEvent,
    CustomCodeEvent,
    DebugProgressEvent,
    GridReloadEvent,
    LoaderEvent,
    MessageRequestEvent,
)
from metapage.page_engine.schemas.page import Action, PageMetadata
from metapage.page_engine.schemas.remote import DataResponse
from metapage.page_engine.schemas.steps import STEP_CLASSES, AiAssistStep, StepBase
from metapage.page_engine.services import action_engine
from metapage.page_engine.services.action_engine import ActionEngine, RunStatus
from metapage.page_engine.services.message_gate import MessageStatus

PRJ, FORM = "P1", 100


@pytest.mark.asyncio
async def test_failed_step_stops_the_run(runtime, ctx, data_service):
    await runtime.set_view(PRJ, FORM, "V1")
    data_service.get_data.side_effect = None
    data_service.get_data.return_value = DataResponse(valid=False)

    result = await runtime.run_action(PRJ, FORM, "A")

    assert result.status == RunStatus.ABORTED
    assert result.can_run is False
    assert result.executed == [0]
    assert ctx.active_view == "V1"


@pytest.mark.asyncio
async def test_all_active_steps_run_in_order(runtime, ctx):
    result = await runtime.run_action(PRJ, FORM, "A")
    assert result.status == RunStatus.COMPLETED
    assert result.executed == [0, 1]
    assert ctx.active_view == "V2"
    assert ctx.find_dataset("qOrders") is not None


@pytest.mark.asyncio
async def test_question_suspends_until_answered(runtime, ctx, data_service, events):
    first = await runtime.run_action(PRJ, FORM, "B")

    assert first.status == RunStatus.SUSPENDED
    assert first.resume_token is not None
    data_service.exec_proc.assert_not_awaited()
    requests = [e for e in events if isinstance(e, MessageRequestEvent)]
    assert len(requests) == 1
    assert requests[0].kind == "showOKCancel"
    assert requests[0].step["msgText"] == "Continue?"

    runtime.set_message_status("OK")
    second = await runtime.run_action(PRJ, FORM, "B", runtime.engine.resume_cursor)

    assert second.status == RunStatus.COMPLETED
    data_service.exec_proc.assert_awaited_once()
    assert data_service.exec_proc.await_args.args[0].sql_id == 7
    assert runtime.gate.status == MessageStatus.IDLE
    assert runtime.engine.resume_cursor is None



def _add_action(ctx, name, steps):
    ctx.metadata.actions.append(Action.model_validate({"objectName": name, "steps": steps}))


@pytest.mark.asyncio
async def test_notice_suspends_until_closed(runtime, ctx, data_service, events):
    _add_action(
        ctx,
        "M",
        [{"actionType": "showMsg", "msgText": "Saved"}, {"actionType": "execProc", "sqlId": 7}],
    )

    first = await runtime.run_action(PRJ, FORM, "M")

    assert first.status == RunStatus.SUSPENDED
    assert runtime.gate.status == MessageStatus.SHOW_MSG
    assert [e.kind for e in events if isinstance(e, MessageRequestEvent)] == ["showMsg"]
    data_service.exec_proc.assert_not_awaited()

    second = await runtime.answer_message("Close")

    assert second is not None and second.status == RunStatus.COMPLETED
    data_service.exec_proc.assert_awaited_once()
    assert runtime.gate.status == MessageStatus.IDLE


@pytest.mark.asyncio
async def test_second_notice_while_one_is_open_is_not_asked(runtime, ctx, events):
    _add_action(ctx, "M", [{"actionType": "showMsg", "msgText": "Saved"}])
    _add_action(
        ctx,
        "N",
        [{"actionType": "showMsg", "msgText": "Other"}, {"actionType": "setView", "viewName": "V2"}],
    )
    first = await runtime.run_action(PRJ, FORM, "M")

    second = await runtime.run_action(PRJ, FORM, "N")

    assert len([e for e in events if isinstance(e, MessageRequestEvent)]) == 1
    assert second.status == RunStatus.COMPLETED
    assert ctx.active_view == "V2"
    # the open notice still belongs to the first action
    assert runtime.gate.status == MessageStatus.SHOW_MSG
    assert runtime.engine.pending_token == first.resume_token


@pytest.mark.asyncio
async def test_second_question_while_one_is_open_is_not_asked(runtime, ctx, data_service, events):
    _add_action(
        ctx,
        "Q",
        [{"actionType": "showOKCancel", "msgText": "Again?"}, {"actionType": "execProc", "sqlId": 8}],
    )
    await runtime.run_action(PRJ, FORM, "B")

    second = await runtime.run_action(PRJ, FORM, "Q")

    requests = [e for e in events if isinstance(e, MessageRequestEvent)]
    assert [e.step["msgText"] for e in requests] == ["Continue?"]
    assert second.status == RunStatus.ABORTED
    data_service.exec_proc.assert_not_awaited()

@pytest.mark.asyncio
async def test_resume_with_token(runtime, ctx, data_service):
    suspended = await runtime.run_action(PRJ, FORM, "B")

    result = await runtime.resume(suspended.resume_token, "OK")

    assert result.status == RunStatus.COMPLETED
    data_service.exec_proc.assert_awaited_once()


@pytest.mark.asyncio
async def test_cancel_aborts_and_consumes_token(runtime, ctx, data_service):
    suspended = await runtime.run_action(PRJ, FORM, "B")

    result = await runtime.resume(suspended.resume_token, "Cancel")

    assert result.status == RunStatus.ABORTED
    data_service.exec_proc.assert_not_awaited()
    with pytest.raises(ResumeTokenError):
        await runtime.resume(suspended.resume_token, "OK")


@pytest.mark.asyncio
async def test_resume_rejects_non_answers(runtime, ctx):
    suspended = await runtime.run_action(PRJ, FORM, "B")
    with pytest.raises(ResumeTokenError):
        await runtime.resume(suspended.resume_token, "showMsg")


@pytest.mark.asyncio
async def test_answer_message_resumes_pending_run(runtime, ctx, data_service):
    await runtime.run_action(PRJ, FORM, "B")
    result = await runtime.answer_message("Close")
    assert result is not None and result.status == RunStatus.COMPLETED
    data_service.exec_proc.assert_awaited_once()


@pytest.mark.asyncio
async def test_missing_action_is_noop(runtime, ctx, events):
    result = await runtime.run_action(PRJ, FORM, "NOPE")
    assert result.status == RunStatus.NOT_FOUND
    loader = [e.visible for e in events if isinstance(e, LoaderEvent)]
    assert loader == [True, False]


@pytest.mark.asyncio
async def test_inactive_step_is_skipped_but_reported(runtime, ctx, events):
    runtime.engine.debug_enabled = True

    result = await runtime.run_action(PRJ, FORM, "D", debug_level=2)

    assert result.executed == [1]
    assert result.visited == [0, 1]
    progress = [e for e in events if isinstance(e, DebugProgressEvent)]
    assert [e.was_step_active for e in progress] == [False, True]
    assert [e.cursor_index for e in progress] == [1, 2]
    assert [e.is_last_step for e in progress] == [False, True]
    # the skipped step would have switched to V2 first
    assert ctx.view_stack == []
    assert ctx.active_view == "V1"


@pytest.mark.asyncio
async def test_custom_code_keeps_loader_visible(runtime, ctx, events):
    result = await runtime.run_action(PRJ, FORM, "E")

    assert result.status == RunStatus.COMPLETED
    custom = [e for e in events if isinstance(e, CustomCodeEvent)]
    assert custom[0].custom_code == "openReport"
    assert [e.visible for e in events if isinstance(e, LoaderEvent)] == [True]
    assert runtime.engine.loader_visible is True


@pytest.mark.asyncio
async def test_grid_mode_publishes_reload_signal(runtime, ctx, events):
    await runtime.run_action(PRJ, FORM, "G")
    reload = [e for e in events if isinstance(e, GridReloadEvent)]
    assert reload[0].signal == "qOrders;Edit:true"


@pytest.mark.asyncio
async def test_set_rule_step_refreshes_view(runtime, ctx):
    await runtime.set_view(PRJ, FORM, "V2")
    assert ctx.metadata.find_grid("gOrders").visible is False

    ctx.metadata.actions.append(
        Action.model_validate(
            {"objectName": "R", "steps": [{"actionType": "setRule", "condId": 1, "condValue": 1}]}
        )
    )
    await runtime.run_action(PRJ, FORM, "R")

    assert ctx.rules.get(1) == 1
    assert ctx.metadata.find_grid("gOrders").visible is True


def test_dispatch_table_covers_every_step_class(runtime):
    assert set(STEP_CLASSES) <= set(runtime.engine._handlers)


def test_engine_refuses_unhandled_step_class(runtime, monkeypatch):
    class ExtraStep(StepBase):
        pass

    monkeypatch.setattr(action_engine, "STEP_CLASSES", STEP_CLASSES + (ExtraStep,))
    engine = runtime.engine
    with pytest.raises(ConfigurationError):
        ActionEngine(
            engine.registry,
            engine.datasets,
            engine.forms,
            engine.views,
            engine.params,
            engine.gate,
            engine.bus,
        )


def test_ai_assist_steps_are_part_of_page_metadata(page_document):
    page_document["actions"].append(
        {
            "objectName": "AI",
            "steps": [
                {"actionType": "gridSetAIMode", "customCode": "importOrders",
                 "dataSetName": "qOrders", "gridName": "gOrders", "clFldGrpId": 5},
                {"actionType": "formAIAssist", "customCode": "fillOrder", "clFldGrpId": 5},
            ],
        }
    )

    steps = PageMetadata.model_validate(page_document).find_action("AI").steps

    assert [type(s) for s in steps] == [AiAssistStep, AiAssistStep]
    assert steps[0].to_json_dict()["actionType"] == "gridSetAIMode"


@pytest.mark.asyncio
async def test_ai_assist_steps_request_the_chat(runtime, ctx, events):
    _add_action(
        ctx,
        "AI",
        [
            {"actionType": "gridSetAIMode", "customCode": "importOrders",
             "dataSetName": "qOrders", "gridName": "gOrders", "clFldGrpId": 5},
            {"actionType": "formAIAssist", "customCode": "fillOrder",
             "dataSetName": "qOrders", "clFldGrpId": 5},
        ],
    )

    result = await runtime.run_action(PRJ, FORM, "AI")

    assert result.status == RunStatus.COMPLETED
    assert result.executed == [0, 1]
    grid, form = [e for e in events if isinstance(e, AiChatRequestEvent)]
    assert (grid.chat_type, grid.chat_code, grid.data_set_name, grid.grid_name) == (
        "grid", "importOrders", "qOrders", "gOrders"
    )
    assert (form.chat_type, form.chat_code, form.data_set_name, form.grid_name) == (
        "form", "fillOrder", None, None
    )
    assert grid.cl_fld_grp_id == form.cl_fld_grp_id == 5
    assert grid.prj_id == PRJ and grid.form_id == FORM
