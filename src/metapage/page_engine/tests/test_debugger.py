import pytest

from metapage.exceptions import DebugSessionError
from metapage.page_engine.events import DebugProgressEvent, DebugSessionStartedEvent
from metapage.page_engine.schemas.remote import DataResponse
from metapage.page_engine.services.action_engine import RunStatus
from metapage.page_engine.services.debug_service import DebugStatus, StepState

PRJ, FORM = "P1", 100


@pytest.fixture
def debugger(runtime):
    runtime.debugger.set_enabled(True)
    return runtime.debugger


@pytest.mark.asyncio
async def test_first_run_waits_for_debugger(runtime, ctx, debugger, events):
    result = await runtime.run_action(PRJ, FORM, "A")

    assert result.status == RunStatus.AWAITING_DEBUGGER
    assert result.executed == []
    assert ctx.adapters == {}
    started = [e for e in events if isinstance(e, DebugSessionStartedEvent)]
    assert started[0].cursor_index == 0
    assert started[0].debug_level == 3
    assert {"condId": 1, "condValue": 2} in started[0].rule_values
    session = debugger.session
    assert session.status == DebugStatus.READY
    assert [r.state for r in session.rows] == [StepState.PENDING, StepState.PENDING]


@pytest.mark.asyncio
async def test_step_one_marks_executed_and_locked(runtime, ctx, debugger):
    await runtime.run_action(PRJ, FORM, "D")

    await debugger.step_one()
    session = debugger.session
    assert session.line_number == 1
    assert session.status == DebugStatus.RUNNING
    assert session.rows[0].state == StepState.LOCKED
    assert session.rows[1].state == StepState.PENDING

    await debugger.step_one()
    assert session.rows[1].state == StepState.EXECUTED
    assert session.status == DebugStatus.COMPLETED
    assert ctx.active_view == "V1"

    with pytest.raises(DebugSessionError):
        await debugger.step_one()


@pytest.mark.asyncio
async def test_cursor_is_monotonic_and_last_step_reported_once(runtime, ctx, debugger, events):
    await runtime.run_action(PRJ, FORM, "A")
    await debugger.run_all()

    progress = [e for e in events if isinstance(e, DebugProgressEvent)]
    cursors = [e.cursor_index for e in progress]
    assert cursors == sorted(cursors) == [1, 2]
    assert sum(e.is_last_step for e in progress) == 1
    assert debugger.session.status == DebugStatus.COMPLETED


@pytest.mark.asyncio
async def test_failed_step_locks_the_rest(runtime, ctx, debugger, data_service):
    data_service.get_data.side_effect = None
    data_service.get_data.return_value = DataResponse(valid=False)
    await runtime.run_action(PRJ, FORM, "A")

    result = await debugger.run_all()

    session = debugger.session
    assert result.status == RunStatus.ABORTED
    assert session.status == DebugStatus.COMPLETED
    assert session.can_run is False
    assert [r.state for r in session.rows] == [StepState.EXECUTED, StepState.LOCKED]


@pytest.mark.asyncio
async def test_pending_question_still_reports_can_run(runtime, ctx, debugger, events):
    await runtime.run_action(PRJ, FORM, "B")
    await debugger.step_one()

    progress = [e for e in events if isinstance(e, DebugProgressEvent)]
    assert progress[-1].can_run is True
    assert debugger.session.status == DebugStatus.RUNNING


@pytest.mark.asyncio
async def test_close_runs_remaining_steps(runtime, ctx, debugger):
    await runtime.run_action(PRJ, FORM, "A")

    result = await debugger.close()

    assert result is not None and result.status == RunStatus.COMPLETED
    assert ctx.active_view == "V2"
    assert debugger.session is None
    with pytest.raises(DebugSessionError):
        await debugger.close()


@pytest.mark.asyncio
async def test_listeners_receive_session_updates(runtime, ctx, debugger):
    seen = []
    unsubscribe = debugger.subscribe(lambda s: seen.append((s.line_number, s.status)))

    await runtime.run_action(PRJ, FORM, "D")
    await debugger.run_all()
    unsubscribe()

    assert seen == [
        (0, DebugStatus.READY),
        (1, DebugStatus.RUNNING),
        (2, DebugStatus.COMPLETED),
    ]


def test_disabling_drops_session(runtime, debugger):
    debugger.set_enabled(False)
    assert runtime.engine.debug_enabled is False
    assert debugger.snapshot() is None
