"""
Action execution engine.

Runs the steps of a named action in order. Each active step dispatches to
its primitive and yields `can_run`; the run stops at the first False. A
message step that is waiting for an answer suspends the run with a resume
token; answering through `resume` (or `set_message_status` plus `run` at
`resume_cursor`) re-enters at the asking step.

Debug levels: 0 normal, 1 single step, 2 run to end, 3 wait for debugger.
"""
from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Type

from metapage.exceptions import ConfigurationError, ResumeTokenError
from metapage.page_engine.events import (
    AiChatRequestEvent,
    CustomCodeEvent,
    DebugProgressEvent,
    DebugSessionStartedEvent,
    EventBus,
    GridReloadEvent,
    LoaderEvent,
)
from metapage.page_engine.models.dataset import DataSetStatus
from metapage.page_engine.models.page_context import PageContext, PageRegistry
from metapage.page_engine.rules import check_page_rule
from metapage.page_engine.schemas.steps import (
    GRID_MODE_FLAGS,
    STEP_CLASSES,
    AiAssistStep,
    DataSetActionStep,
    DataSetRefreshStep,
    DataSetStatusStep,
    ExecCustomStep,
    ExecProcStep,
    FormStep,
    GetDataStep,
    GetExportedDataStep,
    GridModeStep,
    GridPostChangesStep,
    MessageStep,
    RemoveDataStep,
    SelectionStep,
    SetPreviousViewStep,
    SetRuleStep,
    SetViewStep,
    StepBase,
)
from metapage.page_engine.services.dataset_service import DataSetService
from metapage.page_engine.services.form_service import FormService
from metapage.page_engine.services.message_gate import ANSWERS, MessageGate, MessageStatus
from metapage.page_engine.services.params import ParamBuilder
from metapage.page_engine.services.view_resolver import ViewResolver

logger = logging.getLogger(__name__)

LEVEL_NORMAL = 0
LEVEL_STEP = 1
LEVEL_RUN_ALL = 2
LEVEL_WAIT = 3


class RunStatus(str, enum.Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"
    SUSPENDED = "suspended"
    AWAITING_DEBUGGER = "awaiting_debugger"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ResumeToken:
    prj_id: str
    form_id: int
    action_name: str
    step_index: int
    debug_level: int
    token_id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class RunResult:
    status: RunStatus
    action_name: str
    can_run: bool = True
    executed: List[int] = field(default_factory=list)
    visited: List[int] = field(default_factory=list)
    resume_token: Optional[ResumeToken] = None

    def to_dict(self) -> Dict[str, object]:
        token = self.resume_token
        return {
            "status": self.status.value,
            "actionName": self.action_name,
            "canRun": self.can_run,
            "executed": list(self.executed),
            "visited": list(self.visited),
            "resumeToken": None
            if token is None
            else {
                "tokenId": token.token_id,
                "prjId": token.prj_id,
                "formId": token.form_id,
                "actionName": token.action_name,
                "stepIndex": token.step_index,
                "debugLevel": token.debug_level,
            },
        }


@dataclass
class StepCall:
    ctx: PageContext
    action_name: str
    index: int
    level: int


StepHandler = Callable[[StepCall, StepBase], Awaitable[bool]]


class ActionEngine:
    def __init__(
        self,
        registry: PageRegistry,
        datasets: DataSetService,
        forms: FormService,
        views: ViewResolver,
        params: ParamBuilder,
        gate: MessageGate,
        bus: EventBus,
        *,
        debug_enabled: bool = False,
    ):
        self.registry = registry
        self.datasets = datasets
        self.forms = forms
        self.views = views
        self.params = params
        self.gate = gate
        self.bus = bus
        self.debug_enabled = debug_enabled
        self.loader_visible = False
        self._pending: Optional[ResumeToken] = None

        self._handlers: Dict[Type[StepBase], StepHandler] = {
            GetDataStep: self._get_data,
            RemoveDataStep: self._remove_data,
            SetViewStep: self._set_view,
            SetPreviousViewStep: self._set_previous_view,
            SelectionStep: self._selection,
            ExecProcStep: self._exec_proc,
            ExecCustomStep: self._exec_custom,
            SetRuleStep: self._set_rule,
            FormStep: self._form,
            GetExportedDataStep: self._get_exported_data,
            DataSetStatusStep: self._dataset_status,
            DataSetRefreshStep: self._dataset_refresh,
            DataSetActionStep: self._dataset_action,
            MessageStep: self._message,
            GridModeStep: self._grid_mode,
            GridPostChangesStep: self._grid_post_changes,
            AiAssistStep: self._ai_assist,
        }
        missing = [cls.__name__ for cls in STEP_CLASSES if cls not in self._handlers]
        if missing:
            raise ConfigurationError(f"No handler for step classes: {', '.join(missing)}")

    # -- public API ------------------------------------------------------------

    @property
    def resume_cursor(self) -> Optional[int]:
        """Index of the message step awaiting an answer, if any."""
        return self._pending.step_index if self._pending else None

    @property
    def pending_token(self) -> Optional[ResumeToken]:
        return self._pending

    def set_message_status(self, status: str) -> None:
        self.gate.set_status(status)

    async def run(
        self,
        prj_id: str,
        form_id: int,
        action_name: str,
        start_index: int = 0,
        debug_level: int = LEVEL_NORMAL,
    ) -> RunResult:
        ctx = self.registry.get(prj_id, form_id)
        async with ctx.lock:
            return await self._run(ctx, action_name, start_index, debug_level)

    async def resume(self, token: ResumeToken, answer: str) -> RunResult:
        """Answer the pending message and continue from the step that asked."""
        if self._pending is None or token.token_id != self._pending.token_id:
            raise ResumeTokenError(
                "Resume token is stale or unknown", token_id=token.token_id
            )
        if answer not in (s.value for s in ANSWERS):
            raise ResumeTokenError(f"Not a message answer: {answer}", answer=answer)
        self.gate.set_status(answer)
        return await self.run(
            token.prj_id, token.form_id, token.action_name, token.step_index, token.debug_level
        )

    # -- loop ------------------------------------------------------------------

    def _loader(self, ctx: PageContext, visible: bool) -> None:
        self.loader_visible = visible
        self.bus.publish(LoaderEvent(prj_id=ctx.prj_id, form_id=ctx.form_id, visible=visible))

    async def _run(
        self, ctx: PageContext, action_name: str, start_index: int, debug_level: int
    ) -> RunResult:
        action = ctx.metadata.find_action(action_name)
        self._loader(ctx, True)
        if action is None:
            logger.warning(f"Action {action_name} not found on {ctx.prj_id}/{ctx.form_id}")
            self._loader(ctx, False)
            return RunResult(status=RunStatus.NOT_FOUND, action_name=action_name)

        if self.gate.has_answer:
            self._pending = None

        steps = action.steps
        level = debug_level
        if self.debug_enabled and debug_level == LEVEL_NORMAL and not self.gate.has_answer:
            level = LEVEL_WAIT
            self.bus.publish(
                DebugSessionStartedEvent(
                    prj_id=ctx.prj_id,
                    form_id=ctx.form_id,
                    action_name=action_name,
                    steps=[s.to_json_dict() for s in steps],
                    rule_values=ctx.rules.values(),
                    cursor_index=start_index,
                    debug_level=level,
                )
            )

        run_to = len(steps) if level != LEVEL_STEP else min(start_index + 1, len(steps))
        logger.info(
            f"Run {action_name} on {ctx.prj_id}/{ctx.form_id} from {start_index} level {level}"
        )

        result = RunResult(status=RunStatus.COMPLETED, action_name=action_name)
        last_kind = ""
        suspended_at: Optional[int] = None
        can_run = True

        if level < LEVEL_WAIT:
            for i in range(start_index, run_to):
                step = steps[i]
                active = check_page_rule(ctx.rules, step.exec_cond)
                if active:
                    logger.debug(f"{action_name}[{i}] {step.kind}")
                    handler = self._handlers[type(step)]
                    can_run = await handler(StepCall(ctx, action_name, i, level), step)
                    result.executed.append(i)
                    last_kind = step.kind
                    if isinstance(step, MessageStep) and self.gate.is_pending:
                        suspended_at = i
                result.visited.append(i)

                if self.debug_enabled:
                    debug_can_run = can_run or (
                        step.kind == MessageStatus.SHOW_OK_CANCEL.value
                        and self.gate.status == MessageStatus.SHOW_OK_CANCEL
                    )
                    self.bus.publish(
                        DebugProgressEvent(
                            prj_id=ctx.prj_id,
                            form_id=ctx.form_id,
                            action_name=action_name,
                            step=step.to_json_dict(),
                            rule_values=ctx.rules.values(),
                            can_run=debug_can_run,
                            was_step_active=active,
                            cursor_index=i + 1,
                            is_last_step=i == len(steps) - 1,
                            debug_level=level,
                        )
                    )
                if not can_run:
                    break

        if last_kind != "execCustom":
            self._loader(ctx, False)

        result.can_run = can_run
        if level == LEVEL_WAIT:
            result.status = RunStatus.AWAITING_DEBUGGER
        elif not can_run and suspended_at is not None:
            token = ResumeToken(
                prj_id=ctx.prj_id,
                form_id=ctx.form_id,
                action_name=action_name,
                step_index=suspended_at,
                debug_level=level,
            )
            self._pending = token
            result.status = RunStatus.SUSPENDED
            result.resume_token = token
        elif not can_run:
            result.status = RunStatus.ABORTED
        logger.info(f"Run {action_name} ended: {result.status.value}")
        return result

    # -- step handlers ---------------------------------------------------------

    async def _get_data(self, call: StepCall, step: GetDataStep) -> bool:
        return await self.datasets.get_data(call.ctx, step)

    async def _remove_data(self, call: StepCall, step: RemoveDataStep) -> bool:
        return self.datasets.remove_data(call.ctx, step.data_adapter)

    async def _set_view(self, call: StepCall, step: SetViewStep) -> bool:
        return self.views.set_view(call.ctx, step.view_name)

    async def _set_previous_view(self, call: StepCall, step: SetPreviousViewStep) -> bool:
        return self.views.set_view(call.ctx, "", is_previous=True)

    async def _selection(self, call: StepCall, step: SelectionStep) -> bool:
        kind = step.action_type
        self.datasets.set_dataset_selected(
            call.ctx,
            step.data_set_name,
            kind != "unselectDS",
            go_to_first_row=kind == "goToFirstRow",
            go_to_last_row=kind == "goToLastRow",
        )
        return True

    async def _exec_proc(self, call: StepCall, step: ExecProcStep) -> bool:
        params = self.params.build(call.ctx, step)
        return await self.datasets.exec_proc(call.ctx, step.sql_id, params, list(step.sql_params))

    async def _exec_custom(self, call: StepCall, step: ExecCustomStep) -> bool:
        self.bus.publish(
            CustomCodeEvent(
                prj_id=call.ctx.prj_id,
                form_id=call.ctx.form_id,
                custom_code=step.custom_code,
                action_name=call.action_name,
            )
        )
        return True

    async def _set_rule(self, call: StepCall, step: SetRuleStep) -> bool:
        self.datasets.set_page_rule(call.ctx, step.cond_id, step.cond_value)
        return True

    async def _form(self, call: StepCall, step: FormStep) -> bool:
        ctx, group_id = call.ctx, step.cl_fld_grp_id
        if step.action_type == "getFormData":
            self.forms.get_form_data(ctx, group_id)
        elif step.action_type == "clearFields":
            self.forms.clear_fields(ctx, group_id)
        elif step.action_type == "pkLock":
            self.forms.pk_lock(ctx, group_id)
        elif step.action_type == "pkUnlock":
            self.forms.pk_unlock(ctx, group_id)
        else:
            self.forms.save_form_data(ctx, group_id)
        return True

    async def _get_exported_data(self, call: StepCall, step: GetExportedDataStep) -> bool:
        return await self.forms.get_exported_data(call.ctx, step.cl_fld_grp_id)

    async def _dataset_status(self, call: StepCall, step: DataSetStatusStep) -> bool:
        status = {
            "dsInsert": DataSetStatus.INSERT,
            "dsEdit": DataSetStatus.EDIT,
            "dsCancel": DataSetStatus.IDLE,
        }[step.action_type]
        self.datasets.set_dataset_status(call.ctx, step.data_set_name, status, step)
        return True

    async def _dataset_refresh(self, call: StepCall, step: DataSetRefreshStep) -> bool:
        return await self.datasets.dataset_refresh(
            call.ctx, step.data_set_name, all_rows=step.action_type == "dsRefresh"
        )

    async def _dataset_action(self, call: StepCall, step: DataSetActionStep) -> bool:
        return await self.datasets.dataset_action(call.ctx, step)

    async def _message(self, call: StepCall, step: MessageStep) -> bool:
        return self.gate.evaluate(call.ctx, step, call.action_name, call.level)

    async def _grid_mode(self, call: StepCall, step: GridModeStep) -> bool:
        flag = GRID_MODE_FLAGS.get(step.action_type)
        if flag is not None:
            self.bus.publish(
                GridReloadEvent(
                    prj_id=call.ctx.prj_id,
                    form_id=call.ctx.form_id,
                    data_set_name=step.data_set_name,
                    flags={flag: True},
                )
            )
        return True

    async def _grid_post_changes(self, call: StepCall, step: GridPostChangesStep) -> bool:
        return await self.datasets.dataset_post(call.ctx, step.data_set_name, step.grid_name)

    async def _ai_assist(self, call: StepCall, step: AiAssistStep) -> bool:
        is_grid = step.action_type == "gridSetAIMode"
        self.bus.publish(
            AiChatRequestEvent(
                prj_id=call.ctx.prj_id,
                form_id=call.ctx.form_id,
                chat_type="grid" if is_grid else "form",
                chat_code=step.custom_code,
                data_set_name=step.data_set_name if is_grid else None,
                grid_name=step.grid_name if is_grid else None,
                cl_fld_grp_id=step.cl_fld_grp_id,
            )
        )
        return True
