"""
Step-by-step action debugger.

Listens to the engine's debug events and keeps one session: the steps of
the action under inspection, a cursor, and a per-step state. `step_one`
and `run_all` drive the engine at debug level 1 and 2 from the cursor.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from metapage.exceptions import DebugSessionError
from metapage.page_engine.events import (
    DebugProgressEvent,
    DebugSessionStartedEvent,
    EventBus,
)
from metapage.page_engine.services.action_engine import (
    LEVEL_RUN_ALL,
    LEVEL_STEP,
    ActionEngine,
    RunResult,
)

logger = logging.getLogger(__name__)


class StepState(str, enum.Enum):
    PENDING = "Pending"
    EXECUTED = "Executed"
    LOCKED = "Locked"


class DebugStatus(str, enum.Enum):
    READY = "Ready"
    RUNNING = "Running"
    COMPLETED = "Completed"


@dataclass
class DebugRow:
    row_index: int
    step: Dict[str, Any]
    state: StepState = StepState.PENDING


@dataclass
class DebugSession:
    prj_id: str
    form_id: int
    action_name: str
    rows: List[DebugRow]
    line_number: int = 0
    status: DebugStatus = DebugStatus.READY
    can_run: bool = True
    rule_values: List[Dict[str, int]] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status == DebugStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prjId": self.prj_id,
            "formId": self.form_id,
            "actionName": self.action_name,
            "lineNumber": self.line_number,
            "status": self.status.value,
            "canRun": self.can_run,
            "ruleValues": list(self.rule_values),
            "rows": [
                {"rowIndex": r.row_index, "state": r.state.value, "step": r.step}
                for r in self.rows
            ],
        }


SessionListener = Callable[[DebugSession], None]


class ActionDebugger:
    def __init__(self, engine: ActionEngine, bus: EventBus):
        self.engine = engine
        self.session: Optional[DebugSession] = None
        self._listeners: List[SessionListener] = []
        bus.subscribe(DebugSessionStartedEvent, self._on_started)
        bus.subscribe(DebugProgressEvent, self._on_progress)

    @property
    def enabled(self) -> bool:
        return self.engine.debug_enabled

    def set_enabled(self, enabled: bool) -> None:
        self.engine.debug_enabled = enabled
        if not enabled:
            self.session = None
        logger.info(f"Action debugging {'enabled' if enabled else 'disabled'}")

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def snapshot(self) -> Optional[Dict[str, Any]]:
        return self.session.to_dict() if self.session else None

    def _notify(self) -> None:
        if self.session is None:
            return
        for listener in list(self._listeners):
            listener(self.session)

    # -- event handlers --------------------------------------------------------

    def _on_started(self, event: DebugSessionStartedEvent) -> None:
        self.session = DebugSession(
            prj_id=event.prj_id or "",
            form_id=event.form_id or 0,
            action_name=event.action_name,
            rows=[DebugRow(row_index=i, step=s) for i, s in enumerate(event.steps)],
            line_number=event.cursor_index,
            rule_values=list(event.rule_values),
        )
        if not self.session.rows:
            self.session.status = DebugStatus.COMPLETED
        logger.info(f"Debug session started for {event.action_name} at {event.cursor_index}")
        self._notify()

    def _on_progress(self, event: DebugProgressEvent) -> None:
        session = self.session
        if session is None or session.action_name != event.action_name:
            return

        for row in session.rows:
            if row.row_index < event.cursor_index and row.state == StepState.PENDING:
                row.state = StepState.EXECUTED if event.was_step_active else StepState.LOCKED

        session.line_number = event.cursor_index
        session.can_run = event.can_run
        session.rule_values = list(event.rule_values)

        if not event.can_run:
            session.status = DebugStatus.COMPLETED
            for row in session.rows:
                if row.state == StepState.PENDING:
                    row.state = StepState.LOCKED
        elif event.is_last_step:
            session.status = DebugStatus.COMPLETED
        else:
            session.status = DebugStatus.RUNNING
        self._notify()

    # -- commands --------------------------------------------------------------

    def _active(self) -> DebugSession:
        if self.session is None:
            raise DebugSessionError("No debug session is active")
        if self.session.is_completed:
            raise DebugSessionError(
                f"Debug session for {self.session.action_name} is completed"
            )
        return self.session

    async def _drive(self, level: int) -> RunResult:
        session = self._active()
        return await self.engine.run(
            session.prj_id,
            session.form_id,
            session.action_name,
            session.line_number,
            level,
        )

    async def step_one(self) -> RunResult:
        """Run the step under the cursor only."""
        return await self._drive(LEVEL_STEP)

    async def run_all(self) -> RunResult:
        """Run from the cursor to the end (or the first step that stops)."""
        return await self._drive(LEVEL_RUN_ALL)

    async def close(self) -> Optional[RunResult]:
        """Finish the remaining steps if the run may still continue, then end the session."""
        session = self.session
        if session is None:
            raise DebugSessionError("No debug session is active")
        result = None
        if not session.is_completed and session.can_run:
            result = await self._drive(LEVEL_RUN_ALL)
        logger.info(f"Debug session for {session.action_name} closed")
        self.session = None
        return result
