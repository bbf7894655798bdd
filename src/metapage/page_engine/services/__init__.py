from metapage.page_engine.services.action_engine import (
    ActionEngine,
    ResumeToken,
    RunResult,
    RunStatus,
)
from metapage.page_engine.services.dataset_service import DataSetService
from metapage.page_engine.services.debug_service import (
    ActionDebugger,
    DebugSession,
    DebugStatus,
    StepState,
)
from metapage.page_engine.services.form_service import FormService
from metapage.page_engine.services.gateway import RemoteGateway
from metapage.page_engine.services.message_gate import MessageGate, MessageStatus
from metapage.page_engine.services.page_loader import PageLoader, PageLoadResult
from metapage.page_engine.services.params import ParamBuilder
from metapage.page_engine.services.view_resolver import ViewResolver

__all__ = [
    "ActionDebugger",
    "ActionEngine",
    "DataSetService",
    "DebugSession",
    "DebugStatus",
    "FormService",
    "MessageGate",
    "MessageStatus",
    "PageLoadResult",
    "PageLoader",
    "ParamBuilder",
    "RemoteGateway",
    "ResumeToken",
    "RunResult",
    "RunStatus",
    "StepState",
    "ViewResolver",
]
