"""
Page runtime facade.

Wires the engine, resolvers and services around one event bus and one page
registry, and exposes the operations UI collaborators call: navigate to a
page, run and resume actions, answer messages, switch views, read and set
page state, and drive the debugger. State mutations take the page lock, so
they wait for a running action instead of interleaving with it.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from metapage.config import Settings, get_settings
from metapage.context import conn_code_var
from metapage.exceptions import ResumeTokenError
from metapage.integrations.data_service import DataService
from metapage.page_engine.events import (
    EventBus,
    FormReplyEvent,
    FormRequestEvent,
    LookupRequestEvent,
)
from metapage.page_engine.models.audit import DbLog
from metapage.page_engine.models.dataset import Row
from metapage.page_engine.models.page_context import PageContext, PageRegistry
from metapage.page_engine.schemas.page import PageMetadata
from metapage.page_engine.schemas.remote import DataResponse
from metapage.page_engine.services.action_engine import (
    ActionEngine,
    ResumeToken,
    RunResult,
)
from metapage.page_engine.services.dataset_service import DataSetService
from metapage.page_engine.services.debug_service import ActionDebugger
from metapage.page_engine.services.form_service import FormService
from metapage.page_engine.services.gateway import RemoteGateway
from metapage.page_engine.services.message_gate import MessageGate
from metapage.page_engine.services.page_loader import PageLoader, PageLoadResult
from metapage.page_engine.services.params import ParamBuilder
from metapage.page_engine.services.view_resolver import ViewResolver

logger = logging.getLogger(__name__)


class PageRuntime:
    def __init__(
        self,
        data_service: DataService,
        *,
        settings: Optional[Settings] = None,
        bus: Optional[EventBus] = None,
    ):
        self.settings = settings or get_settings()
        self.bus = bus or EventBus()
        self.registry = PageRegistry()
        self.db_log = DbLog(self.settings.DB_LOG_MAX_ENTRIES)
        self._conn_codes: Dict[str, str] = {}

        self.gateway = RemoteGateway(data_service, self.conn_code_for)
        self.params = ParamBuilder(self.settings.DATE_FORMAT)
        self.views = ViewResolver(self.bus)
        self.forms = FormService(self.gateway)
        self.datasets = DataSetService(
            self.gateway, self.params, self.forms, self.views, self.bus, self.db_log
        )
        self.gate = MessageGate(self.bus)
        self.engine = ActionEngine(
            self.registry,
            self.datasets,
            self.forms,
            self.views,
            self.params,
            self.gate,
            self.bus,
            debug_enabled=self.settings.DEBUG_ACTIONS,
        )
        self.debugger = ActionDebugger(self.engine, self.bus)
        self.loader = PageLoader(
            self.registry,
            data_service,
            self.forms,
            self.views,
            self.engine,
            self.bus,
            language_id=self.settings.LANGUAGE_ID,
            prefetch_dropdowns=self.settings.PREFETCH_DROPDOWNS,
        )

    # -- connection codes ------------------------------------------------------

    def conn_code_for(self, prj_id: str) -> Optional[str]:
        return (
            conn_code_var.get()
            or self._conn_codes.get(prj_id)
            or self.settings.DEFAULT_CONN_CODE
            or None
        )

    def set_conn_code(self, prj_id: str, conn_code: str) -> None:
        self._conn_codes[prj_id] = conn_code

    # -- pages -----------------------------------------------------------------

    @property
    def actual_prj_id(self) -> Optional[str]:
        return self.loader.actual_prj_id

    @property
    def actual_form_id(self) -> Optional[int]:
        return self.loader.actual_form_id

    def page(self, prj_id: str, form_id: int) -> PageContext:
        return self.registry.get(prj_id, form_id)

    async def run_page(self, prj_id: str, form_id: int) -> PageLoadResult:
        return await self.loader.run_page(prj_id, form_id)

    async def open_page(
        self, prj_id: str, form_id: int, metadata: PageMetadata
    ) -> PageLoadResult:
        """Register metadata obtained elsewhere (e.g. a file) and enter the page."""
        ctx = self.loader.register(prj_id, form_id, metadata)
        return await self.loader.enter(ctx, loaded=True)

    async def remove_page_data(self, prj_id: str, form_id: int) -> None:
        ctx = self.registry.find(prj_id, form_id)
        if ctx is not None:
            async with ctx.lock:
                ctx.adapters.clear()

    def remove_project(self, prj_id: str) -> int:
        self._conn_codes.pop(prj_id, None)
        return self.registry.remove_project(prj_id)

    def clear_all(self) -> None:
        self.registry.clear()
        self._conn_codes.clear()
        self.gate.reset()
        self.db_log.clear()
        self.debugger.session = None

    # -- actions ---------------------------------------------------------------

    async def run_action(
        self,
        prj_id: str,
        form_id: int,
        action_name: str,
        start_index: int = 0,
        debug_level: int = 0,
    ) -> RunResult:
        return await self.engine.run(prj_id, form_id, action_name, start_index, debug_level)

    async def resume(self, token: ResumeToken, answer: str) -> RunResult:
        return await self.engine.resume(token, answer)

    async def answer_message(
        self,
        answer: str,
        prj_id: Optional[str] = None,
        form_id: Optional[int] = None,
    ) -> Optional[RunResult]:
        """
        Answer the pending question and resume its action, if one is suspended.

        With `prj_id`/`form_id` the answer is only accepted for a question
        asked by that page.
        """
        token = self.engine.pending_token
        if token is not None and prj_id is not None and (
            token.prj_id != prj_id or token.form_id != form_id
        ):
            raise ResumeTokenError(
                f"Pending question belongs to {token.prj_id}/{token.form_id}",
                prj_id=prj_id,
                form_id=form_id,
            )
        if token is None:
            self.gate.set_status(answer)
            return None
        return await self.engine.resume(token, answer)

    def set_message_status(self, status: str) -> None:
        self.engine.set_message_status(status)

    # -- views and rules -------------------------------------------------------

    async def set_view(
        self, prj_id: str, form_id: int, view_name: str, is_previous: bool = False
    ) -> bool:
        ctx = self.page(prj_id, form_id)
        async with ctx.lock:
            return self.views.set_view(ctx, view_name, is_previous)

    def get_rules(self, prj_id: str, form_id: int) -> List[Dict[str, int]]:
        return self.page(prj_id, form_id).rules.values()

    async def set_page_rule(
        self, prj_id: str, form_id: int, cond_id: int, cond_value: int
    ) -> None:
        ctx = self.page(prj_id, form_id)
        async with ctx.lock:
            self.datasets.set_page_rule(ctx, cond_id, cond_value)

    # -- page data -------------------------------------------------------------

    def get_page_data(self, prj_id: str, form_id: int) -> List[Dict[str, Any]]:
        return self.page(prj_id, form_id).page_data()

    def get_page_field_value(self, prj_id: str, form_id: int, name: str) -> Any:
        return self.page(prj_id, form_id).page_field_value(name)

    async def set_page_field_value(
        self, prj_id: str, form_id: int, name: str, value: Any
    ) -> None:
        ctx = self.page(prj_id, form_id)
        async with ctx.lock:
            ctx.set_page_field(name, value)

    async def set_selected_rows(
        self, prj_id: str, form_id: int, data_set_name: str, keys: List[Row]
    ) -> None:
        ctx = self.page(prj_id, form_id)
        async with ctx.lock:
            self.datasets.set_selected_rows(ctx, data_set_name, keys)
            self.datasets.set_page_dataset_rule(ctx, data_set_name)

    async def set_dd_rules(
        self, prj_id: str, form_id: int, object_name: str, dd_data: Any
    ) -> None:
        ctx = self.page(prj_id, form_id)
        async with ctx.lock:
            ctx.set_dd_rules(object_name, dd_data)

    async def reload_with_filters(
        self,
        prj_id: str,
        form_id: int,
        adapter_name: str,
        data_set_name: str,
        grid_filters: Optional[List[Any]] = None,
        skip_initial_limit: bool = True,
    ) -> Optional[DataResponse]:
        ctx = self.page(prj_id, form_id)
        async with ctx.lock:
            return await self.datasets.reload_with_filters(
                ctx, adapter_name, data_set_name, grid_filters, skip_initial_limit
            )

    def get_dd_rules(self, prj_id: str, form_id: int) -> List[Dict[str, Any]]:
        return self.page(prj_id, form_id).get_dd_rules()

    # -- collaborator requests -------------------------------------------------

    def show_lookup(self, prj_id: str, form_id: int, group_id: int, object_name: str) -> None:
        field = self.page(prj_id, form_id).metadata.get_form(group_id).find_field(object_name)
        self.bus.publish(
            LookupRequestEvent(
                prj_id=prj_id,
                form_id=form_id,
                field_name=object_name,
                field=field.to_json_dict() if field else {},
            )
        )

    def send_form_request(self, prj_id: str, form_id: int, payload: Dict[str, Any]) -> None:
        self.bus.publish(FormRequestEvent(prj_id=prj_id, form_id=form_id, payload=payload))

    def send_form_reply(self, prj_id: str, form_id: int, payload: Dict[str, Any]) -> None:
        self.bus.publish(FormReplyEvent(prj_id=prj_id, form_id=form_id, payload=payload))

    # -- inspection ------------------------------------------------------------

    def debug_snapshot(self) -> Dict[str, Any]:
        prj_id, form_id = self.actual_prj_id, self.actual_form_id
        ctx = self.registry.find(prj_id, form_id) if prj_id is not None else None
        return {
            "actualPrjId": prj_id,
            "actualFormId": form_id,
            "pages": [f"{c.prj_id}/{c.form_id}" for c in self.registry],
            "actualView": ctx.active_view if ctx else None,
            "messageStatus": self.gate.status.value,
            "debugEnabled": self.engine.debug_enabled,
            "pageMetadata": ctx.metadata.to_json_dict() if ctx else None,
            "pageData": ctx.page_data() if ctx else [],
            "rules": ctx.rules.values() if ctx else [],
            "views": self.views.snapshot(ctx) if ctx else {},
        }

    def get_db_log(self, prj_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return [e.model_dump(mode="json") for e in self.db_log.entries(prj_id)]
