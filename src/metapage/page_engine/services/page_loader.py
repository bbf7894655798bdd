from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from metapage.exceptions import RemoteCallError
from metapage.page_engine.events import EventBus, LoaderEvent
from metapage.page_engine.models.page_context import PageContext, PageRegistry
from metapage.page_engine.schemas.page import PageMetadata
from metapage.page_engine.services.action_engine import ActionEngine, RunResult
from metapage.page_engine.services.form_service import FormService
from metapage.page_engine.services.view_resolver import ViewResolver
from metapage.integrations.data_service import DataService

logger = logging.getLogger(__name__)

DROP_DOWN_EDITOR = "DropDownBox"


@dataclass
class PageLoadResult:
    context: PageContext
    loaded: bool
    init_result: Optional[RunResult] = None


class PageLoader:
    """Navigation to a page: fetch metadata once, then run the page's init action."""

    def __init__(
        self,
        registry: PageRegistry,
        data_service: DataService,
        forms: FormService,
        views: ViewResolver,
        engine: ActionEngine,
        bus: EventBus,
        *,
        language_id: int = 1,
        prefetch_dropdowns: bool = True,
    ):
        self.registry = registry
        self.data_service = data_service
        self.forms = forms
        self.views = views
        self.engine = engine
        self.bus = bus
        self.language_id = language_id
        self.prefetch_dropdowns = prefetch_dropdowns
        self.actual_prj_id: Optional[str] = None
        self.actual_form_id: Optional[int] = None

    async def fetch_metadata(self, prj_id: str, form_id: int) -> PageMetadata:
        response = await self.data_service.get_page_data(prj_id, form_id, self.language_id)
        if not response.valid:
            raise RemoteCallError(
                "getPageData2",
                response.message or f"No page metadata for {prj_id}/{form_id}",
            )
        try:
            return PageMetadata.model_validate(response.page_data)
        except PydanticValidationError as e:
            raise RemoteCallError("getPageData2", f"Malformed page metadata: {e}") from e

    def register(self, prj_id: str, form_id: int, metadata: PageMetadata) -> PageContext:
        metadata.flatten_always_active_views()
        return self.registry.register(PageContext(prj_id, form_id, metadata))

    async def prefetch_drop_downs(self, ctx: PageContext) -> None:
        for form in ctx.metadata.forms:
            if form.group_id is None:
                continue
            for field in form.fields:
                if field.editor_type != DROP_DOWN_EDITOR or field.sql_id is None:
                    continue
                field.drop_down_rows = await self.forms.get_lookup_rows(
                    ctx, form.group_id, field.field_name or "", field.object_name, {}
                )

    async def run_page(self, prj_id: str, form_id: int) -> PageLoadResult:
        self.bus.publish(LoaderEvent(prj_id=prj_id, form_id=form_id, visible=True))
        ctx = self.registry.find(prj_id, form_id)
        loaded = ctx is None
        if ctx is None:
            metadata = await self.fetch_metadata(prj_id, form_id)
            ctx = self.register(prj_id, form_id, metadata)
            if self.prefetch_dropdowns:
                await self.prefetch_drop_downs(ctx)
            logger.info(f"Loaded page {prj_id}/{form_id}")
        else:
            self.views.reset_visibility(ctx)

        return await self.enter(ctx, loaded)

    async def enter(self, ctx: PageContext, loaded: bool = False) -> PageLoadResult:
        """Make `ctx` the active page and run its init action."""
        ctx.active_view = ""
        result = PageLoadResult(context=ctx, loaded=loaded)
        init_action = ctx.metadata.page.init_action
        if init_action:
            result.init_result = await self.engine.run(ctx.prj_id, ctx.form_id, init_action)
        else:
            self.bus.publish(LoaderEvent(prj_id=ctx.prj_id, form_id=ctx.form_id, visible=False))
        self.actual_prj_id = ctx.prj_id
        self.actual_form_id = ctx.form_id
        return result
