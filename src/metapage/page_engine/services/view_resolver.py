"""
View & rule resolver.

Composes the target view with the always-active views (ascending
`viewLevel`), evaluates tab nesting, dataset-selection gates and condition
rules per object, then resets every UI flag of the page and re-applies the
resolved ones.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from metapage.exceptions import MetadataNotFoundError
from metapage.page_engine.events import EventBus, ViewChangedEvent
from metapage.page_engine.models.page_context import PageContext
from metapage.page_engine.rules import check_page_rule
from metapage.page_engine.schemas.page import ViewObject

logger = logging.getLogger(__name__)


@dataclass
class ResolvedObject:
    object_type: str
    object_name: str
    visible: bool = True
    disabled: bool = False
    tab_index: Optional[int] = None

    @property
    def key(self) -> str:
        return f"{self.object_type}:{self.object_name}"


class ViewResolver:
    def __init__(self, bus: EventBus):
        self.bus = bus

    def set_view(self, ctx: PageContext, view_name: str, is_previous: bool = False) -> bool:
        """
        Activate `view_name` (or pop the back-stack when `is_previous`).

        Returns False, with no visibility change, when the resolved name is
        empty. Raises MetadataNotFoundError for an unknown view.
        """
        if is_previous:
            view_name = ctx.view_stack.pop() if ctx.view_stack else ""
            ctx.active_view = view_name
        else:
            if view_name and ctx.metadata.find_view(view_name) is None:
                raise MetadataNotFoundError(
                    "view", view_name, prj_id=ctx.prj_id, form_id=ctx.form_id
                )
            if ctx.active_view and ctx.active_view != view_name:
                ctx.view_stack.append(ctx.active_view)
            ctx.active_view = view_name

        if not view_name:
            return False
        if ctx.metadata.find_view(view_name) is None:
            raise MetadataNotFoundError(
                "view", view_name, prj_id=ctx.prj_id, form_id=ctx.form_id
            )

        desired = self.resolve(ctx, view_name)
        self._apply(ctx, desired)
        logger.info(f"View {view_name} active on {ctx.prj_id}/{ctx.form_id}")
        self.bus.publish(
            ViewChangedEvent(prj_id=ctx.prj_id, form_id=ctx.form_id, view_name=view_name)
        )
        return True

    def resolve(self, ctx: PageContext, view_name: str) -> Dict[str, ResolvedObject]:
        """Flags of every object of the view, later layers overriding earlier ones."""
        metadata = ctx.metadata
        layers = sorted(
            (v for v in metadata.views if v.view_name == view_name or v.view_flag_always_active),
            key=lambda v: v.view_level,
        )
        tab_indexes = {t.object_name: t.tab_index for t in metadata.tabs}

        resolved: List[ResolvedObject] = []
        for view in layers:
            for obj in view.objects:
                resolved.append(self._resolve_object(ctx, obj, resolved, tab_indexes))

        return {r.key: r for r in resolved}

    def _resolve_object(
        self,
        ctx: PageContext,
        obj: ViewObject,
        resolved: List[ResolvedObject],
        tab_indexes: Dict[str, int],
    ) -> ResolvedObject:
        result = ResolvedObject(object_type=obj.object_type, object_name=obj.object_name)
        if obj.object_type == "tabs":
            result.tab_index = tab_indexes.get(obj.object_name, 0)

        if obj.tabs_name:
            container = next(
                (r for r in resolved if r.object_name == obj.tabs_name), None
            )
            if container is not None:
                result.visible = container.visible and container.tab_index == (
                    (obj.tab_rn or 0) - 1
                )

        if result.visible and obj.selected in ("Y", "N"):
            found = ctx.find_dataset(obj.selected_object_name or "")
            if found is None:
                result.visible = False
            else:
                is_selected = found[1].is_selected
                result.visible = is_selected if obj.selected == "Y" else not is_selected

        if result.visible and obj.exec_cond:
            if not check_page_rule(ctx.rules, obj.exec_cond):
                result.disabled = True
                if obj.exec_cond_not_visible:
                    result.visible = False
        return result

    def _apply(self, ctx: PageContext, desired: Dict[str, ResolvedObject]) -> None:
        metadata = ctx.metadata

        def lookup(key: str) -> Optional[ResolvedObject]:
            return desired.get(key)

        for tab in metadata.tabs:
            state = lookup(f"tabs:{tab.object_name}")
            tab.visible = bool(state and state.visible)
            if state is not None and state.tab_index is not None:
                tab.tab_index = state.tab_index

        for grid in metadata.grids:
            state = lookup(f"grid:{grid.object_name}")
            grid.visible = bool(state and state.visible)
            grid.disabled = bool(state and state.disabled)

        for group in metadata.reports_groups:
            state = lookup(f"reportsGroup:{group.field_grp_id}")
            group.visible = bool(state and state.visible)

        for toolbar in metadata.toolbars:
            state = lookup(f"toolbar:{toolbar.object_name}")
            toolbar.visible = bool(state and state.visible)
            for item in toolbar.items_list:
                item_state = lookup(f"toolbarItem:{item.object_name}")
                item.visible = bool(item_state and item_state.visible)
                item.disabled = bool(item_state and item_state.disabled)

        for form in metadata.forms:
            state = lookup(f"form:{form.object_name}")
            form.visible = bool(state and state.visible)

        for group in metadata.reports_groups:
            for report in group.reports:
                if report.exec_cond:
                    report.visible = check_page_rule(ctx.rules, report.exec_cond)

    def reset_visibility(self, ctx: PageContext) -> None:
        """Hide every UI object of the page (used when a loaded page is re-entered)."""
        self._apply(ctx, {})

    @staticmethod
    def snapshot(ctx: PageContext) -> Dict[str, Any]:
        """Current visibility flags of every UI object, keyed like the resolver."""
        metadata = ctx.metadata
        snap: Dict[str, Any] = {}
        for tab in metadata.tabs:
            snap[f"tabs:{tab.object_name}"] = (tab.visible, tab.tab_index)
        for grid in metadata.grids:
            snap[f"grid:{grid.object_name}"] = (grid.visible, grid.disabled)
        for group in metadata.reports_groups:
            snap[f"reportsGroup:{group.field_grp_id}"] = (
                group.visible,
                tuple(r.visible for r in group.reports),
            )
        for toolbar in metadata.toolbars:
            snap[f"toolbar:{toolbar.object_name}"] = toolbar.visible
            for item in toolbar.items_list:
                snap[f"toolbarItem:{item.object_name}"] = (item.visible, item.disabled)
        for form in metadata.forms:
            snap[f"form:{form.object_name}"] = form.visible
        return snap
