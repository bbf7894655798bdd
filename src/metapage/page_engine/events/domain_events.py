"""
Notifications published by the page runtime.
UI collaborators subscribe to these to re-render.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
import uuid


class DomainEvent(BaseModel):
    """Base class for all runtime events."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    prj_id: Optional[str] = None
    form_id: Optional[int] = None


class ViewChangedEvent(DomainEvent):
    event_type: str = "view.changed"
    view_name: str


class LoaderEvent(DomainEvent):
    event_type: str = "loader.changed"
    visible: bool


class MessageRequestEvent(DomainEvent):
    event_type: str = "message.requested"
    kind: str  # showMsg | showOKCancel
    action_name: str
    step: Dict[str, Any]
    debug_level: int = 0
    custom_msg: Optional[str] = None


class GridReloadEvent(DomainEvent):
    event_type: str = "grid.reload"
    data_set_name: Optional[str] = None
    flags: Dict[str, bool] = Field(default_factory=dict)

    @property
    def signal(self) -> str:
        """Wire form understood by grids: `dataSetName;Flag:true`."""
        parts = [self.data_set_name or ""]
        parts.extend(f"{k}:{str(v).lower()}" for k, v in self.flags.items())
        return ";".join(parts)


class GridRowUpdateEvent(DomainEvent):
    event_type: str = "grid.row_updated"
    data_set_name: str
    row: Dict[str, Any]
    key_field: str
    key_value: Any


class GridSelectEvent(DomainEvent):
    event_type: str = "grid.selected"
    data_set_name: str
    is_selected: bool


class DebugSessionStartedEvent(DomainEvent):
    event_type: str = "debug.session_started"
    action_name: str
    steps: List[Dict[str, Any]]
    rule_values: List[Dict[str, int]]
    cursor_index: int
    debug_level: int = 3


class DebugProgressEvent(DomainEvent):
    event_type: str = "debug.progress"
    action_name: str
    step: Dict[str, Any]
    rule_values: List[Dict[str, int]]
    can_run: bool
    was_step_active: bool
    cursor_index: int
    is_last_step: bool
    debug_level: int


class LookupRequestEvent(DomainEvent):
    event_type: str = "lookup.requested"
    field_name: str
    field: Dict[str, Any] = Field(default_factory=dict)


class FormRequestEvent(DomainEvent):
    event_type: str = "form.request"
    payload: Dict[str, Any] = Field(default_factory=dict)


class FormReplyEvent(DomainEvent):
    event_type: str = "form.reply"
    payload: Dict[str, Any] = Field(default_factory=dict)


class CustomCodeEvent(DomainEvent):
    event_type: str = "custom.requested"
    custom_code: Optional[str] = None
    action_name: str


class AiChatRequestEvent(DomainEvent):
    """`chat_type` is "grid" (row import) or "form" (field fill)."""

    event_type: str = "ai_chat.requested"
    chat_type: str
    chat_code: Optional[str] = None
    data_set_name: Optional[str] = None
    grid_name: Optional[str] = None
    cl_fld_grp_id: Optional[int] = None


class DbErrorEvent(DomainEvent):
    event_type: str = "db.error"
    title: str
    message: str
