from metapage.page_engine.events.domain_events import (
    AiChatRequestEvent,
    CustomCodeEvent,
    DbErrorEvent,
    DebugProgressEvent,
    DebugSessionStartedEvent,
    DomainEvent,
    FormReplyEvent,
    FormRequestEvent,
    GridReloadEvent,
    GridRowUpdateEvent,
    GridSelectEvent,
    LoaderEvent,
    LookupRequestEvent,
    MessageRequestEvent,
    ViewChangedEvent,
)
from metapage.page_engine.events.event_bus import EventBus, EventHandler

__all__ = [
    "AiChatRequestEvent",
    "CustomCodeEvent",
    "DbErrorEvent",
    "DebugProgressEvent",
    "DebugSessionStartedEvent",
    "DomainEvent",
    "EventBus",
    "EventHandler",
    "FormReplyEvent",
    "FormRequestEvent",
    "GridReloadEvent",
    "GridRowUpdateEvent",
    "GridSelectEvent",
    "LoaderEvent",
    "LookupRequestEvent",
    "MessageRequestEvent",
    "ViewChangedEvent",
]
