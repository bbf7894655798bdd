from __future__ import annotations

import enum
import logging
from typing import Optional

from metapage.exceptions import ValidationError
from metapage.page_engine.events import EventBus, MessageRequestEvent
from metapage.page_engine.models.page_context import PageContext
from metapage.page_engine.schemas.steps import MessageStep

logger = logging.getLogger(__name__)


class MessageStatus(str, enum.Enum):
    IDLE = "idle"
    SHOW_MSG = "showMsg"
    SHOW_OK_CANCEL = "showOKCancel"
    OK = "OK"
    CANCEL = "Cancel"
    CLOSE = "Close"


ANSWERS = (MessageStatus.OK, MessageStatus.CANCEL, MessageStatus.CLOSE)


class MessageGate:
    """
    Session-wide message status.

    A message step asks once (publishing the request and closing the gate),
    then on re-entry evaluates the stored answer:

    ============== ============================== ========
    status         next status                    can_run
    ============== ============================== ========
    idle           step kind (request published)  False
    showMsg        unchanged                      True
    showOKCancel   idle                           False
    OK             idle                           True
    Cancel         idle                           False
    Close          idle                           True
    ============== ============================== ========
    """

    def __init__(self, bus: EventBus):
        self.bus = bus
        self.status = MessageStatus.IDLE

    @property
    def is_pending(self) -> bool:
        return self.status in (MessageStatus.SHOW_MSG, MessageStatus.SHOW_OK_CANCEL)

    @property
    def has_answer(self) -> bool:
        return self.status in ANSWERS

    def set_status(self, status: str) -> None:
        try:
            self.status = MessageStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown message status: {status}", field="status")
        logger.debug(f"Message status -> {self.status.value}")

    def evaluate(
        self,
        ctx: PageContext,
        step: MessageStep,
        action_name: str,
        debug_level: int,
    ) -> bool:
        status = self.status
        if status == MessageStatus.IDLE:
            self.status = MessageStatus(step.action_type)
            self.bus.publish(
                MessageRequestEvent(
                    prj_id=ctx.prj_id,
                    form_id=ctx.form_id,
                    kind=step.action_type,
                    action_name=action_name,
                    step=step.to_json_dict(),
                    debug_level=debug_level,
                    custom_msg=ctx.metadata.custom_msg,
                )
            )
            return False
        if status == MessageStatus.SHOW_MSG:
            return True
        if status == MessageStatus.SHOW_OK_CANCEL:
            self.status = MessageStatus.IDLE
            return False
        self.status = MessageStatus.IDLE
        return status != MessageStatus.CANCEL

    def reset(self, answer: Optional[str] = None) -> None:
        self.status = MessageStatus.IDLE if answer is None else MessageStatus(answer)
