from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional


conn_code_var: ContextVar[Optional[str]] = ContextVar("conn_code", default=None)
language_id_var: ContextVar[Optional[int]] = ContextVar("language_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


@dataclass(frozen=True)
class RequestContext:
    conn_code: Optional[str]
    language_id: Optional[int]
    user_id: Optional[str]


def get_request_context() -> RequestContext:
    return RequestContext(
        conn_code=conn_code_var.get(),
        language_id=language_id_var.get(),
        user_id=user_id_var.get(),
    )
