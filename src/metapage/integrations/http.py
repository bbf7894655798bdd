from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from metapage.context import get_request_context


@dataclass(frozen=True)
class OutboundHeaders:
    conn_code: Optional[str]
    language_id: Optional[int]
    user_id: Optional[str]
    authorization: Optional[str]

    def as_dict(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.conn_code:
            headers["x-conn-code"] = self.conn_code
        if self.language_id is not None:
            headers["x-language-id"] = str(self.language_id)
        if self.user_id:
            headers["x-user-id"] = self.user_id
        if self.authorization:
            headers["Authorization"] = self.authorization
        return headers


def build_outbound_headers(*, authorization: Optional[str] = None) -> OutboundHeaders:
    ctx = get_request_context()
    return OutboundHeaders(
        conn_code=ctx.conn_code,
        language_id=ctx.language_id,
        user_id=ctx.user_id,
        authorization=authorization,
    )
