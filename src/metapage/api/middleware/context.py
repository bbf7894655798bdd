from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from metapage.context import conn_code_var, language_id_var, user_id_var


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Expose `x-conn-code`, `x-language-id` and `x-user-id` as request context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        language_id = request.headers.get("x-language-id")
        tokens = [
            (conn_code_var, conn_code_var.set(request.headers.get("x-conn-code"))),
            (
                language_id_var,
                language_id_var.set(int(language_id) if language_id and language_id.isdigit() else None),
            ),
            (user_id_var, user_id_var.set(request.headers.get("x-user-id"))),
        ]
        try:
            return await call_next(request)
        finally:
            for var, token in reversed(tokens):
                var.reset(token)
