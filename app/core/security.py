# app/core/security.py
from __future__ import annotations

from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


def get_actor_id(request: Request) -> Optional[str]:
    """
    Authenticated principal for this request, or None.
    The auth layer is expected to put it on request.state.user_id.
    """
    actor = getattr(request.state, "user_id", None)
    if actor is None:
        return None
    actor = str(actor).strip()
    return actor or None


class ActorHeaderMiddleware(BaseHTTPMiddleware):
    """
    Copies the actor id forwarded by an authenticating gateway onto
    request.state.user_id. Only mount this behind a gateway that strips
    the header from client traffic.
    """

    def __init__(self, app, header_name: str = "X-User-Id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next):
        value = request.headers.get(self.header_name)
        if value and value.strip() and getattr(request.state, "user_id", None) is None:
            request.state.user_id = value.strip()
        return await call_next(request)
