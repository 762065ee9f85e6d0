"""Request ID + access log middleware.

Pure ASGI middleware (not BaseHTTPMiddleware) so multipart CV uploads and
responses are passed through without buffering.
"""

import logging
import re
import time
import uuid
from contextvars import ContextVar

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Same logger as app.core.logger; looked up by name since that module imports this one
access_logger = logging.getLogger("cv-profile")

_CLIENT_RID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _request_id(scope: Scope) -> str:
    """Reuse a sane client-supplied X-Request-ID, otherwise mint an 8-char one."""
    supplied = Headers(scope=scope).get("x-request-id", "")
    if _CLIENT_RID.match(supplied):
        return supplied
    return uuid.uuid4().hex[:8]


class RequestIdMiddleware:
    """Tag every request with an ID (context var, scope state, response header) and log it."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        rid = _request_id(scope)
        request_id_var.set(rid)
        scope.setdefault("state", {})["request_id"] = rid
        start = time.perf_counter()
        status = 500

        async def send_with_rid(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                headers = MutableHeaders(scope=message)
                headers.append("X-Request-ID", rid)
            await send(message)

        try:
            await self.app(scope, receive, send_with_rid)
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            access_logger.info(
                f"{scope['method']} {scope['path']} -> {status} ({elapsed_ms}ms)",
                extra={"method": scope["method"], "path": scope["path"], "status": status, "duration_ms": elapsed_ms},
            )
