"""Request correlation: X-Request-ID handling and one access log line per request."""

import logging
import re
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("keyhouse.access")

REQUEST_ID_HEADER = "X-Request-ID"

# Caller-supplied ids end up in logs; anything else is replaced
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9_.:\-]{1,128}$")

# Read by RequestIdFilter and by the error envelope in main.py
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex}"


def accept_request_id(header_value: str | None) -> str:
    """Return the caller's request id if it is well formed, else a fresh one."""
    if header_value and _VALID_REQUEST_ID.match(header_value):
        return header_value
    return new_request_id()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id to the request (``request.state.request_id`` and the
    ContextVar), echoes it in the response header and logs method, path,
    status and duration once the response is ready.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = req_id
        token = request_id_var.set(req_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = req_id
            logger.info(
                "%s %s -> %d",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "workspace_id": getattr(request.state, "workspace_id", None),
                },
            )
            return response
        finally:
            request_id_var.reset(token)
