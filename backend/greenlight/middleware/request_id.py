"""
Greenlight — Request ID Middleware
===================================

Assigns a correlation ID to each request and echoes it in ``X-Request-ID``.
The ID is read by the access log, the panic-recovery middleware and every
error body.

A client-supplied ``X-Request-ID`` is kept when it is short and printable;
otherwise an 8-character uuid4 prefix is generated.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# Coroutine-local; each in-flight request sees its own value.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get(REQUEST_ID_HEADER, "")
        rid = supplied if _ACCEPTED_ID.match(supplied) else new_request_id()

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
