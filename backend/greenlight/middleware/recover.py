"""
Greenlight — Panic Recovery Middleware
=======================================

Turns any exception that escaped the route handlers and the registered
exception handlers into a logged 500 response. The response carries
``Connection: close`` so the server drops a connection whose state may be
inconsistent.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from greenlight.exceptions import SERVER_ERROR_MESSAGE, error_payload
from greenlight.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class RecoverPanicMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            rid = request_id_var.get("")
            logger.error(
                "[%s] Unhandled error on %s %s: %s",
                rid,
                request.method,
                request.url.path,
                exc,
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content=error_payload(SERVER_ERROR_MESSAGE, rid),
                headers={"Connection": "close"},
            )
