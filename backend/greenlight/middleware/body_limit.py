"""
Greenlight — Request Body Size Middleware
==========================================

What:  Caps request bodies at MAX_BODY_BYTES before any JSON decoding.
How:   A declared Content-Length over the limit is rejected without reading.
       Otherwise the body is pulled chunk by chunk from ``receive``; reading
       stops as soon as the running total passes the limit. An accepted body
       is replayed to the app as a single ``http.request`` message.

Rejection:
    400 {"error": "body must not be larger than 1048576 bytes", "request_id": ...}
"""

import logging
from typing import List, Optional

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from greenlight.config import settings
from greenlight.exceptions import BadRequestError, error_payload
from greenlight.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    def __init__(self, app: ASGIApp, max_body_bytes: Optional[int] = None):
        self.app = app
        self.max_body_bytes = settings.max_body_bytes if max_body_bytes is None else max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_body_bytes:
            await self._reject(scope, receive, send)
            return

        chunks: List[bytes] = []
        received = 0
        trailing: Optional[Message] = None
        while True:
            message = await receive()
            if message["type"] != "http.request":
                # http.disconnect mid-body; hand it on after the partial body
                trailing = message
                break
            chunk = message.get("body", b"")
            received += len(chunk)
            if received > self.max_body_bytes:
                await self._reject(scope, receive, send)
                return
            chunks.append(chunk)
            if not message.get("more_body", False):
                break

        body = b"".join(chunks)
        replayed = False

        async def replay() -> Message:
            nonlocal replayed, trailing
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            if trailing is not None:
                message, trailing = trailing, None
                return message
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        exc = BadRequestError(f"body must not be larger than {self.max_body_bytes} bytes")
        logger.info(
            "Rejected %s %s: body over %d bytes",
            scope.get("method"),
            scope.get("path"),
            self.max_body_bytes,
        )
        response = JSONResponse(
            status_code=exc.status_code,
            content=error_payload(exc.message, request_id_var.get("")),
        )
        await response(scope, receive, send)
