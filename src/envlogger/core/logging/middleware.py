# src/envlogger/core/logging/middleware.py
"""
Request ID middleware for FastAPI / Starlette.

Each incoming request runs inside `request_context.scope(...)`, so every
envlogger line produced while handling it (route, services, background tasks
spawned from it) carries the same `[<request id>]`.

1. Use the incoming `X-Request-ID` header when present, otherwise a new uuid4.
2. Enter the request scope and forward the request with `call_next`.
3. Echo the id back in the `X-Request-ID` response header.

Registration:

    app.add_middleware(RequestIDMiddleware, logger=create_logger("http"))

When a logger handle is given, one `http`-level line is written per request.
"""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp

from .context import request_context
from .factory import LoggerHandle

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Starlette / FastAPI middleware that scopes each request to a request id.
    """

    def __init__(self, app: ASGIApp, logger: LoggerHandle | None = None) -> None:
        super().__init__(app)
        self.logger = logger

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        with request_context.scope(rid):
            if self.logger is not None:
                self.logger.http("Request started", method=request.method, url=str(request.url))
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
