# src/envlogger/core/logging/context.py
"""
Request-scoped context for log correlation.

A `contextvars.ContextVar` holds the active `RequestContext`. asyncio copies
the current context when a task is created, so every task spawned inside a
request scope sees that request's id, while concurrently running requests
(each in their own task) never see each other's. Threads do not inherit
context automatically; use `contextvars.copy_context().run(...)` when handing
work to a thread pool.

Usage:

    from envlogger import create_logger, request_context

    logger = create_logger("api")

    async def handle(request):
        async def work():
            logger.info("Request started")   # ... [<id>] [api] - Request started
        await request_context.run({"requestId": new_id()}, work)

    with request_context.scope("job-42"):
        logger.info("Starting scheduled cleanup")
"""

from __future__ import annotations

import contextlib
import contextvars
import inspect
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RequestContext:
    request_id: str

    @classmethod
    def coerce(cls, value: "RequestContext | Mapping[str, Any] | str") -> "RequestContext":
        """
        Build a RequestContext from the shapes callers commonly pass:
        an instance, a bare id string, or a mapping with `requestId` / `request_id`.
        """
        if isinstance(value, RequestContext):
            return value
        if isinstance(value, str):
            return cls(request_id=value)
        if isinstance(value, Mapping):
            rid = value.get("requestId", value.get("request_id"))
            if rid is None:
                raise ValueError("request context mapping needs a 'requestId' or 'request_id' key")
            return cls(request_id=str(rid))
        raise TypeError(f"cannot build a RequestContext from {type(value).__name__}")


_request_ctx: contextvars.ContextVar[RequestContext | None] = contextvars.ContextVar(
    "envlogger_request_context", default=None
)


def set_request_id(request_id: str | None) -> contextvars.Token:
    """
    Set the request id in the current context and return the token to allow reset.
    Passing None clears the id.
    """
    return _request_ctx.set(RequestContext(request_id) if request_id else None)


def reset_request_id(token: contextvars.Token) -> None:
    """
    Reset the contextvar to the previously saved token returned by set_request_id().
    """
    _request_ctx.reset(token)


def get_request_id() -> str | None:
    """
    Retrieve the current context's request id, or None outside any request scope.
    """
    ctx = _request_ctx.get()
    return ctx.request_id if ctx is not None else None


class RequestContextStore:
    """
    The process-wide request context store.

    `run()` mirrors an async-local-storage API: the value is active for the
    whole (possibly asynchronous) extent of the callback and is restored
    afterwards, even when the callback raises.
    """

    def get_store(self) -> RequestContext | None:
        return _request_ctx.get()

    @contextlib.contextmanager
    def scope(self, value: RequestContext | Mapping[str, Any] | str) -> Iterator[RequestContext]:
        ctx = RequestContext.coerce(value)
        token = _request_ctx.set(ctx)
        try:
            yield ctx
        finally:
            _request_ctx.reset(token)

    def run(self, value: RequestContext | Mapping[str, Any] | str, callback: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Call `callback(*args, **kwargs)` with `value` as the active context.

        For a coroutine function the returned coroutine must be awaited; the
        context stays active until it completes.
        """
        ctx = RequestContext.coerce(value)
        if inspect.iscoroutinefunction(callback):
            return self._run_async(ctx, callback, *args, **kwargs)  # type: ignore[return-value]
        with self.scope(ctx):
            return callback(*args, **kwargs)

    async def _run_async(self, ctx: RequestContext, callback: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        with self.scope(ctx):
            return await callback(*args, **kwargs)


request_context = RequestContextStore()
