# src/envlogger/core/logging/factory.py
"""
Logger factory: build sinks once, hand out labelled logger handles.

    from envlogger import create_logger

    logger = create_logger("app.py")
    logger.info("Application started")
    logger.error("Something went wrong", {"error": err})
    logger.log("verbose", "cache warmed in %d ms", elapsed)

How the pieces fit:
  - `LoggerFactory.__init__` parses nothing itself; it receives a
    `LoggerConfig` and builds every configured sink exactly once. File sinks
    share one `SinkLane` (a queue plus one `QueueListener` thread); every HTTP
    sink gets a lane of its own, so a slow endpoint never holds back the
    files or another endpoint.
  - `create_logger(label)` returns a cached `LoggerHandle` per label. Its
    underlying stdlib logger has the effective level of that label, a
    `RequestIdFilter`, a console `StreamHandler` and the
    `NonBlockingQueueHandler` of every lane. Records are stamped with the
    request id and label in the calling flow, then enqueued; file and HTTP
    writes happen on the lane threads.
  - Uncaught exceptions (sys / threading / asyncio hooks) go to
    `<log_dir>/exceptions.log` and do not stop threads or event loops.

The module-level `create_logger()` uses a default factory built lazily from
`Settings` (LOGGER_CONFIG, LOG_DIR, ...) on first use and shut down at exit.
"""

from __future__ import annotations

import asyncio
import atexit
import itertools
import logging
import queue as _queue
import sys
import threading
from logging.handlers import QueueListener
from pathlib import Path
from types import TracebackType
from typing import Any, TextIO

from envlogger.config.settings import Settings, get_settings
from .config import LoggerConfig, load_logger_config
from .filters import LabelFilter, RequestIdFilter
from .formatters import JsonFormatter, PrettyFormatter
from .handlers import JsonHTTPHandler, NonBlockingQueueHandler, get_console_handler, get_exception_handler
from .levels import HTTP, SILLY, VERBOSE, level_name, to_level_number
from .transports import build_sinks

logger = logging.getLogger(__name__)

# keyword arguments LoggerAdapter/Logger understand; anything else is a field
_LOG_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

_FACTORY_IDS = itertools.count(1)


class LoggerHandle(logging.LoggerAdapter):
    """
    A logger bound to one label.

    Every severity has a method (`error`, `warn`/`warning`, `info`, `http`,
    `verbose`, `debug`, `silly`, plus `critical` and `exception`), and
    `log(level, msg, *args)` accepts a level number or name.

    Keyword arguments that are not logging options become structured fields:

        logger.info("Request started", method="GET", url="/")
    """

    def __init__(self, logger: logging.Logger, label: str) -> None:
        super().__init__(logger, {"label": label})
        self.label = label

    @property
    def level(self) -> int:
        return self.logger.level

    @property
    def level_name(self) -> str:
        return level_name(self.logger.level)

    def process(self, msg: Any, kwargs: dict[str, Any]) -> tuple[Any, dict[str, Any]]:
        extra = dict(kwargs.pop("extra", None) or {})
        for key in [k for k in kwargs if k not in _LOG_KWARGS]:
            extra[key] = kwargs.pop(key)
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs

    def log(self, level: int | str, msg: Any, *args: Any, **kwargs: Any) -> None:
        # stacklevel 2 skips this frame so records point at the caller
        kwargs.setdefault("stacklevel", 2)
        super().log(to_level_number(level), msg, *args, **kwargs)

    def warn(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("stacklevel", 3)
        self.log(logging.WARNING, msg, *args, **kwargs)

    def http(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("stacklevel", 3)
        self.log(HTTP, msg, *args, **kwargs)

    def verbose(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("stacklevel", 3)
        self.log(VERBOSE, msg, *args, **kwargs)

    def silly(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("stacklevel", 3)
        self.log(SILLY, msg, *args, **kwargs)

    def __repr__(self) -> str:
        return f"<LoggerHandle {self.label} ({self.level_name})>"


class SinkLane:
    """
    One producer queue and one listener thread feeding a group of sinks.

    Lanes are independent: a sink that stalls only fills (and drops from) its
    own lane's queue.
    """

    def __init__(self, sinks: list[logging.Handler], *, max_size: int = 0, block: bool = False) -> None:
        self.sinks = list(sinks)
        self.queue: _queue.Queue = _queue.Queue(max(max_size, 0))
        self.handler = NonBlockingQueueHandler(self.queue, block=block)
        self.listener = QueueListener(self.queue, *self.sinks, respect_handler_level=True)
        self.listener.start()
        self.running = True

    @property
    def dropped(self) -> int:
        return self.handler.dropped

    def flush(self) -> None:
        if not self.running:
            return
        self.listener.stop()
        for sink in self.sinks:
            sink.flush()
        self.listener.start()

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        try:
            self.listener.stop()
        except Exception:
            logger.exception("Failed to stop QueueListener cleanly")


class LoggerFactory:
    """
    Owns the shared sinks of one logger configuration.

    Args:
        config: parsed LoggerConfig (defaults when None).
        log_dir: directory for file sinks and exceptions.log.
        service: service name stamped into JSON records (config wins).
        stream: console stream; sys.stderr when None.
        queue_max_size: bound of each lane queue, 0 for unbounded.
        queue_blocking: wait for room in the file lane instead of dropping when it is full.
    """

    def __init__(
        self,
        config: LoggerConfig | None = None,
        *,
        log_dir: str | Path = "logs",
        service: str | None = None,
        stream: TextIO | None = None,
        queue_max_size: int = 0,
        queue_blocking: bool = False,
    ) -> None:
        self.config = config or LoggerConfig()
        self.log_dir = Path(log_dir)
        self.service = self.config.service or service
        self.stream = stream
        self.namespace = f"envlogger.factory{next(_FACTORY_IDS)}"

        self.formatter = self._make_formatter()
        self.console_formatter = self._make_formatter(console=True)

        self.sinks = build_sinks(
            self.config.transports,
            default_level=self.config.default_level,
            formatter=self.formatter,
            log_dir=self.log_dir,
            service=self.service,
        )

        file_sinks = [sink for sink in self.sinks if not isinstance(sink, JsonHTTPHandler)]
        http_sinks = [sink for sink in self.sinks if isinstance(sink, JsonHTTPHandler)]
        self._file_lane: SinkLane | None = None
        self._lanes: list[SinkLane] = []
        if file_sinks:
            self._file_lane = SinkLane(file_sinks, max_size=queue_max_size, block=queue_blocking)
            self._lanes.append(self._file_lane)
        # HTTP lanes never block the caller, whatever queue_blocking says
        for sink in http_sinks:
            self._lanes.append(SinkLane([sink], max_size=queue_max_size))

        self.exception_handler = get_exception_handler(self.log_dir, self.formatter)
        self.exception_logger = logging.getLogger(f"{self.namespace}:exceptions")
        self.exception_logger.propagate = False
        self.exception_logger.setLevel(logging.ERROR)
        self.exception_logger.addFilter(RequestIdFilter())
        self.exception_logger.addFilter(LabelFilter("exceptions"))
        self.exception_logger.addHandler(self.exception_handler)

        self._handles: dict[str, LoggerHandle] = {}
        self._lock = threading.Lock()
        self._previous_hooks: tuple[Any, Any] | None = None

    def _make_formatter(self, console: bool = False) -> logging.Formatter:
        if self.config.format == "json":
            return JsonFormatter(service=self.service)
        return PrettyFormatter(colorize=console and self.config.colorize)

    # --------------------------
    # Handles
    # --------------------------
    def create_logger(self, label: str = "app") -> LoggerHandle:
        """Return the handle for `label`, building it on first use."""
        label = label or "app"
        with self._lock:
            handle = self._handles.get(label)
            if handle is None:
                handle = self._build_handle(label)
                self._handles[label] = handle
            return handle

    def _build_handle(self, label: str) -> LoggerHandle:
        level = to_level_number(self.config.level_for(label))

        base = logging.getLogger(f"{self.namespace}.{label}")
        for handler in list(base.handlers):
            base.removeHandler(handler)
        base.setLevel(level)
        base.propagate = False
        base.addFilter(RequestIdFilter())
        base.addHandler(get_console_handler(level, self.console_formatter, self.stream))
        for lane in self._lanes:
            if lane.running:
                base.addHandler(lane.handler)
        return LoggerHandle(base, label)

    # --------------------------
    # Uncaught exceptions
    # --------------------------
    def log_uncaught(
        self,
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_traceback: TracebackType | None,
        **fields: Any,
    ) -> None:
        self.exception_logger.error(
            "uncaughtException: %s",
            exc_value,
            exc_info=(exc_type, exc_value, exc_traceback),
            extra=fields,
        )

    def install_exception_handlers(self) -> None:
        """
        Route uncaught exceptions to exceptions.log.

        - threads: the exception is logged and the process keeps running;
        - main thread: logged, then passed to the previous hook (the
          interpreter is exiting at that point regardless);
        - KeyboardInterrupt is left to the interpreter default.
        """
        if self._previous_hooks is not None:
            return
        previous_sys_hook = sys.excepthook
        previous_thread_hook = threading.excepthook

        def excepthook(exc_type, exc_value, exc_traceback):
            if issubclass(exc_type, KeyboardInterrupt):
                sys.__excepthook__(exc_type, exc_value, exc_traceback)
                return
            self.log_uncaught(exc_type, exc_value, exc_traceback)
            previous_sys_hook(exc_type, exc_value, exc_traceback)

        def thread_excepthook(args):
            if issubclass(args.exc_type, SystemExit):
                return
            thread_name = args.thread.name if args.thread is not None else None
            self.log_uncaught(args.exc_type, args.exc_value, args.exc_traceback, thread_name=thread_name)

        sys.excepthook = excepthook
        threading.excepthook = thread_excepthook
        self._previous_hooks = (previous_sys_hook, previous_thread_hook)

    def uninstall_exception_handlers(self) -> None:
        if self._previous_hooks is None:
            return
        sys.excepthook, threading.excepthook = self._previous_hooks
        self._previous_hooks = None

    def install_asyncio_handler(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Send exceptions no task retrieved to exceptions.log."""
        loop = loop or asyncio.get_running_loop()
        loop.set_exception_handler(self.handle_loop_exception)

    def handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        if exc is not None:
            self.log_uncaught(type(exc), exc, exc.__traceback__)
        else:
            self.exception_logger.error("%s", context.get("message", "unhandled event loop error"))

    # --------------------------
    # Lifecycle
    # --------------------------
    def queue_stats(self) -> dict:
        """
        Small diagnostics about the producer queues.

        `dropped_logs` / `queued` describe the file lane; HTTP lanes are
        summed into `http_dropped_logs`.
        """
        file_lane = self._file_lane
        return {
            "dropped_logs": file_lane.dropped if file_lane else 0,
            "queued": file_lane.queue.qsize() if file_lane else 0,
            "http_dropped_logs": sum(lane.dropped for lane in self._lanes if lane is not file_lane),
            "listener_running": any(lane.running for lane in self._lanes),
        }

    def flush(self) -> None:
        """Block until every queued record has been handed to the sinks."""
        for lane in self._lanes:
            lane.flush()

    def shutdown(self) -> None:
        """Drain the queues, stop the lane threads and close every sink."""
        for lane in self._lanes:
            lane.stop()
            for handle in self._handles.values():
                handle.logger.removeHandler(lane.handler)
        for handler in [*self.sinks, self.exception_handler]:
            handler.close()
        self.uninstall_exception_handlers()


# --------------------------
# Process-wide default factory
# --------------------------
_DEFAULT_FACTORY: LoggerFactory | None = None
_DEFAULT_LOCK = threading.Lock()


def factory_from_settings(settings: Settings) -> LoggerFactory:
    return LoggerFactory(
        load_logger_config(settings.LOGGER_CONFIG),
        log_dir=settings.LOG_DIR,
        service=settings.service_name,
        queue_max_size=settings.LOG_QUEUE_MAX_SIZE,
        queue_blocking=settings.LOG_QUEUE_BLOCKING,
    )


def get_logger_factory() -> LoggerFactory:
    """Return the default factory, building it from the environment on first use."""
    global _DEFAULT_FACTORY
    with _DEFAULT_LOCK:
        if _DEFAULT_FACTORY is None:
            settings = get_settings()
            factory = factory_from_settings(settings)
            if settings.LOG_CAPTURE_EXCEPTIONS:
                factory.install_exception_handlers()
            atexit.register(factory.shutdown)
            _DEFAULT_FACTORY = factory
        return _DEFAULT_FACTORY


def reset_logger_factory() -> None:
    """Shut down the default factory so the next call rebuilds it (tests, reloads)."""
    global _DEFAULT_FACTORY
    with _DEFAULT_LOCK:
        factory, _DEFAULT_FACTORY = _DEFAULT_FACTORY, None
    if factory is not None:
        atexit.unregister(factory.shutdown)
        factory.shutdown()
    get_settings.cache_clear()


def create_logger(label: str = "app") -> LoggerHandle:
    """Create (or fetch) the logger handle for `label` from the default factory."""
    return get_logger_factory().create_logger(label)
