# src/envlogger/core/logging/
# ├─ __init__.py            # public API
# ├─ config.py              # LOGGER_CONFIG -> LoggerConfig (never raises)
# ├─ levels.py              # npm-style level names <-> stdlib numbers
# ├─ context.py             # request_context (contextvars) + request id helpers
# ├─ filters.py             # RequestIdFilter, LabelFilter
# ├─ formatters.py          # PrettyFormatter (masking), JsonFormatter
# ├─ handlers.py            # handler classes + get_*_handler factories
# ├─ transports.py          # TransportSpec -> sink handler
# ├─ factory.py             # LoggerFactory, LoggerHandle, create_logger
# └─ middleware.py          # Starlette middleware scoping requests


from .config import LoggerConfig, TransportKind, TransportSpec, load_logger_config
from .context import RequestContext, get_request_id, request_context, reset_request_id, set_request_id
from .factory import LoggerFactory, LoggerHandle, create_logger, get_logger_factory, reset_logger_factory
from .filters import RequestIdFilter
from .middleware import RequestIDMiddleware

__all__ = [
    "LoggerConfig",
    "TransportKind",
    "TransportSpec",
    "load_logger_config",
    "RequestContext",
    "request_context",
    "set_request_id",
    "reset_request_id",
    "get_request_id",
    "LoggerFactory",
    "LoggerHandle",
    "create_logger",
    "get_logger_factory",
    "reset_logger_factory",
    "RequestIdFilter",
    "RequestIDMiddleware",
]
