from envlogger.core.logging import (
    LoggerConfig,
    LoggerFactory,
    LoggerHandle,
    RequestContext,
    create_logger,
    get_logger_factory,
    load_logger_config,
    request_context,
    reset_logger_factory,
)

__all__ = [
    "LoggerConfig",
    "LoggerFactory",
    "LoggerHandle",
    "RequestContext",
    "create_logger",
    "get_logger_factory",
    "load_logger_config",
    "request_context",
    "reset_logger_factory",
]
