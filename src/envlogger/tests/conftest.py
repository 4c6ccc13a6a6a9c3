"""
Core pytest configuration for the envlogger test suite.

Fixtures here build isolated LoggerFactory instances (console output captured
in a StringIO, file sinks under tmp_path) and make sure the process-wide
default factory never leaks between tests.
"""

from __future__ import annotations

import io
import logging
from typing import Callable, Iterator

import pytest

from envlogger.core.logging.config import LoggerConfig, load_logger_config
from envlogger.core.logging.factory import LoggerFactory, reset_logger_factory

# Environment variables read by Settings; cleared so a developer's shell does not leak into tests.
SETTINGS_ENV = (
    "LOGGER_CONFIG",
    "LOG_DIR",
    "LOG_SERVICE_NAME",
    "LOG_QUEUE_MAX_SIZE",
    "LOG_QUEUE_BLOCKING",
    "LOG_CAPTURE_EXCEPTIONS",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """
    Start every test without LOGGER_CONFIG & co. and without a cached default factory.
    """
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    reset_logger_factory()
    yield
    reset_logger_factory()


@pytest.fixture
def make_factory(tmp_path) -> Iterator[Callable[..., LoggerFactory]]:
    """
    Build LoggerFactory instances from a raw LOGGER_CONFIG string (or a LoggerConfig).

    Console output goes to `factory.stream` (a StringIO); file sinks go under
    `tmp_path / "logs"` unless `log_dir` is given. Every factory is shut down
    after the test.
    """
    factories: list[LoggerFactory] = []

    def _make(raw: str | LoggerConfig | None = None, **kwargs) -> LoggerFactory:
        config = raw if isinstance(raw, LoggerConfig) else load_logger_config(raw)
        kwargs.setdefault("log_dir", tmp_path / "logs")
        kwargs.setdefault("stream", io.StringIO())
        factory = LoggerFactory(config, **kwargs)
        factories.append(factory)
        return factory

    yield _make

    for factory in factories:
        factory.shutdown()


def make_record(msg, args=None, level: int = logging.INFO, **attrs) -> logging.LogRecord:
    """A LogRecord as a handle would produce it (`label`, `request_id` via attrs)."""
    record = logging.LogRecord("envlogger.test", level, __file__, 10, msg, args, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def record_factory() -> Callable[..., logging.LogRecord]:
    return make_record
