# src/envlogger/core/logging/transports.py
"""
Transport builder: turn `TransportSpec`s into sink handlers.

One spec yields at most one handler. Unknown kinds and specs whose options
cannot be used (a bad `maxSize`, a non-numeric `port`, an unwritable
directory) are skipped with a warning; the remaining sinks are still built.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from .config import TransportKind, TransportSpec
from .formatters import JsonFormatter
from .handlers import get_daily_handler, get_file_handler, get_http_handler, get_static_handler
from .levels import to_level_number

logger = logging.getLogger(__name__)


def build_sink(
    spec: TransportSpec,
    *,
    default_level: str,
    formatter: logging.Formatter,
    log_dir: Path,
    service: str | None = None,
) -> logging.Handler | None:
    """
    Build the handler for one transport descriptor.

    Returns None for an unknown kind. Raises ValueError / TypeError / OSError
    when the options are unusable.
    """
    options = spec.options
    kind = spec.kind

    if kind is TransportKind.DAILY:
        handler: logging.Handler = get_daily_handler(options, log_dir)
    elif kind is TransportKind.STATIC:
        handler = get_static_handler(options, log_dir)
    elif kind is TransportKind.FILE:
        handler = get_file_handler(options, log_dir)
    elif kind is TransportKind.HTTP:
        handler = get_http_handler(options)
        # the endpoint always receives structured records
        formatter = JsonFormatter(service=service)
    else:
        logger.warning("Unknown transport type: %s. Skipping.", spec.type)
        return None

    handler.setLevel(to_level_number(options.get("level") or default_level))
    handler.setFormatter(formatter)
    return handler


def build_sinks(
    transports: Iterable[TransportSpec],
    *,
    default_level: str,
    formatter: logging.Formatter,
    log_dir: Path,
    service: str | None = None,
) -> list[logging.Handler]:
    sinks: list[logging.Handler] = []
    for spec in transports:
        try:
            handler = build_sink(
                spec,
                default_level=default_level,
                formatter=formatter,
                log_dir=log_dir,
                service=service,
            )
        except (ValueError, TypeError, OSError) as exc:
            logger.warning("Skipping %s transport: %s", spec.type, exc)
            continue
        if handler is not None:
            sinks.append(handler)
    return sinks
