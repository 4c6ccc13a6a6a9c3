# src/envlogger/core/logging/handlers.py
"""
Handler classes and handler factories for envlogger sinks.

Factories (`get_*_handler`) take the option mapping of one transport
descriptor and return a ready `logging.Handler`; option names follow the
LOGGER_CONFIG wire format (`filename`, `maxSize`, `maxFiles`, ...).

| Factory                   | Class                                   | Destination                          |
| ------------------------- | --------------------------------------- | ------------------------------------ |
| `get_console_handler`     | `logging.StreamHandler`                 | stderr (or a given stream)           |
| `get_daily_handler`       | `DailyRotatingFileHandler`              | `<dir>/<name>-<DATE>.log[.N][.gz]`   |
| `get_static_handler`      | `logging.handlers.RotatingFileHandler`  | `<dir>/<filename>` + numbered backups|
| `get_file_handler`        | `logging.FileHandler`                   | `<dir>/<filename>`                   |
| `get_http_handler`        | `JsonHTTPHandler`                       | POST to `http(s)://host:port/path`   |
| `get_exception_handler`   | `logging.FileHandler`                   | `<dir>/exceptions.log`               |

All file handlers open lazily (`delay=True`), so a configured sink that never
receives a record leaves no empty file behind.
"""

from __future__ import annotations

import copy
import glob
import gzip
import logging
import os
import queue as _queue
import re
import shutil
import sys
import threading
import time
from collections.abc import Mapping
from datetime import datetime
from logging.handlers import BaseRotatingHandler, HTTPHandler, QueueHandler, RotatingFileHandler
from pathlib import Path
from typing import Any, TextIO

from envlogger.validators.config_validators import date_pattern_to_strftime, parse_max_files, parse_size

EXCEPTIONS_FILENAME = "exceptions.log"

_TRACEBACK_FORMATTER = logging.Formatter()


# -----------------------
# Producer side: non-blocking queue handler
# -----------------------
class NonBlockingQueueHandler(QueueHandler):
    """
    QueueHandler that hands records to the sink listener thread.

    Behavior:
      - `block=False` (default): uses put_nowait(); when a bounded queue is
        full the record is dropped and counted, the caller never waits.
      - `block=True`: waits for room in a bounded queue.

    `prepare()` keeps `msg` and `args` intact (formatters need the raw
    message for masking and argument rendering) and only turns exception info
    into text so the record is safe to hand to another thread.
    """

    def __init__(self, q: _queue.Queue, *, block: bool = False) -> None:
        super().__init__(q)
        self.block = block
        self.dropped = 0
        self._dropped_lock = threading.Lock()

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        record = copy.copy(record)
        if record.exc_info:
            if not record.exc_text:
                record.exc_text = _TRACEBACK_FORMATTER.formatException(record.exc_info)
            record.exc_info = None
        return record

    def emit(self, record: logging.LogRecord) -> None:
        try:
            prepared = self.prepare(record)
            if self.block:
                self.queue.put(prepared)
            else:
                self.queue.put_nowait(prepared)
        except _queue.Full:
            with self._dropped_lock:
                self.dropped += 1
        except Exception:
            self.handleError(record)


# -----------------------
# Daily rotating file
# -----------------------
class DailyRotatingFileHandler(BaseRotatingHandler):
    """
    File handler writing to `<directory>/<prefix>-<DATE>.log`.

    Rotation:
      - calendar: when the rendered date (per `date_pattern`) changes, a new
        file for the new date is started;
      - size: when the current file would grow past `max_bytes`, writing
        continues in `<prefix>-<DATE>.log.1`, `.2`, ...

    After each rollover the closed file is gzipped (`zipped=True`) and the
    retention policy is applied: `retention=(n, False)` keeps the newest n
    files (current one included), `retention=(n, True)` deletes files older
    than n days. Only files whose name parses as `<prefix>-<DATE>.log...`
    are considered, so handlers with different prefixes never touch each
    other's files.
    """

    def __init__(
        self,
        directory: str | os.PathLike,
        prefix: str = "app",
        *,
        date_pattern: str = "YYYY-MM-DD",
        max_bytes: int | None = None,
        retention: tuple[int, bool] | None = None,
        zipped: bool = False,
        encoding: str | None = "utf-8",
        delay: bool = True,
    ) -> None:
        self.directory = Path(directory)
        self.prefix = prefix
        self.date_format = date_pattern_to_strftime(date_pattern)
        self.max_bytes = max_bytes or 0
        self.retention = retention
        self.zipped = zipped
        self._owned_re = re.compile(rf"^{re.escape(prefix)}-(?P<stamp>.+?)\.log(?:\.\d+)?(?:\.gz)?$")

        self.directory.mkdir(parents=True, exist_ok=True)
        self.stamp = self._current_stamp()
        self.index = self._latest_index(self.stamp)
        super().__init__(str(self._path_for(self.stamp, self.index)), "a", encoding=encoding, delay=delay)

    def _current_stamp(self) -> str:
        return datetime.now().strftime(self.date_format)

    def _path_for(self, stamp: str, index: int) -> Path:
        path = self.directory / f"{self.prefix}-{stamp}.log"
        return path.with_name(f"{path.name}.{index}") if index else path

    def _latest_index(self, stamp: str) -> int:
        base = self._path_for(stamp, 0).name
        indexes = [0]
        for candidate in self.directory.glob(glob.escape(base) + ".*"):
            suffix = candidate.name[len(base) + 1:]
            if suffix.isdigit():
                indexes.append(int(suffix))
        return max(indexes)

    def _owns(self, path: Path) -> bool:
        match = self._owned_re.match(path.name)
        if not match:
            return False
        try:
            datetime.strptime(match.group("stamp"), self.date_format)
        except ValueError:
            return False
        return True

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        if self._current_stamp() != self.stamp:
            return True
        if self.max_bytes > 0:
            if self.stream is None:
                self.stream = self._open()
            msg = "%s\n" % self.format(record)
            self.stream.seek(0, 2)
            position = self.stream.tell()
            # a record larger than max_bytes still goes into an empty file
            return position > 0 and position + len(msg.encode(self.encoding or "utf-8")) > self.max_bytes
        return False

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None

        previous = Path(self.baseFilename)
        stamp = self._current_stamp()
        if stamp != self.stamp:
            self.stamp = stamp
            self.index = self._latest_index(stamp)
        else:
            self.index += 1
        self.baseFilename = os.path.abspath(self._path_for(self.stamp, self.index))

        if self.zipped and previous.exists():
            self._compress(previous)
        self.prune()

        if not self.delay:
            self.stream = self._open()

    @staticmethod
    def _compress(path: Path) -> None:
        with path.open("rb") as src, gzip.open(f"{path}.gz", "wb") as dst:
            shutil.copyfileobj(src, dst)
        path.unlink()

    def prune(self) -> int:
        """Apply the retention policy; returns the number of files deleted."""
        if not self.retention:
            return 0
        amount, in_days = self.retention
        current = Path(self.baseFilename)
        candidates = [
            p
            for p in self.directory.iterdir()
            if p.is_file() and p != current and self._owns(p)
        ]

        if in_days:
            cutoff = time.time() - amount * 86400
            expired = [p for p in candidates if p.stat().st_mtime < cutoff]
        else:
            candidates.sort(key=lambda p: p.stat().st_mtime, reverse=True)
            expired = candidates[max(amount - 1, 0):]

        for path in expired:
            path.unlink(missing_ok=True)
        return len(expired)


# -----------------------
# HTTP sink
# -----------------------
class JsonHTTPHandler(HTTPHandler):
    """
    POST each formatted record as a JSON body.

    Delivery is best effort: connection and protocol errors are swallowed and
    counted in `dropped`; there is no retry. The handler is meant to run on
    the listener thread, so a slow endpoint never blocks a logging call.
    """

    def __init__(self, host: str, port: int | None = None, path: str = "/", *, secure: bool = False, timeout: float = 5.0) -> None:
        netloc = f"{host}:{port}" if port else host
        super().__init__(netloc, path or "/", method="POST", secure=secure)
        self.timeout = timeout
        self.dropped = 0

    def emit(self, record: logging.LogRecord) -> None:
        try:
            body = self.format(record).encode("utf-8")
            connection = self.getConnection(self.host, self.secure)
            connection.timeout = self.timeout
            try:
                connection.request(
                    "POST",
                    self.url,
                    body=body,
                    headers={"Content-Type": "application/json", "Content-Length": str(len(body))},
                )
                connection.getresponse().read()
            finally:
                connection.close()
        except Exception:
            self.dropped += 1


# -----------------------
# Factories
# -----------------------
def get_console_handler(level: int, formatter: logging.Formatter, stream: TextIO | None = None) -> logging.StreamHandler:
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def get_daily_handler(options: Mapping[str, Any], log_dir: Path) -> DailyRotatingFileHandler:
    return DailyRotatingFileHandler(
        log_dir,
        str(options.get("filename") or "app"),
        date_pattern=str(options.get("datePattern") or "YYYY-MM-DD"),
        max_bytes=parse_size(options.get("maxSize", "20m")),
        retention=parse_max_files(options.get("maxFiles", "30d")),
        zipped=bool(options.get("zippedArchive", False)),
    )


def get_static_handler(options: Mapping[str, Any], log_dir: Path) -> RotatingFileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    max_bytes = parse_size(options.get("maxSize")) or 5 * 1024 * 1024
    backups = options.get("maxFiles", 5)
    if isinstance(backups, bool) or not str(backups).isdigit():
        raise ValueError(f"invalid maxFiles for static transport: {backups!r}")
    return RotatingFileHandler(
        str(log_dir / str(options.get("filename") or "static.log")),
        maxBytes=max_bytes,
        backupCount=int(backups),
        encoding="utf-8",
        delay=True,
    )


def get_file_handler(options: Mapping[str, Any], log_dir: Path) -> logging.FileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(str(log_dir / str(options.get("filename") or "log.log")), encoding="utf-8", delay=True)


def get_http_handler(options: Mapping[str, Any]) -> JsonHTTPHandler:
    secure = bool(options.get("ssl", False))
    port = options.get("port")
    if port is not None:
        port = int(port)
    return JsonHTTPHandler(
        str(options.get("host") or "localhost"),
        port or (443 if secure else 80),
        str(options.get("path") or "/"),
        secure=secure,
        timeout=float(options.get("timeout", 5.0)),
    )


def get_exception_handler(log_dir: Path, formatter: logging.Formatter) -> logging.FileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(log_dir / EXCEPTIONS_FILENAME), encoding="utf-8", delay=True)
    handler.setLevel(logging.ERROR)
    handler.setFormatter(formatter)
    return handler
