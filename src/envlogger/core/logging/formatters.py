# src/envlogger/core/logging/formatters.py

"""
Formatters for envlogger sinks.

  - PrettyFormatter: one human-readable line per record,

        2025-03-31T14:30:00.000Z [INFO] [r1] [app.py] - Application started {'port': 3000}

    The `[r1] ` part only appears inside a request scope. Secrets of the form
    `password: value` / `token=value` in the message text are masked.

  - JsonFormatter: one JSON object per record with timestamp, level, label,
    message, requestId (inside a request scope), service and every extra
    field. No masking is applied in JSON mode.

Message rendering is shared: `%`-style placeholders consume positional
arguments in order, placeholders left without an argument stay literal, `%%`
becomes `%`, and whatever arguments are left over are rendered with
`pprint.pformat` and appended to the text. JSON mode merges leftover mappings
into the record as fields instead.
"""

import json
import logging
import pprint
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from logging import LogRecord
from typing import Any

from .levels import level_name

_SECRET_RE = re.compile(r"(password|token)\s*[:=]\s*\S+", re.IGNORECASE)

# printf-style conversions; %% is matched so it can be skipped when counting
_PLACEHOLDER_RE = re.compile(
    r"%(?:\((?P<key>[^)]*)\))?[#0\- +]*(?:\*|\d+)?(?:\.(?:\*|\d+))?[hlL]?(?P<conv>[diouxXeEfFgGcrsa%])"
)

# Attributes every LogRecord carries; anything else on a record is an extra field.
_RECORD_ATTRS = frozenset(vars(LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "request_id",
    "label",
    "taskName",
}


def mask_secrets(text: str) -> str:
    """Rewrite `password: x` / `token=x` (any case) to `<keyword>: ***`."""
    return _SECRET_RE.sub(r"\1: ***", text)


def inspect_value(value: Any) -> str:
    """Deep, cycle-safe rendering of an arbitrary object."""
    return pprint.pformat(value, width=120, sort_dicts=False)


def expand_message(msg: Any, args: Any) -> tuple[str, tuple]:
    """
    Apply `%` placeholders in `msg` and return `(text, leftover_args)`.

    Placeholders are filled left to right while arguments last; the rest stay
    as written (`"%s and %s"` with one argument gives `"x and %s"`). A lone
    mapping argument is kept as a mapping only when the message uses
    `%(name)s` placeholders; otherwise it is a positional value like any other.
    """
    if isinstance(msg, str):
        text = msg
    elif isinstance(msg, BaseException):
        text = str(msg)
    else:
        text = inspect_value(msg)

    if not args:
        return text, ()

    if isinstance(args, Mapping):
        if any(m.group("key") is not None for m in _PLACEHOLDER_RE.finditer(text)):
            try:
                return text % args, ()
            except (KeyError, TypeError, ValueError):
                return text, (args,)
        args = (args,)

    args = tuple(args)
    consumed = 0

    def substitute(match: re.Match) -> str:
        nonlocal consumed
        placeholder = match.group(0)
        if match.group("conv") == "%":
            return "%"
        # placeholders without a matching argument stay literal
        if match.group("key") is not None or "*" in placeholder or consumed >= len(args):
            return placeholder
        try:
            rendered = placeholder % (args[consumed],)
        except (TypeError, ValueError):
            return placeholder
        consumed += 1
        return rendered

    text = _PLACEHOLDER_RE.sub(substitute, text)
    return text, args[consumed:]


def iso_timestamp(record: LogRecord) -> str:
    stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class PrettyFormatter(logging.Formatter):
    """
    Single-line human-readable formatter.

    Construction:
      - colorize: wrap the `[LEVEL]` tag in ANSI colors (console use only).
      - mask: apply secret masking to the primary message (on by default).
    """

    COLOR_CODES = {
        "error": "\033[31m",      # red
        "critical": "\033[1;41m", # bold on red
        "warn": "\033[33m",       # yellow
        "info": "\033[32m",       # green
        "http": "\033[32m",       # green
        "verbose": "\033[36m",    # cyan
        "debug": "\033[34m",      # blue
        "silly": "\033[35m",      # magenta
        "RESET": "\033[0m",
    }

    def __init__(self, *, colorize: bool = False, mask: bool = True) -> None:
        super().__init__()
        self.colorize = colorize
        self.mask = mask

    def formatTime(self, record: LogRecord, datefmt: str | None = None) -> str:
        return iso_timestamp(record)

    def render_message(self, record: LogRecord) -> str:
        msg = record.msg
        if self.mask and isinstance(msg, str):
            msg = mask_secrets(msg)
        text, leftovers = expand_message(msg, record.args)
        if leftovers:
            text = " ".join([text, *(inspect_value(arg) for arg in leftovers)])
        return text

    def format(self, record: LogRecord) -> str:
        record.message = self.render_message(record)
        name = level_name(record.levelno, record.levelname)
        level = f"[{name.upper()}]"
        if self.colorize:
            level = f"{self.COLOR_CODES.get(name, '')}{level}{self.COLOR_CODES['RESET']}"

        request_id = getattr(record, "request_id", None)
        request_part = f"[{request_id}] " if request_id else ""
        label = getattr(record, "label", None) or record.name

        line = f"{self.formatTime(record)} {level} {request_part}[{label}] - {record.message}"

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            line = line + "\n" + record.exc_text
        if record.stack_info:
            line = line + "\n" + self.formatStack(record.stack_info)
        return line


class JsonFormatter(logging.Formatter):
    """
    Structured JSON formatter.

    Responsibilities:
      - Emit timestamp, level, label, message and (inside a request scope)
        requestId, plus `service` when one is configured.
      - Include every extra attribute attached through `extra={...}` or
        keyword fields on a LoggerHandle call.
      - Merge leftover mapping arguments (`logger.info("msg", {"k": 1})`)
        into the record as fields.
      - Never raise on non-serializable values: they are stringified.
    """

    def __init__(self, *, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def formatTime(self, record: LogRecord, datefmt: str | None = None) -> str:
        return iso_timestamp(record)

    def format(self, record: LogRecord) -> str:
        text, leftovers = expand_message(record.msg, record.args)
        fields: dict[str, Any] = {}
        extra_text = []
        for arg in leftovers:
            if isinstance(arg, Mapping):
                fields.update({str(k): v for k, v in arg.items()})
            else:
                extra_text.append(inspect_value(arg))
        if extra_text:
            text = " ".join([text, *extra_text])
        record.message = text

        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": level_name(record.levelno, record.levelname),
            "label": getattr(record, "label", None) or record.name,
            "message": text,
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            log_record["requestId"] = request_id
        if self.service:
            log_record["service"] = self.service

        extras = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _RECORD_ATTRS and not k.startswith("_")
        }
        extras.update(fields)
        for k, v in extras.items():
            if k in log_record:
                continue
            try:
                json.dumps(v)
                log_record[k] = v
            except (TypeError, ValueError):
                log_record[k] = str(v)

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            log_record["exc_info"] = record.exc_text
        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_record, ensure_ascii=False, default=str)
