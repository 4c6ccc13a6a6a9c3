# src/envlogger/core/logging/filters.py
"""
Logging filters

Request ID filter for envlogger handles.

The filter runs on the producing side (it is attached to every handle's
underlying logger), so the request id is read from the contextvar of the
flow that made the logging call, before the record is handed to the sink
listener thread where that context no longer exists.

Unlike a `%(request_id)s`-style setup there is no "-" sentinel: outside a
request scope `record.request_id` is None and formatters leave the id out.
"""

import logging
from logging import LogRecord

from .context import get_request_id


class RequestIdFilter(logging.Filter):
    """
    Stamp `record.request_id` from the active request context.

    An explicit `extra={"request_id": ...}` on the logging call wins over the
    context value. Always returns True.
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = getattr(record, "request_id", None) or get_request_id()
        return True


class LabelFilter(logging.Filter):
    """
    Ensure `record.label` is set; records that did not come through a
    LoggerHandle (e.g. uncaught exception hooks) get `default`.
    """

    def __init__(self, default: str = "app") -> None:
        super().__init__()
        self.default = default

    def filter(self, record: LogRecord) -> bool:
        if not getattr(record, "label", None):
            record.label = self.default
        return True
