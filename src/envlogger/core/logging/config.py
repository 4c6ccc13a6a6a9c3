# src/envlogger/core/logging/config.py
"""
LOGGER_CONFIG parsing.

The environment carries a JSON object such as:

    {
      "levels": {"default": "verbose", "db": "warn"},
      "format": "pretty",
      "transports": [
        {"type": "daily", "options": {"filename": "logger", "maxFiles": "30d"}},
        {"type": "static", "options": {"filename": "static.log"}}
      ]
    }

`load_logger_config()` turns it into an immutable `LoggerConfig`. It never
raises: malformed JSON or a payload that fails validation logs a warning and
yields the all-defaults config (info level, pretty format, console only).
"""

from __future__ import annotations

import enum
import json
import logging
import sys
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from envlogger.validators.config_validators import to_lowercase
from .levels import normalize_level

logger = logging.getLogger(__name__)


class TransportKind(str, enum.Enum):
    DAILY = "daily"
    STATIC = "static"
    FILE = "file"
    HTTP = "http"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "TransportKind":
        if value is None:
            return cls.UNKNOWN
        try:
            return cls(to_lowercase(value.strip()))
        except ValueError:
            return cls.UNKNOWN


class TransportSpec(BaseModel):
    """One entry of the `transports` list."""

    model_config = ConfigDict(frozen=True)

    type: str | None = Field(default=None, validation_alias=AliasChoices("type", "kind"))
    options: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_names(cls, data: Any) -> Any:
        # ["daily", ...] is treated like [{"type": "daily"}, ...]
        if isinstance(data, str):
            return {"type": data}
        if not isinstance(data, dict):
            return {"type": None}
        return data

    @field_validator("type", mode="before")
    @classmethod
    def stringify_type(cls, v: Any) -> str | None:
        return None if v is None else str(v)

    @field_validator("options", mode="before")
    @classmethod
    def null_options(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def kind(self) -> TransportKind:
        return TransportKind.parse(self.type)


class LoggerConfig(BaseModel):
    """
    Parsed logger configuration.

    Accepts both the `levels` mapping of the environment payload
    (`{"default": ..., "<label>": ...}`) and explicit
    `defaultLevel` / `levelOverrides` keys.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    default_level: str = Field(default="info", alias="defaultLevel")
    level_overrides: dict[str, str] = Field(default_factory=dict, alias="levelOverrides")
    format: Literal["json", "pretty"] = "pretty"
    transports: tuple[TransportSpec, ...] = ()
    colorize: bool = False
    service: str | None = None

    @model_validator(mode="before")
    @classmethod
    def split_levels(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        levels = data.pop("levels", None)
        if isinstance(levels, dict):
            levels = dict(levels)
            default = levels.pop("default", None)
            if default is not None:
                data.setdefault("defaultLevel", default)
            data.setdefault("levelOverrides", levels)
        if data.get("transports") is None:
            data.pop("transports", None)
        return data

    @field_validator("default_level", mode="before")
    @classmethod
    def check_default_level(cls, v: Any) -> str:
        return normalize_level(str(v))

    @field_validator("level_overrides", mode="before")
    @classmethod
    def check_overrides(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        return {str(label): normalize_level(str(level)) for label, level in v.items()}

    @field_validator("format", mode="before")
    @classmethod
    def coerce_format(cls, v: Any) -> str:
        # anything other than "json" renders pretty
        return "json" if isinstance(v, str) and v.strip().lower() == "json" else "pretty"

    def level_for(self, label: str) -> str:
        """Effective level name for `label`."""
        return self.level_overrides.get(label, self.default_level)


def _reaches_stderr(log: logging.Logger) -> bool:
    """True when a WARNING from `log` already ends up on sys.stderr."""
    if not log.hasHandlers():
        # handled by logging.lastResort, which writes to sys.stderr
        return True
    current: logging.Logger | None = log
    while current is not None:
        for handler in current.handlers:
            if isinstance(handler, logging.StreamHandler) and handler.stream is sys.stderr:
                return True
        if not current.propagate:
            break
        current = current.parent
    return False


def _warn_invalid(msg: str, *args: Any) -> None:
    """
    Report an unusable LOGGER_CONFIG through the module logger, and directly on
    stderr when the host's logging setup would not show it there.
    """
    logger.warning(msg, *args)
    if not logger.isEnabledFor(logging.WARNING) or not _reaches_stderr(logger):
        print(f"envlogger: {msg % args}", file=sys.stderr)


def load_logger_config(raw: str | None) -> LoggerConfig:
    """
    Parse the raw LOGGER_CONFIG value.

    Never raises. Missing input yields defaults silently; invalid input yields
    defaults and a warning.
    """
    if raw is None or not raw.strip():
        return LoggerConfig()

    try:
        data = json.loads(raw)
    except ValueError as exc:
        _warn_invalid("Invalid LOGGER_CONFIG (%s). Falling back to defaults.", exc)
        return LoggerConfig()

    if not isinstance(data, dict):
        _warn_invalid(
            "Invalid LOGGER_CONFIG: expected a JSON object, got %s. Falling back to defaults.",
            type(data).__name__,
        )
        return LoggerConfig()

    try:
        return LoggerConfig.model_validate(data)
    except ValidationError as exc:
        _warn_invalid(
            "Invalid LOGGER_CONFIG (%d validation errors: %s). Falling back to defaults.",
            exc.error_count(),
            "; ".join(err["msg"] for err in exc.errors()),
        )
        return LoggerConfig()
