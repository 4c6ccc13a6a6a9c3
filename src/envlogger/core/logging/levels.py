# src/envlogger/core/logging/levels.py
"""
Level names used by envlogger.

Configuration speaks npm-style level names (error, warn, info, http, verbose,
debug, silly). They are mapped onto stdlib numeric levels so the usual
`logger.isEnabledFor()` / `handler.setLevel()` machinery keeps working:

    error   40  (logging.ERROR)
    warn    30  (logging.WARNING)
    info    20  (logging.INFO)
    http    18
    verbose 15
    debug   10  (logging.DEBUG)
    silly    5

The three custom numbers are registered with `logging.addLevelName` so plain
stdlib formatters also print sensible names for them.
"""

import logging

HTTP = 18
VERBOSE = 15
SILLY = 5

LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "http": HTTP,
    "verbose": VERBOSE,
    "debug": logging.DEBUG,
    "silly": SILLY,
}

ALIASES: dict[str, str] = {
    "warning": "warn",
}

# Not part of the npm set but accepted so stdlib habits keep working.
EXTRA_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}

_NAMES_BY_NUMBER = {number: name for name, number in LEVELS.items()}
_NAMES_BY_NUMBER[logging.CRITICAL] = "critical"

logging.addLevelName(HTTP, "HTTP")
logging.addLevelName(VERBOSE, "VERBOSE")
logging.addLevelName(SILLY, "SILLY")


def normalize_level(name: str) -> str:
    """
    Return the canonical lower-case name for `name`.

    Raises:
        ValueError: if `name` is not a known level.
    """
    key = name.strip().lower()
    key = ALIASES.get(key, key)
    if key in LEVELS:
        return key
    if key in EXTRA_LEVELS:
        return "critical"
    raise ValueError(f"unknown log level: {name!r}")


def to_level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    key = normalize_level(level)
    return LEVELS.get(key, logging.CRITICAL)


def level_name(levelno: int, fallback: str = "") -> str:
    """Lower-case envlogger name for a numeric level."""
    return _NAMES_BY_NUMBER.get(levelno) or (fallback or logging.getLevelName(levelno)).lower()
