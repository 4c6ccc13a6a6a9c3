import re

_SIZE_RE = re.compile(r"^\s*(\d+)\s*([kmg]?)b?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"": 1, "k": 1024, "m": 1024 ** 2, "g": 1024 ** 3}

_MAX_FILES_RE = re.compile(r"^\s*(\d+)\s*(d?)\s*$", re.IGNORECASE)

# moment.js style tokens accepted in datePattern, longest first
_DATE_TOKENS = (
    ("YYYY", "%Y"),
    ("YY", "%y"),
    ("MM", "%m"),
    ("DD", "%d"),
    ("HH", "%H"),
    ("mm", "%M"),
)
_DATE_TOKEN_RE = re.compile("|".join(token for token, _ in _DATE_TOKENS))


def to_lowercase(value: str | None) -> str | None:
    """
    Converts a string to lowercase if it's not None.
    """
    if value is None:
        return None
    return value.lower()


def parse_size(value: int | str | None) -> int | None:
    """
    Convert a size such as ``20m``, ``512k``, ``1g`` or ``1048576`` to bytes.

    ``None`` passes through. Raises ValueError for anything else.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid size: {value!r}")
    if isinstance(value, int):
        return value
    match = _SIZE_RE.match(str(value))
    if not match:
        raise ValueError(f"invalid size: {value!r}")
    number, unit = match.groups()
    return int(number) * _SIZE_UNITS[unit.lower()]


def parse_max_files(value: int | str | None) -> tuple[int, bool] | None:
    """
    Parse a retention setting.

    Returns ``(amount, is_days)``: ``14`` or ``"14"`` keeps fourteen files,
    ``"30d"`` keeps files younger than thirty days. ``None`` means unbounded.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid maxFiles: {value!r}")
    if isinstance(value, int):
        return value, False
    match = _MAX_FILES_RE.match(str(value))
    if not match:
        raise ValueError(f"invalid maxFiles: {value!r}")
    amount, days = match.groups()
    return int(amount), bool(days)


def date_pattern_to_strftime(pattern: str) -> str:
    """Translate a moment.js date pattern (``YYYY-MM-DD``) to strftime syntax."""
    mapping = dict(_DATE_TOKENS)
    return _DATE_TOKEN_RE.sub(lambda m: mapping[m.group(0)], pattern.replace("%", "%%"))
