import math
import re
from typing import Any

from pydantic import BaseModel

_STRIP_PATTERN = re.compile(r"[$,\s]")
_DASHES_ONLY = re.compile(r"^-+$")
_NUMBER_PREFIX = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_numeric(value: Any) -> float:
    """Coerce a spreadsheet cell into a finite float.

    Currency symbols, thousands separators and whitespace are removed,
    "(1,200.00)" is read as -1200, and blanks, lone dashes (" $-   ") and
    anything unparseable become 0. Never raises.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return finite(value)

    cleaned = _STRIP_PATTERN.sub("", str(value))
    if not cleaned or _DASHES_ONLY.match(cleaned):
        return 0.0

    negative = cleaned.startswith("(")
    cleaned = cleaned.replace("(", "").replace(")", "")

    # Leading numeric prefix only, so "12.5%" reads as 12.5
    match = _NUMBER_PREFIX.match(cleaned)
    if not match:
        return 0.0

    parsed = finite(match.group(0))
    return -abs(parsed) if negative else parsed


def finite(value: Any) -> float:
    """Return value as float, with None/NaN/Infinity replaced by 0"""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def round_cents(value: Any) -> float:
    return round(finite(value), 2)


def safe_divide(numerator: Any, denominator: Any) -> float:
    denominator = finite(denominator)
    if denominator == 0:
        return 0.0
    return finite(finite(numerator) / denominator)


def sanitize(obj: Any) -> Any:
    """Recursively replace non-finite numbers with 0 in JSON-like data"""
    if isinstance(obj, BaseModel):
        return sanitize(obj.model_dump())
    if isinstance(obj, dict):
        return {key: sanitize(val) for key, val in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize(val) for val in obj]
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else 0.0
    return obj
