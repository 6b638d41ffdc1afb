"""
Lenient coercion of raw form/session values.

Session data arrives as whatever the browser posted: a single string where a
list was expected, blank strings, numbers typed as text. These helpers turn
such values into well-formed ones. Numeric and vocabulary failures are raised
as InvalidNumericField / UnknownEnumValue and recovered in the *_or_default
variants, which log the recovery and return the fallback.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Iterable, TypeVar

from studyreg.core.exceptions import InvalidNumericField, UnknownEnumValue

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

_TRUTHY = {"yes", "true", "on", "1", "y"}
_SCALARS = (str, int, float)


def as_list(value: Any) -> list[str]:
    """Normalise a scalar-or-sequence into a de-duplicated list of non-blank strings."""
    if value is None:
        return []
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        items: Iterable[Any] = [value]
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        return []

    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if isinstance(item, bool) or not isinstance(item, _SCALARS):
            continue
        text = str(item).strip()
        if text and text not in seen:
            seen.add(text)
            out.append(text)
    return out


def as_text(value: Any) -> str:
    """Stringify a scalar, dropping surrounding whitespace; non-scalars become ''."""
    if isinstance(value, Enum):
        value = value.value
    if value is None or isinstance(value, bool) or not isinstance(value, _SCALARS):
        return ""
    return str(value).strip()


def as_bool(value: Any) -> bool:
    """Checkbox/radio semantics: 'yes', 'true', 'on' and 1 are true."""
    if isinstance(value, bool):
        return value
    return as_text(value).lower() in _TRUTHY


def parse_number(field: str, raw: Any) -> float:
    """Parse a finite number or raise InvalidNumericField."""
    if isinstance(raw, bool):
        raise InvalidNumericField(field, raw)
    if isinstance(raw, (int, float)):
        try:
            number = float(raw)
        except OverflowError as exc:
            raise InvalidNumericField(field, raw) from exc
    else:
        text = as_text(raw)
        if not text:
            raise InvalidNumericField(field, raw)
        try:
            number = float(text)
        except ValueError as exc:
            raise InvalidNumericField(field, raw) from exc
    if not math.isfinite(number):
        raise InvalidNumericField(field, raw)
    return number


def number_or_none(field: str, raw: Any) -> float | None:
    """Like parse_number, but absent or unparseable values become None."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        return parse_number(field, raw)
    except InvalidNumericField as exc:
        logger.debug("Treating %s as absent: %s", field, exc)
        return None


def parse_enum(enum_cls: type[E], field: str, raw: Any) -> E:
    """Look up an enum member by value (case-insensitive) or raise UnknownEnumValue."""
    if isinstance(raw, enum_cls):
        return raw
    text = as_text(raw).lower()
    for member in enum_cls:
        if member.value == text:
            return member
    raise UnknownEnumValue(field, raw)


def enum_or_default(enum_cls: type[E], field: str, raw: Any, default: E, strictest: E) -> E:
    """Blank values take the default; unknown values take the strictest option."""
    if raw is None or as_text(raw) == "":
        return default
    try:
        return parse_enum(enum_cls, field, raw)
    except UnknownEnumValue as exc:
        logger.debug("Using strictest %s for %s: %s", strictest.value, field, exc)
        return strictest


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
