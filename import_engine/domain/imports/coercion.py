"""
Per-field value coercion for imported rows.

Every parser takes the trimmed cell text (or None for an empty/unmapped cell)
and returns the typed value or None. Unparseable input raises ParseError,
which fails only the row being processed.
"""
import json
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from import_engine.domain.imports.errors import ParseError
from import_engine.utils.date import parse_flexible_datetime

TRUE_VALUES = {"true", "1", "yes", "y"}
FALSE_VALUES = {"false", "0", "no", "n"}

_NON_NUMERIC = re.compile(r"[^0-9.,-]")
_LIST_SEPARATORS = re.compile(r"[,;|\n\t]+")

# Enum synonym tables: (fragments, value). The first entry whose fragment
# occurs in the upper-cased input wins.
TYPE_OF_WORK_VALUES = ("PLANNING", "RESEARCH", "IMPLEMENTATION", "TESTING")
TYPE_OF_WORK_SYNONYMS: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("PLAN",), "PLANNING"),
    (("RESEARCH", "STUDY"), "RESEARCH"),
    (("IMPLEMENT", "DEVELOP", "CODE", "BUILD"), "IMPLEMENTATION"),
    (("TEST", "QA"), "TESTING"),
)

CHECK_STATUS_VALUES = ("IN", "OUT")
CHECK_STATUS_SYNONYMS: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("OUT",), "OUT"),
    (("IN",), "IN"),
)


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    parsed = parse_flexible_datetime(value, log_context="date")
    if parsed is None:
        raise ParseError(value, f'Value "{value}" is not a valid date (expected YYYY-MM-DD).')
    return parsed.date()


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = parse_flexible_datetime(value, log_context="datetime")
    if parsed is None:
        raise ParseError(value, f'Value "{value}" is not a valid datetime (expected ISO format).')
    return parsed


def parse_decimal(value: Optional[str], label: str = "number") -> Optional[Decimal]:
    """
    Read a number out of loosely formatted text ("$ 1200,50", "7.5h").

    Characters other than digits, '.', ',' and '-' are dropped and the first
    comma is read as the decimal separator.
    """
    if not value:
        return None
    normalized = _NON_NUMERIC.sub("", value).replace(",", ".", 1)
    if not normalized:
        return None
    try:
        return Decimal(normalized)
    except InvalidOperation:
        raise ParseError(value, f'Value "{value}" is not a valid number for {label}.')


def parse_integer(value: Optional[str], label: str = "number") -> Optional[int]:
    """Parse a whole number, truncating any fractional part."""
    parsed = parse_decimal(value, label)
    if parsed is None:
        return None
    return int(parsed)


def parse_boolean(value: Optional[str]) -> Optional[bool]:
    """Accept true/1/yes/y and false/0/no/n in any case; raise on anything else."""
    if not value:
        return None
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ParseError(value, f'Value "{value}" is not a valid yes/no value.')


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def parse_list(value: Optional[str]) -> List[str]:
    """
    Split a multi-valued cell ("Python, SQL; Go") into distinct items.

    A JSON array is used as-is; otherwise surrounding brackets and quotes
    are stripped and the text is split on , ; | tab or newline.
    """
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        items = [str(item).strip() for item in parsed if item is not None]
        return _dedupe(item for item in items if item)

    cleaned = re.sub(r"^\[|\]$", "", value.strip())
    cleaned = re.sub(r'^"|"$', "", cleaned)
    parts = (part.strip().strip('"').strip() for part in _LIST_SEPARATORS.split(cleaned))
    return _dedupe(part for part in parts if part)


def parse_json_items(value: Optional[str]) -> List[Any]:
    """A JSON array, or one item per non-empty line."""
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return parsed
    return [line.strip() for line in value.splitlines() if line.strip()]


def match_enum(
    value: Optional[str],
    choices: Sequence[str],
    *,
    synonyms: Sequence[Tuple[Tuple[str, ...], str]] = (),
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Resolve free text to one of ``choices``.

    Tries an exact upper-case match, then spaces read as underscores
    ("ON HOLD" -> ON_HOLD), then the synonym table, then ``default``.
    """
    if not value:
        return default
    normalized = value.strip().upper()
    if normalized in choices:
        return normalized
    underscored = re.sub(r"\s+", "_", normalized)
    if underscored in choices:
        return underscored
    for choice in choices:
        if choice.replace("_", " ") == normalized:
            return choice
    for fragments, target in synonyms:
        if any(fragment in normalized for fragment in fragments):
            return target
    return default


def normalize_type_of_work(value: Optional[str]) -> str:
    return match_enum(value, TYPE_OF_WORK_VALUES, synonyms=TYPE_OF_WORK_SYNONYMS, default="PLANNING")


def parse_check_status(value: Optional[str]) -> Optional[str]:
    """Map turnstile labels such as "Division 5-1 In" to IN or OUT."""
    return match_enum(value, CHECK_STATUS_VALUES, synonyms=CHECK_STATUS_SYNONYMS)


def split_full_name(full_name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """First token and the rest; a single token is used for both parts."""
    parts = (full_name or "").split()
    if not parts:
        return None, None
    if len(parts) == 1:
        return parts[0], parts[0]
    return parts[0], " ".join(parts[1:])
