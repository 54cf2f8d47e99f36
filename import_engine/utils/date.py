"""
Date parsing utilities for flexible date format handling.

Spreadsheet exports carry dates in whatever format the exporting tool or the
person typing them preferred. This module turns those values into Python
dates/datetimes and, for free-text report notes, extracts the calendar date a
note is actually about.
"""

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional

import pandas as pd

from import_engine.core.config import settings

logger = logging.getLogger(__name__)

FAILED_SAMPLE_LIMIT = 5
SUPPRESSION_NOTICE_EVERY = 100

_failure_stats: dict = {}

_ISO_TOKEN = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$")
_SHORT_TOKEN = re.compile(r"^(\d{1,2})[-/](\d{1,2})(?:[-/](\d{2,4}))?$")
_HAS_YEAR = re.compile(r"\d{4}")

_KEYWORD_DATE_PATTERNS = [
    re.compile(r"(?:report|rep|for|on|date)\s+(?P<date>\d{4}[-/]\d{1,2}[-/]\d{1,2})", re.IGNORECASE),
    re.compile(r"(?:report|rep|for|on|date)\s+(?P<date>\d{1,2}[-/]\d{1,2}(?:[-/]\d{2,4})?)", re.IGNORECASE),
    re.compile(r"(?:report|rep|for|on|date)\s+(?P<date>[A-Za-z]{3,9}\s+\d{1,2}(?:,\s*\d{4})?)", re.IGNORECASE),
]
_BARE_ISO = re.compile(r"(\d{4}[-/]\d{1,2}[-/]\d{1,2})")
_BARE_SHORT = re.compile(r"(\d{1,2}[-/]\d{1,2}(?:[-/]\d{2,4})?)")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _record_parse_failure(value: Any, context: Optional[str], error: Exception) -> None:
    """
    Collect failure stats and emit limited logs (sampled warnings + periodic summaries).
    """
    key = context or "default"
    stats = _failure_stats.setdefault(key, {"count": 0, "samples": []})
    stats["count"] += 1
    count = stats["count"]

    if len(stats["samples"]) < FAILED_SAMPLE_LIMIT:
        stats["samples"].append(value)
        logger.debug("Failed to parse date%s value '%s': %s", f" ({key})" if context else "", value, error)
        return

    if count == FAILED_SAMPLE_LIMIT + 1 or count % SUPPRESSION_NOTICE_EVERY == 0:
        logger.info(
            "Suppressed additional date parse messages after %d failures%s; sample values=%s",
            count,
            f" ({key})" if context else "",
            stats["samples"],
        )


def parse_flexible_datetime(value: Any, *, log_context: Optional[str] = None) -> Optional[datetime]:
    """
    Parse a date/time value from various formats.

    Supports ISO 8601 ("2024-09-04T23:09:18Z"), DD/MM/YYYY, MM/DD/YYYY and
    anything else pandas can infer. For short numeric dates the more
    plausible of day-first/month-first is tried first, the other second.

    Returns:
        A naive UTC datetime, or None if the value is empty or unparseable
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    value = str(value).strip()
    if value == "":
        return None

    parse_attempts = []
    numeric_match = re.match(r'^\d{1,2}[/-]\d{1,2}[/-]\d{2,4}', value)
    if numeric_match:
        parts = re.split(r'[/-]', numeric_match.group(0))
        first = int(parts[0])
        second = int(parts[1])

        if first > 12 and second <= 31:
            dayfirst_preferred = True
        elif second > 12 and first <= 12:
            dayfirst_preferred = False
        else:
            dayfirst_preferred = settings.date_default_dayfirst

        parse_attempts.append(
            lambda v, df=dayfirst_preferred: pd.to_datetime(v, utc=True, dayfirst=df, errors='raise')
        )
        parse_attempts.append(
            lambda v, df=not dayfirst_preferred: pd.to_datetime(v, utc=True, dayfirst=df, errors='raise')
        )

    parse_attempts.append(lambda v: pd.to_datetime(v, utc=True, errors='raise'))

    last_error = None
    for attempt in parse_attempts:
        try:
            parsed = attempt(value)
        except (ValueError, TypeError, OverflowError) as exc:
            last_error = exc
            continue
        if pd.isna(parsed):
            continue
        return parsed.tz_convert(None).to_pydatetime()

    _record_parse_failure(value, log_context, last_error or ValueError("Unable to determine format"))
    return None


def shift_date(value: date, days: int) -> date:
    return value + timedelta(days=days)


def _calendar_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def resolve_ambiguous_date(token: str, fallback: date) -> Optional[date]:
    """
    Interpret a short date token relative to a reference date.

    "2024-06-01" and "2024/6/1" are unambiguous. For tokens like "06/05" or
    "6/5/24" both month-first and day-first readings are considered; without
    a year the reference year and its neighbours are tried. Among the valid
    candidates the closest one on or before the reference date wins, then the
    closest one after it. Two-digit years are read as 20xx.
    """
    trimmed = (token or "").strip()
    if not trimmed:
        return None

    iso = _ISO_TOKEN.match(trimmed)
    if iso:
        return _calendar_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))

    short = _SHORT_TOKEN.match(trimmed)
    if short:
        first = int(short.group(1))
        second = int(short.group(2))
        raw_year = short.group(3)

        if raw_year:
            years = [2000 + int(raw_year) if len(raw_year) == 2 else int(raw_year)]
        else:
            years = [fallback.year, fallback.year - 1, fallback.year + 1]

        candidates: List[date] = []
        for year in years:
            month_first = _calendar_date(year, first, second)
            if month_first:
                candidates.append(month_first)
            if first != second:
                day_first = _calendar_date(year, second, first)
                if day_first:
                    candidates.append(day_first)

        if not candidates:
            return None
        return sorted(candidates, key=lambda d: (d > fallback, abs((d - fallback).days)))[0]

    if not _HAS_YEAR.search(trimmed):
        trimmed = f"{trimmed} {fallback.year}"
    parsed = parse_flexible_datetime(trimmed, log_context="report date token")
    return parsed.date() if parsed else None


def extract_report_date(note: Optional[str], fallback: date) -> Optional[date]:
    """
    Find the date a free-text report note refers to.

    Checks, in order: the words "yesterday"/"today" (relative to the
    fallback), a date introduced by report/rep/for/on/date, a bare ISO date,
    then a bare short date. Returns None when the note carries no date.
    """
    if not note or not note.strip():
        return None

    normalized = note.strip()
    lower = normalized.lower()
    if "yesterday" in lower:
        return shift_date(fallback, -1)
    if "today" in lower:
        return fallback

    for pattern in _KEYWORD_DATE_PATTERNS:
        match = pattern.search(normalized)
        if match:
            parsed = resolve_ambiguous_date(match.group("date"), fallback)
            if parsed:
                return parsed

    for pattern in (_BARE_ISO, _BARE_SHORT):
        match = pattern.search(normalized)
        if match:
            parsed = resolve_ambiguous_date(match.group(1), fallback)
            if parsed:
                return parsed

    return None
