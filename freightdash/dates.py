import calendar
from datetime import UTC, date, datetime, timedelta
import logging
import math
import re
from typing import TYPE_CHECKING

from freightdash.errors import Unparseable

if TYPE_CHECKING:
    from freightdash.schemas import DayWindow, TripRecord


logger = logging.getLogger(__name__)

SERIAL_EPOCH = date(1899, 12, 31)
MAX_SERIAL = 1_000_000
EPOCH_MILLIS_THRESHOLD = 1_000_000_000_000

_DMY_PATTERN = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")
_YMD_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_NAMED_MONTH_PATTERN = re.compile(r"^([A-Za-z]+)(?:\s*['’\-/ ]\s*(\d{4}|\d{2})|(\d{2}))$")
_MM_YYYY_PATTERN = re.compile(r"^(\d{1,2})[-/](\d{4})$")
_YYYY_MM_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})$")
_WEEK_PATTERN = re.compile(r"^Week (\d{2}), (\d{4})$")

_MONTH_NAMES = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}


def date_to_day(value: date) -> int:
    return (value - SERIAL_EPOCH).days


def day_to_date(day: int) -> date:
    return SERIAL_EPOCH + timedelta(days=day)


def day_key(day: int) -> str:
    return day_to_date(day).isoformat()


def month_key_for_day(day: int) -> str:
    return day_to_date(day).strftime("%Y-%m")


def week_key(day: int) -> str:
    iso = day_to_date(day).isocalendar()
    return f"Week {iso.week:02d}, {iso.year}"


def month_bounds(month_key: str) -> tuple[int, int]:
    year, month = (int(part) for part in month_key.split("-"))
    last = calendar.monthrange(year, month)[1]
    return date_to_day(date(year, month, 1)), date_to_day(date(year, month, last))


def _build_day(year: int, month: int, day: int, raw: object) -> int:
    if not 1900 <= year <= 2100:
        raise Unparseable(raw, "year out of range")
    try:
        return date_to_day(date(year, month, day))
    except ValueError as exc:
        raise Unparseable(raw, str(exc)) from exc


def _normalize_number(value: float, raw: object) -> int:
    if math.isnan(value) or math.isinf(value):
        raise Unparseable(raw, "not a finite number")
    if value > EPOCH_MILLIS_THRESHOLD:
        return date_to_day(datetime.fromtimestamp(value / 1000, UTC).date())
    if 0 < value < MAX_SERIAL:
        return int(value)
    raise Unparseable(raw, "serial out of range")


def _normalize_text(text: str, raw: object) -> int:
    match = _DMY_PATTERN.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _build_day(year, month, day, raw)

    if text.isdigit():
        return _normalize_number(int(text), raw)

    # ISO timestamps keep only their calendar part; the offset is ignored.
    date_part = text.split("T", 1)[0] if "T" in text else text
    match = _YMD_PATTERN.match(date_part)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _build_day(year, month, day, raw)

    raise Unparseable(raw)


def normalize_day(value: object) -> int:
    if value is None or isinstance(value, bool):
        raise Unparseable(value, "empty")
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return date_to_day(value.date())
    if isinstance(value, date):
        return date_to_day(value)
    if isinstance(value, (int, float)):
        return _normalize_number(value, value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise Unparseable(value, "empty")
        return _normalize_text(text, value)
    raise Unparseable(value, f"unsupported type {type(value).__name__}")


def try_normalize_day(value: object, *, field_name: str = "date") -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return normalize_day(value)
    except Unparseable as exc:
        logger.warning("unparseable date treated as absent", extra={"field": field_name, "reason": exc.reason})
        return None


def _expand_year(year_text: str) -> int:
    year = int(year_text)
    if len(year_text) == 2:
        return 2000 + year if year < 50 else 1900 + year
    return year


def normalize_month_label(text: object) -> str | None:
    """Return ``YYYY-MM`` for a free-text month label, or None."""
    if not isinstance(text, str):
        return None
    label = text.strip()
    if not label:
        return None

    # "0ct-25": a zero typed where the letter O belongs.
    label = re.sub(r"^0(?=[A-Za-z])", "O", label)

    match = _NAMED_MONTH_PATTERN.match(label)
    if match:
        month = _MONTH_NAMES.get(match.group(1).lower())
        if month is None:
            return None
        return f"{_expand_year(match.group(2) or match.group(3)):04d}-{month:02d}"

    match = _MM_YYYY_PATTERN.match(label)
    if match:
        month, year = int(match.group(1)), int(match.group(2))
        return f"{year:04d}-{month:02d}" if 1 <= month <= 12 else None

    match = _YYYY_MM_PATTERN.match(label)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        return f"{year:04d}-{month:02d}" if 1 <= month <= 12 else None

    return None


def resolve_month_key(record: "TripRecord") -> str | None:
    """Business month of a record: explicit label first, indent date second."""
    label_month = normalize_month_label(record.month_label)
    if label_month is not None:
        return label_month
    if record.indent_day is not None:
        return month_key_for_day(record.indent_day)
    return None


def window_months(window: "DayWindow") -> set[str] | None:
    # None when the window is open-ended or cuts through a month.
    if window.start is None or window.end is None or window.start > window.end:
        return None
    start, end = day_to_date(window.start), day_to_date(window.end)
    if start.day != 1 or end.day != calendar.monthrange(end.year, end.month)[1]:
        return None

    months: set[str] = set()
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.add(f"{year:04d}-{month:02d}")
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return months


def period_sort_key(period: str) -> tuple[int, int, str]:
    match = _WEEK_PATTERN.match(period)
    if match:
        return int(match.group(2)), int(match.group(1)), period
    return 0, 0, period
