"""
eventnexus.ingestion.normalization.dates

Date/time range parsing for the free-text schedules found on listing pages.

Handled shapes include:
- "December 11, 2025, 6:00 PM - 8:00 PM"
- "Feb 5, 2025 • 7:00 PM"
- "Mon, Feb 3 • 3:00 PM" (year taken from the reference date)
- "11 December 2025 18:00"
- "December 11 - 13, 2025" / "Dec 30 - Jan 2, 2026" (multi-day ranges)
- ISO 8601 timestamps from ``datetime`` attributes

Anything else containing a recognizable date goes through ``dateutil``.
Unparseable input never raises; it yields a ``DateRange`` with
``start=None`` so the event is kept with a null start time.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_MONTH = (
    r"(?P<{name}>jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sept?(?:ember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)

_ORDINAL = r"(?:st|nd|rd|th)?"
_RANGE_SEP = r"\s*(?:-|–|—|to|until|through)\s*"
# last day of a multi-day range, never a clock time such as "- 8:00 PM"
_END_DAY = r"(?P<eday>\d{1,2})" + _ORDINAL + r"(?![\d:]|\s*[ap]\.?\s?m\b)"

# "December 11, 2025" / "Mon, Feb 3" / "Feb 5th 2025" / "Dec 11 - 13, 2025" / "Dec 30 - Jan 2"
_MONTH_FIRST = re.compile(
    r"\b"
    + _MONTH.format(name="month")
    + r"\s+(?P<day>\d{1,2})"
    + _ORDINAL
    + r"(?:"
    + _RANGE_SEP
    + r"(?:"
    + _MONTH.format(name="emonth")
    + r"\s+)?"
    + _END_DAY
    + r")?(?:,?\s+(?P<year>\d{4}))?\b",
    re.IGNORECASE,
)

# "11 December 2025" / "3 Feb" / "11 - 13 December 2025"
_DAY_FIRST = re.compile(
    r"(?<![:\d])\b(?P<day>\d{1,2})"
    + _ORDINAL
    + r"(?:"
    + _RANGE_SEP
    + r"(?P<eday>\d{1,2})"
    + _ORDINAL
    + r")?\s+"
    + _MONTH.format(name="month")
    + r"(?:,?\s+(?P<year>\d{4}))?\b",
    re.IGNORECASE,
)

_YEAR = re.compile(r"\b(?:19|20)\d{2}\b")
_PHRASE_BREAK = re.compile(r"[•|·\n]")

_NUMERIC_DATE = re.compile(r"\b\d{1,4}[/.-]\d{1,2}[/.-]\d{1,4}\b")

_TIME = (
    r"(?P<{p}h>\d{{1,2}})(?::(?P<{p}m>\d{{2}}))?\s*"
    r"(?P<{p}ap>[ap]\.?\s?m\.?)?(?![\d:])"
)

_TIME_RANGE = re.compile(
    _TIME.format(p="s") + r"\s*(?:-|–|—|to|until)\s*" + _TIME.format(p="e"),
    re.IGNORECASE,
)

_SINGLE_TIME = re.compile(_TIME.format(p="s"), re.IGNORECASE)


@dataclass(frozen=True)
class DateRange:
    """Result of parsing one schedule string."""

    start: datetime | None = None
    end: datetime | None = None
    raw: str = ""

    @property
    def parsed(self) -> bool:
        return self.start is not None


UNPARSED = DateRange()


def resolve_timezone(tz: str | None) -> ZoneInfo | None:
    if not tz:
        return None
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; keeping source-local times", tz)
        return None


def _to_24h(hour: int, meridiem: str | None) -> int:
    if not meridiem:
        return hour
    pm = meridiem.lower().startswith("p")
    if hour == 12:
        return 12 if pm else 0
    return hour + 12 if pm else hour


def _valid_time(hour: int, minute: int, meridiem: str | None) -> bool:
    if meridiem:
        return 1 <= hour <= 12 and 0 <= minute <= 59
    return 0 <= hour <= 23 and 0 <= minute <= 59


def _find_times(text: str) -> tuple[time | None, time | None]:
    """Start and optional end time found in ``text``."""
    m = _TIME_RANGE.search(text)
    if m:
        s_ap = m.group("sap")
        e_ap = m.group("eap")
        # "6 - 8 PM" shares the trailing meridiem, "6:00 PM - 8:00" the leading one
        if not s_ap and e_ap:
            s_ap = e_ap
        elif s_ap and not e_ap and int(m.group("eh")) <= 12:
            e_ap = s_ap
        if s_ap or m.group("sm") or m.group("em"):
            sh, sm = int(m.group("sh")), int(m.group("sm") or 0)
            eh, em = int(m.group("eh")), int(m.group("em") or 0)
            if _valid_time(sh, sm, s_ap) and _valid_time(eh, em, e_ap):
                return (
                    time(_to_24h(sh, s_ap), sm),
                    time(_to_24h(eh, e_ap), em),
                )

    for m in _SINGLE_TIME.finditer(text):
        ap = m.group("sap")
        minute = m.group("sm")
        # bare numbers are not times
        if not ap and minute is None:
            continue
        h, mi = int(m.group("sh")), int(minute or 0)
        if _valid_time(h, mi, ap):
            return time(_to_24h(h, ap), mi), None
    return None, None


@dataclass(frozen=True)
class _DateSpan:
    first: date
    last: date | None
    offset: int


def _month(name: str | None) -> int | None:
    return MONTHS.get(name.lower()[:3]) if name else None


def _names_calendar_day(text: str) -> bool:
    return bool(_MONTH_FIRST.search(text) or _DAY_FIRST.search(text))


def _find_date(text: str, reference: datetime) -> _DateSpan | None:
    """
    First calendar date, or multi-day range, in ``text``.

    Returns None when the date is impossible or when a year appears later in
    the same phrase without being attached to the date.
    """
    best = None
    for pattern in (_MONTH_FIRST, _DAY_FIRST):
        m = pattern.search(text)
        if m and (best is None or m.start() < best.start()):
            best = m
    if best is None:
        return None

    groups = best.groupdict()
    month = _month(groups["month"])
    day = int(groups["day"])
    end_month = _month(groups.get("emonth")) or month
    end_day = int(groups["eday"]) if groups.get("eday") else None

    if groups.get("year"):
        year = int(groups["year"])
    else:
        tail = _PHRASE_BREAK.split(text[best.end():], maxsplit=1)[0]
        if _YEAR.search(tail):
            return None
        year = reference.year

    try:
        if end_day is None:
            return _DateSpan(date(year, month, day), None, best.end())
        if (end_month, end_day) >= (month, day):
            first, last = date(year, month, day), date(year, end_month, end_day)
        elif groups.get("year"):
            # "Dec 30 - Jan 2, 2026": the year belongs to the last day
            first, last = date(year - 1, month, day), date(year, end_month, end_day)
        else:
            first, last = date(year, month, day), date(year + 1, end_month, end_day)
    except (TypeError, ValueError):
        return None
    return _DateSpan(first, last, best.end())


def _parse_iso(text: str) -> datetime | None:
    candidate = text.strip()
    if not re.match(r"^\d{4}-\d{2}-\d{2}", candidate):
        return None
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def _parse_fuzzy(text: str, reference: datetime) -> datetime | None:
    default = reference.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    try:
        return dateutil_parser.parse(text, fuzzy=True, default=default)
    except (ValueError, OverflowError):
        return None


def _localize(dt: datetime | None, zone: ZoneInfo | None) -> datetime | None:
    if dt is None or zone is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=zone)


def parse_date_range(
    text: str | None,
    *,
    reference: datetime | None = None,
    anchor: date | None = None,
    tz: str | None = None,
) -> DateRange:
    """
    Parse a schedule string into an absolute start and optional end.

    Parameters
    ----------
    text : str | None
        Raw schedule text as found on the page.
    reference : datetime, optional
        Supplies the year when the text omits it. Defaults to now.
    anchor : date, optional
        Date used for time-only strings such as "8:00 PM".
    tz : str, optional
        IANA zone for naive results. Without it times stay source-local.

    Returns
    -------
    DateRange
        ``start`` is None when nothing could be parsed.
    """
    raw = (text or "").strip()
    if not raw:
        return UNPARSED

    reference = reference or datetime.now()
    zone = resolve_timezone(tz)

    iso = _parse_iso(raw)
    if iso is not None:
        return DateRange(start=_localize(iso, zone), raw=raw)

    span = _find_date(raw, reference)
    from_anchor = False
    if span is None and anchor is not None and not _names_calendar_day(raw):
        span, from_anchor = _DateSpan(anchor, None, 0), True

    if span is not None:
        start_t, end_t = _find_times(raw[span.offset:])
        start = datetime.combine(span.first, start_t or time(0, 0))
        end = None
        if span.last is not None:
            end = datetime.combine(span.last, end_t or start_t or time(0, 0))
        elif end_t is not None:
            end = datetime.combine(span.first, end_t)
            if end <= start:
                end += timedelta(days=1)
        elif start_t is None and from_anchor:
            # anchor without any time carries no information
            return DateRange(raw=raw)
        return DateRange(start=_localize(start, zone), end=_localize(end, zone), raw=raw)

    if _NUMERIC_DATE.search(raw):
        fuzzy = _parse_fuzzy(raw, reference)
        if fuzzy is not None:
            return DateRange(start=_localize(fuzzy, zone), raw=raw)

    logger.debug("Could not parse date %r", raw)
    return DateRange(raw=raw)


def looks_like_schedule(text: str | None) -> bool:
    """True when ``text`` carries a calendar date or a clock time."""
    if not text:
        return False
    if _MONTH_FIRST.search(text) or _DAY_FIRST.search(text) or _NUMERIC_DATE.search(text):
        return True
    return any(m.group("sap") or m.group("sm") for m in _SINGLE_TIME.finditer(text))
